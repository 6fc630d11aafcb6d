import sqlite3
from datetime import timedelta

import pytest

from golava.session_db import (
    MySQLSessionHandler,
    PostgresSessionHandler,
    SqliteSessionHandler,
    SQLServerSessionHandler,
)


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class FakeCursor:
    def __init__(self, connection):
        self.connection = connection
        self.rowcount = connection.rowcount
        self.closed = False

    def execute(self, sql, params):
        self.connection.executed.append((sql, params))

    def fetchone(self):
        return self.connection.row

    def close(self):
        self.closed = True
        self.connection.closed_cursors += 1


class FakeConnection:
    def __init__(self, row=None, rowcount=0):
        self.row = row
        self.rowcount = rowcount
        self.executed = []
        self.commits = 0
        self.closed_cursors = 0

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1


@pytest.fixture
def sqlite_connection():
    connection = sqlite3.connect(":memory:")
    connection.execute(
        "CREATE TABLE sessions (id TEXT PRIMARY KEY, payload BLOB, last_activity INTEGER)"
    )
    yield connection
    connection.close()


def test_sqlite_read_missing_returns_none(sqlite_connection):
    handler = SqliteSessionHandler(sqlite_connection)
    assert handler.read("absent") is None


def test_sqlite_write_then_read_round_trip(sqlite_connection):
    handler = SqliteSessionHandler(sqlite_connection, clock=Clock(1000.5))
    handler.write("abc", b"payload-one")
    assert handler.read("abc") == b"payload-one"
    stamp = sqlite_connection.execute(
        "SELECT last_activity FROM sessions WHERE id = 'abc'"
    ).fetchone()[0]
    assert stamp == 1000


def test_sqlite_write_replaces_existing(sqlite_connection):
    clock = Clock(100)
    handler = SqliteSessionHandler(sqlite_connection, clock=clock)
    handler.write("abc", b"first")
    clock.now = 200
    handler.write("abc", b"second")
    rows = sqlite_connection.execute("SELECT payload, last_activity FROM sessions").fetchall()
    assert rows == [(b"second", 200)]


def test_sqlite_destroy_removes_session(sqlite_connection):
    handler = SqliteSessionHandler(sqlite_connection)
    handler.write("abc", b"data")
    handler.write("def", b"other")
    handler.destroy("abc")
    assert handler.read("abc") is None
    assert handler.read("def") == b"other"


def test_sqlite_gc_removes_only_expired(sqlite_connection):
    clock = Clock(1000)
    handler = SqliteSessionHandler(sqlite_connection, clock=clock)
    handler.write("old", b"a")
    clock.now = 4000
    handler.write("fresh", b"b")
    clock.now = 4600
    removed = handler.gc(timedelta(seconds=3600))
    assert removed == 1
    assert handler.read("old") is None
    assert handler.read("fresh") == b"b"


def test_sqlite_gc_boundary_is_inclusive(sqlite_connection):
    clock = Clock(1000)
    handler = SqliteSessionHandler(sqlite_connection, clock=clock)
    handler.write("edge", b"a")
    clock.now = 1060
    assert handler.gc(timedelta(seconds=60)) == 1
    assert handler.read("edge") is None


def test_mysql_write_uses_duplicate_key_update():
    connection = FakeConnection()
    handler = MySQLSessionHandler(connection, clock=Clock(42))
    handler.write("abc", b"data")
    sql, params = connection.executed[0]
    assert "ON DUPLICATE KEY UPDATE payload = %s, last_activity = %s" in sql
    assert "?" not in sql
    assert params == ("abc", b"data", 42, b"data", 42)
    assert connection.commits == 1
    assert connection.closed_cursors == 1


def test_mysql_read_returns_row_payload():
    connection = FakeConnection(row=(memoryview(b"stored"),))
    handler = MySQLSessionHandler(connection)
    assert handler.read("abc") == b"stored"
    sql, params = connection.executed[0]
    assert sql == "SELECT payload FROM sessions WHERE id = %s"
    assert params == ("abc",)


def test_postgres_write_passes_each_value_once():
    connection = FakeConnection()
    handler = PostgresSessionHandler(connection, clock=Clock(7))
    handler.write("abc", b"data")
    sql, params = connection.executed[0]
    assert "ON CONFLICT (id) DO UPDATE" in sql
    assert sql.count("%s") == 3
    assert params == ("abc", b"data", 7)


def test_postgres_gc_returns_rowcount_and_uses_cutoff():
    connection = FakeConnection(rowcount=5)
    handler = PostgresSessionHandler(connection, clock=Clock(10_000))
    assert handler.gc(timedelta(seconds=600)) == 5
    sql, params = connection.executed[0]
    assert sql == "DELETE FROM sessions WHERE last_activity <= %s"
    assert params == (10_000 - 600,)


def test_sqlserver_write_updates_then_inserts():
    connection = FakeConnection()
    handler = SQLServerSessionHandler(connection, clock=Clock(9))
    handler.write("abc", b"data")
    sql, params = connection.executed[0]
    assert sql.index("UPDATE sessions") < sql.index("INSERT INTO sessions")
    assert "IF @@rowcount = 0" in sql
    assert sql.count("?") == len(params)
    assert params == (b"data", 9, "abc", "abc", b"data", 9)


def test_sqlserver_destroy_commits():
    connection = FakeConnection()
    handler = SQLServerSessionHandler(connection)
    handler.destroy("abc")
    assert connection.executed == [("DELETE FROM sessions WHERE id = ?", ("abc",))]
    assert connection.commits == 1


def test_read_encodes_text_payload():
    connection = FakeConnection(row=("text",))
    handler = SQLServerSessionHandler(connection)
    assert handler.read("abc") == b"text"