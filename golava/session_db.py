"""Session handlers that keep payloads in a SQL ``sessions`` table."""

from __future__ import annotations

import math
import time
from contextlib import closing
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, ClassVar, Optional, Sequence

_READ_SQL = "SELECT payload FROM sessions WHERE id = ?"
_GC_SQL = "DELETE FROM sessions WHERE last_activity <= ?"
_DESTROY_SQL = "DELETE FROM sessions WHERE id = ?"


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    return bytes(value)


@dataclass
class _SQLSessionHandler:
    """Stores sessions through a DB-API connection.

    The table holds ``id``, ``payload`` and ``last_activity`` (Unix seconds).
    """

    connection: Any
    clock: Callable[[], float] = time.time

    placeholder: ClassVar[str] = "?"

    def _sql(self, statement: str) -> str:
        return statement.replace("?", self.placeholder)

    def _now(self) -> int:
        return math.floor(self.clock())

    def _fetch_one(self, statement: str, params: Sequence[Any]) -> Optional[Sequence[Any]]:
        with closing(self.connection.cursor()) as cursor:
            cursor.execute(self._sql(statement), tuple(params))
            return cursor.fetchone()

    def _run(self, statement: str, params: Sequence[Any]) -> int:
        with closing(self.connection.cursor()) as cursor:
            cursor.execute(self._sql(statement), tuple(params))
            affected = cursor.rowcount
        self.connection.commit()
        return affected

    def _read_payload(self, session_id: str) -> Optional[bytes]:
        row = self._fetch_one(_READ_SQL, (session_id,))
        if row is None:
            return None
        return _as_bytes(row[0])

    def _collect_garbage(self, lifetime: timedelta) -> int:
        cutoff = math.floor(self.clock() - lifetime.total_seconds())
        return self._run(_GC_SQL, (cutoff,))

    def _delete(self, session_id: str) -> None:
        self._run(_DESTROY_SQL, (session_id,))


class MySQLSessionHandler(_SQLSessionHandler):
    """Session handler for MySQL drivers using ``%s`` parameters."""

    placeholder = "%s"

    def read(self, session_id: str) -> Optional[bytes]:
        """Return the stored payload, or None if the session does not exist."""
        return self._read_payload(session_id)

    def write(self, session_id: str, payload: bytes) -> None:
        """Insert or replace the session's payload and stamp its activity time."""
        data, now = bytes(payload), self._now()
        self._run(
            "INSERT INTO sessions (id, payload, last_activity) VALUES (?, ?, ?) "
            "ON DUPLICATE KEY UPDATE payload = ?, last_activity = ?",
            (session_id, data, now, data, now),
        )

    def gc(self, lifetime: timedelta) -> int:
        """Delete sessions idle for ``lifetime`` or longer; return how many went."""
        return self._collect_garbage(lifetime)

    def destroy(self, session_id: str) -> None:
        """Delete the session."""
        self._delete(session_id)


class PostgresSessionHandler(_SQLSessionHandler):
    """Session handler for PostgreSQL drivers using ``%s`` parameters."""

    placeholder = "%s"

    def read(self, session_id: str) -> Optional[bytes]:
        """Return the stored payload, or None if the session does not exist."""
        return self._read_payload(session_id)

    def write(self, session_id: str, payload: bytes) -> None:
        """Insert or replace the session's payload and stamp its activity time."""
        self._run(
            "INSERT INTO sessions (id, payload, last_activity) VALUES (?, ?, ?) "
            "ON CONFLICT (id) DO UPDATE SET payload = EXCLUDED.payload, "
            "last_activity = EXCLUDED.last_activity",
            (session_id, bytes(payload), self._now()),
        )

    def gc(self, lifetime: timedelta) -> int:
        """Delete sessions idle for ``lifetime`` or longer; return how many went."""
        return self._collect_garbage(lifetime)

    def destroy(self, session_id: str) -> None:
        """Delete the session."""
        self._delete(session_id)


class SqliteSessionHandler(_SQLSessionHandler):
    """Session handler for SQLite connections using ``?`` parameters."""

    placeholder = "?"

    def read(self, session_id: str) -> Optional[bytes]:
        """Return the stored payload, or None if the session does not exist."""
        return self._read_payload(session_id)

    def write(self, session_id: str, payload: bytes) -> None:
        """Insert or replace the session's payload and stamp its activity time."""
        self._run(
            "INSERT INTO sessions (id, payload, last_activity) VALUES (?, ?, ?) "
            "ON CONFLICT(id) DO UPDATE SET payload = excluded.payload, "
            "last_activity = excluded.last_activity",
            (session_id, bytes(payload), self._now()),
        )

    def gc(self, lifetime: timedelta) -> int:
        """Delete sessions idle for ``lifetime`` or longer; return how many went."""
        return self._collect_garbage(lifetime)

    def destroy(self, session_id: str) -> None:
        """Delete the session."""
        self._delete(session_id)


class SQLServerSessionHandler(_SQLSessionHandler):
    """Session handler for SQL Server drivers using ``?`` parameters."""

    placeholder = "?"

    def read(self, session_id: str) -> Optional[bytes]:
        """Return the stored payload, or None if the session does not exist."""
        return self._read_payload(session_id)

    def write(self, session_id: str, payload: bytes) -> None:
        """Insert or replace the session's payload and stamp its activity time."""
        data, now = bytes(payload), self._now()
        self._run(
            "BEGIN tran\n"
            "\tUPDATE sessions WITH (serializable) SET payload = ?, last_activity = ? WHERE id = ?;\n"
            "\tIF @@rowcount = 0\n"
            "\tBEGIN\n"
            "\t\tINSERT INTO sessions (id, payload, last_activity) VALUES (?, ?, ?);\n"
            "\tEND\n"
            "COMMIT tran",
            (data, now, session_id, session_id, data, now),
        )

    def gc(self, lifetime: timedelta) -> int:
        """Delete sessions idle for ``lifetime`` or longer; return how many went."""
        return self._collect_garbage(lifetime)

    def destroy(self, session_id: str) -> None:
        """Delete the session."""
        self._delete(session_id)