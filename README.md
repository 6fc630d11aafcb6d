# golava

Building blocks for server-side web applications: sessions with flash
data, encrypted cookies, password hashing, session-based authentication
guards, URL resolution and redirects, and the middleware that ties them
together for each request.

It needs `cryptography` (44.0 or later, for AES and argon2id), `bcrypt`
and `markupsafe`. The `test` extra adds pytest.

## Modules

| Module | Provides |
| --- | --- |
| `golava.encryption` | `Encrypter` (AES-GCM with a random nonce), `SupportsEncryption`, `generate_key`, `pkcs7_padding` |
| `golava.hashing` | `Argon2idHasher`, `Argon2idParams`, `BcryptHasher`, `HasherManager`, `UnknownHasherError` |
| `golava.util` | `random_token`, `any_value_to_string` |
| `golava.web` | `Request`, `Response`, `Context`, `NoCookieError`, `expect_json`, `is_reading` |
| `golava.auth` | `Authenticatable`, `Guard`, `StatefulGuard`, `UserProvider`, `Recaller`, `new_recaller`, `UserNotFoundError`, `UnauthenticatedError` |
| `golava.cookie` | `Cookie`, `SameSite`, `CookieManager`, `EncryptCookieManager`, `EncryptableCookieManager`, the `with_*` write options, `cookie_middleware` |
| `golava.session` | `Store`, `SessionManager`, `SessionFactory`, `SessionHandler`, `CookieSessionHandler`, `marshal`, `unmarshal`, `input_to_map`, `get_flash_errors`, `get_flash_error` |
| `golava.session_db` | `MySQLSessionHandler`, `PostgresSessionHandler`, `SqliteSessionHandler`, `SQLServerSessionHandler` |
| `golava.guards` | `NullGuard`, `SessionGuard`, `User` |
| `golava.router` | `Router`, `new_router`, `Redirector` |
| `golava.app` | `App` and the `GolavaApp` protocol |
| `golava.instance` | `Instance`, `InstanceError`, `new_instance`, `get_instance`, `must_get_instance` |
| `golava.foundation` | `start_session`, `save_session`, `authenticate`, `redirect_if_authenticated`, `template_functions` |
| `golava.template` | `TemplateData`, `new`, `default`, and `with_metadata`, `with_errors`, `with_old`, `with_csrf`, `with_auth` |

## Encryption

```python
from golava.encryption import Encrypter, generate_key

encrypter = Encrypter(generate_key())
sealed = encrypter.encrypt(b"Hello, World!")
assert encrypter.decrypt(sealed) == b"Hello, World!"
```

Each call to `encrypt` uses a fresh 12-byte nonce, which is placed in
front of the ciphertext. `decrypt` raises `ValueError` when the value is
shorter than a nonce or fails to authenticate.

## Password hashing

```python
from golava.hashing import HasherManager

manager = HasherManager()
password = "password"
hashed = manager.make(password)          # argon2id by default

assert manager.check(password, hashed)
assert manager.identify_hasher(hashed) == "argon2id"
assert not manager.needs_rehash(hashed)
```

`identify_hasher` looks at a hash's prefix (`$argon2id$`, `$2a$`, `$2b$`)
and returns the hasher's name, or `None`. bcrypt hashes are still
accepted by `check`, but `needs_rehash` always reports them as due, so
stored passwords can move to argon2id when a user next logs in. A hash
with an unknown prefix makes `check` and `needs_rehash` raise
`UnknownHasherError`. The hashers can also be used on their own:
`BcryptHasher(cost=12)` or `Argon2idHasher(Argon2idParams(...))`.

## Remember-me values

```python
from golava.auth import new_recaller

recaller = new_recaller(42, "token", "hash")
assert recaller.id() == "42"
assert recaller.token() == "token"
assert recaller.hash() == "hash"
```

## Cookies

`CookieManager` reads cookies from a bound `Request` and appends
`Set-Cookie` headers to a bound `Response`; new cookies are `HttpOnly`
and take the manager's path, domain, secure flag and `SameSite`.
`set` and `forget` accept write options such as `with_max_age(3600)` or
`with_same_site(SameSite.LAX)`. `EncryptableCookieManager` behaves like
its base manager, and its `encryption()` view encrypts values with an
`Encrypter` and base64 on the way out and decrypts them on the way in.
Reading a missing cookie raises `NoCookieError`; a value that cannot be
decrypted raises `ValueError`.

## Sessions

A `Store` keeps the attributes of one session and reads and writes them
through a `SessionHandler`. `start` loads the stored payload and makes
sure a CSRF token exists; `save` ages flash data and writes the
attributes back as base64-wrapped JSON, so stored values must be
JSON-serialisable. Values put with `flash` survive one further request.
`flash_input` keeps a mapping or dataclass of form input, which
`get_old_input` and `get_old_input_value` return next time. `migrate`
gives the session a new id, and `invalidate` empties it and destroys the
old one.

`SessionFactory.make` builds a `SessionManager` with a new id.
`CookieSessionHandler` keeps the whole payload in an encrypted cookie.
The handlers in `golava.session_db` take a DB-API connection and use a
`sessions` table with `id`, `payload` and `last_activity` (Unix seconds)
columns, which the caller creates:

```python
import sqlite3
from datetime import timedelta

from golava.session import SessionFactory
from golava.session_db import SqliteSessionHandler

connection = sqlite3.connect(":memory:")
connection.execute(
    "CREATE TABLE sessions (id TEXT PRIMARY KEY, payload BLOB, last_activity INTEGER)"
)
factory = SessionFactory(
    name="app_session",
    lifetime=timedelta(hours=2),
    handler=SqliteSessionHandler(connection),
)

session = factory.make()
session.store.start()
session.store.put("theme", "dark")
session.store.save()
```

## Authentication

`SessionGuard` works with a `UserProvider` you supply. `attempt` checks
credentials, logs the user in and optionally sets a remember-me cookie;
`restore_auth` finds the user from the session or, failing that, from
the remember-me cookie; `logout` clears both and cycles the user's
remember token. `once` and `once_using_id` set the user for the current
request only. `NullGuard` never has a user. `User` is a ready-made
record that satisfies `Authenticatable`.

## Per-request wiring

A `golava.web.Context` runs a list of handlers; a handler calls
`context.next()` to run the rest, or `context.abort()` to stop them.

```python
from datetime import timedelta

from golava.app import App
from golava.cookie import CookieManager, EncryptableCookieManager, cookie_middleware
from golava.encryption import Encrypter, generate_key
from golava.foundation import save_session, start_session
from golava.instance import must_get_instance, new_instance
from golava.router import new_router
from golava.session import CookieSessionHandler, SessionFactory
from golava.web import Context, Request

encrypter = Encrypter(generate_key())
cookies = EncryptableCookieManager(base=CookieManager(path="/"), encrypter=encrypter)
app = App(
    name="Demo",
    router=new_router("https://example.com/"),
    cookie=cookies,
    encryption=encrypter,
    session_factory=SessionFactory(
        name="demo_session",
        lifetime=timedelta(hours=2),
        handler=CookieSessionHandler(cookie=cookies, expiration=timedelta(hours=2)),
    ),
)


def page(context):
    must_get_instance(context).session.store.put("visited", True)


context = Context(
    request=Request(url="/"),
    handlers=[cookie_middleware(cookies), new_instance(app), start_session, save_session, page],
)
context.next()
print(context.response.headers)   # Set-Cookie headers for the session
```

`start_session` reads the session id from its encrypted cookie (or the
`<name>_migrate` cookie), starts the store, runs the handler's `gc` on
about one request in a hundred, and refreshes the cookie. `save_session`
saves the store after the later handlers have run and logs any failure.
`authenticate` records `UnauthenticatedError` in `context.errors` and
aborts when no user is logged in; `redirect_if_authenticated(path)`
answers logged-in users with a 303 redirect. The `Redirector` on each
`Instance` offers `redirect`, `intended`, `guest`, `previous` and `back`.
`golava.template.default(context)` gathers the app name, flashed errors,
old input, the CSRF token and field, and the guard for a template, and
`template_functions(app)` supplies a `url` function.

## What the package does not do

It has no HTTP server and no command-line tool: `Context`, `Request` and
`Response` are plain objects that your server or tests fill in and read
back. It does not validate or bind form input, does not create the
`sessions` table, and ships no `UserProvider`; those are left to the
application.