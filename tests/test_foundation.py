import base64
import logging
from datetime import timedelta
from unittest import mock

from golava.app import App
from golava.auth import UnauthenticatedError
from golava.cookie import CookieManager, EncryptableCookieManager, cookie_middleware
from golava.encryption import Encrypter, generate_key
from golava.foundation import (
    authenticate,
    redirect_if_authenticated,
    save_session,
    start_session,
    template_functions,
)
from golava.guards import NullGuard
from golava.instance import must_get_instance, new_instance
from golava.router import new_router
from golava.session import SessionFactory, unmarshal
from golava.web import Context, Request

LIFETIME = timedelta(hours=2)


class MemoryHandler:
    def __init__(self):
        self.payloads = {}
        self.reads = []
        self.gc_calls = []

    def read(self, session_id):
        self.reads.append(session_id)
        return self.payloads.get(session_id)

    def write(self, session_id, payload):
        self.payloads[session_id] = payload

    def gc(self, lifetime):
        self.gc_calls.append(lifetime)
        return 0

    def destroy(self, session_id):
        self.payloads.pop(session_id, None)


class FailingReadHandler(MemoryHandler):
    def __init__(self, failure):
        super().__init__()
        self.failure = failure

    def read(self, session_id):
        raise self.failure


class FailingWriteHandler(MemoryHandler):
    def write(self, session_id, payload):
        raise OSError("disk full")


class AlwaysGuard:
    user = object()

    def check(self):
        return True

    def guest(self):
        return False


def build_app(handler=None):
    handler = handler if handler is not None else MemoryHandler()
    encrypter = Encrypter(generate_key())
    app = App(
        name="demo",
        router=new_router("https://example.com/"),
        cookie=EncryptableCookieManager(base=CookieManager(), encrypter=encrypter),
        encryption=encrypter,
        session_factory=SessionFactory(name="sess", lifetime=LIFETIME, handler=handler),
    )
    return app, handler


def run(app, handlers, request=None):
    context = Context(
        request=request or Request(),
        handlers=[cookie_middleware(app.cookie), new_instance(app), *handlers],
    )
    context.next()
    return context


def seal(app, value):
    return base64.b64encode(app.encryption.encrypt(value.encode("utf-8"))).decode("ascii")


def set_cookies(context):
    return [value for name, value in context.response.headers if name == "Set-Cookie"]


def capture(into):
    def handler(context):
        into.append(must_get_instance(context))

    return handler


def set_auth(guard):
    def handler(context):
        must_get_instance(context).auth = guard

    return handler


def test_authenticate_rejects_guest():
    app, _ = build_app()
    reached = []
    context = run(app, [set_auth(NullGuard()), authenticate, capture(reached)])
    assert reached == []
    assert context.is_aborted()
    assert len(context.errors) == 1
    assert isinstance(context.errors[0], UnauthenticatedError)


def test_authenticate_lets_user_through():
    app, _ = build_app()
    reached = []
    context = run(app, [set_auth(AlwaysGuard()), authenticate, capture(reached)])
    assert len(reached) == 1
    assert context.errors == []


def test_redirect_if_authenticated_redirects_user():
    app, _ = build_app()
    reached = []
    context = run(app, [set_auth(AlwaysGuard()), redirect_if_authenticated("/home"), capture(reached)])
    assert reached == []
    assert context.response.status == 303
    assert dict(context.response.headers)["Location"] == app.router.url("/home")


def test_redirect_if_authenticated_lets_guest_through():
    app, _ = build_app()
    reached = []
    context = run(app, [set_auth(NullGuard()), redirect_if_authenticated("/home"), capture(reached)])
    assert len(reached) == 1
    assert context.response.status == 200


def test_start_session_creates_session_and_cookie():
    app, handler = build_app()
    seen = []
    context = run(app, [start_session, capture(seen)])
    session = seen[0].session
    assert seen[0].redirector.session is session
    assert session.store.token() != ""
    assert handler.reads == [session.store.id]
    cookies = [value for value in set_cookies(context) if value.startswith("sess=")]
    assert len(cookies) == 1
    assert f"Max-Age={int(LIFETIME.total_seconds())}" in cookies[0]


def test_session_cookie_round_trips_to_same_id():
    app, handler = build_app()
    first = []
    context = run(app, [start_session, capture(first)])
    header = next(value for value in set_cookies(context) if value.startswith("sess="))
    cookie_value = header.split(";")[0].split("=", 1)[1]

    second = []
    run(app, [start_session, capture(second)], Request(cookies={"sess": cookie_value}))
    assert second[0].session.store.id == first[0].session.store.id


def test_start_session_uses_existing_cookie():
    app, handler = build_app()
    seen = []
    run(app, [start_session, capture(seen)], Request(cookies={"sess": seal(app, "existing-id")}))
    assert seen[0].session.store.id == "existing-id"
    assert handler.reads == ["existing-id"]


def test_start_session_prefers_migrate_cookie_and_forgets_it():
    app, _ = build_app()
    seen = []
    request = Request(
        cookies={"sess_migrate": seal(app, "migrated-id"), "sess": seal(app, "older-id")}
    )
    context = run(app, [start_session, capture(seen)], request)
    assert seen[0].session.store.id == "migrated-id"
    forgotten = [value for value in set_cookies(context) if value.startswith("sess_migrate=")]
    assert len(forgotten) == 1
    assert "Expires=Thu, 01 Jan 1970 00:00:00 GMT" in forgotten[0]


def test_start_session_ignores_undecryptable_cookie():
    app, _ = build_app()
    seen = []
    context = run(app, [start_session, capture(seen)], Request(cookies={"sess": "garbage!"}))
    assert seen[0].session.store.id != "garbage!"
    assert context.errors == []


def test_start_session_aborts_when_handler_fails():
    failure = OSError("store down")
    app, _ = build_app(FailingReadHandler(failure))
    reached = []
    context = run(app, [start_session, capture(reached)])
    assert reached == []
    assert context.is_aborted()
    assert context.errors == [failure]


def test_start_session_collects_garbage_on_lottery_hit():
    app, handler = build_app()
    with mock.patch("random.randrange", return_value=0):
        run(app, [start_session])
    assert handler.gc_calls == [LIFETIME]


def test_start_session_skips_garbage_on_lottery_miss():
    app, handler = build_app()
    with mock.patch("random.randrange", return_value=1):
        run(app, [start_session])
    assert handler.gc_calls == []


def test_save_session_writes_attributes_after_handlers():
    app, handler = build_app()
    seen = []

    def put_value(context):
        instance = must_get_instance(context)
        instance.session.store.put("colour", "blue")
        seen.append(instance)

    run(app, [save_session, start_session, put_value])
    store = seen[0].session.store
    saved = unmarshal(handler.payloads[store.id])
    assert saved["colour"] == "blue"
    assert saved["_token"] == store.token()


def test_save_session_without_session_writes_nothing():
    app, handler = build_app()
    run(app, [save_session])
    assert handler.payloads == {}


def test_save_session_logs_write_errors(caplog):
    app, _ = build_app(FailingWriteHandler())
    with caplog.at_level(logging.ERROR, logger="golava.foundation"):
        context = run(app, [save_session, start_session])
    assert "Save session error" in caplog.text
    assert context.errors == []


def test_template_functions_resolve_urls():
    app, _ = build_app()
    functions = template_functions(app)
    assert functions["url"]("/dashboard") == app.router.url("/dashboard")