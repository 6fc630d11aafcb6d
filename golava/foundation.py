"""Request handlers that authenticate, start and save sessions."""

from __future__ import annotations

import logging
import random
from typing import Any, Callable

from .app import GolavaApp
from .auth import UnauthenticatedError
from .cookie import EncryptCookieManager, with_max_age
from .instance import must_get_instance
from .session import SessionManager
from .web import Context, Handler, NoCookieError

_log = logging.getLogger(__name__)

_SEE_OTHER = 303
_GC_LOTTERY_ODDS = 100


def authenticate(context: Context) -> None:
    """Stop the request with UnauthenticatedError unless a user is logged in."""
    instance = must_get_instance(context)
    if instance.auth is None or not instance.auth.check():
        context.error(UnauthenticatedError())
        context.abort()
        return
    context.next()


def redirect_if_authenticated(redirect_to: str) -> Handler:
    """Return a handler that sends logged-in users to ``redirect_to``."""

    def handler(context: Context) -> None:
        instance = must_get_instance(context)
        if instance.auth is not None and instance.auth.check():
            instance.redirector.redirect(_SEE_OTHER, redirect_to)
            context.abort()
            return
        context.next()

    return handler


def _read_encrypted(cookies: EncryptCookieManager, name: str) -> str:
    try:
        return cookies.get(name)
    except (NoCookieError, ValueError):
        return ""


def _collect_garbage(session: SessionManager) -> None:
    if random.randrange(_GC_LOTTERY_ODDS) == 0:
        session.store.handler.gc(session.lifetime)


def start_session(context: Context) -> None:
    """Open the request's session from its cookie, or start a new one."""
    instance = must_get_instance(context)
    app = instance.app.base()
    session = app.session_factory.make()
    instance.session = session
    instance.redirector.session = session

    encrypted = app.cookie.encryption()
    migrate_id = _read_encrypted(encrypted, session.migrate_name())
    session_id = migrate_id or _read_encrypted(encrypted, session.name)
    if session_id:
        session.store.id = session_id

    try:
        session.store.start()
        _collect_garbage(session)
    except Exception as exc:
        context.error(exc)
        context.abort()
        return

    encrypted.set(
        session.name,
        session.store.id,
        with_max_age(int(session.lifetime.total_seconds())),
    )
    if migrate_id:
        app.cookie.forget(session.migrate_name())

    context.next()


def save_session(context: Context) -> None:
    """Run the remaining handlers, then save the session if one was started."""
    instance = must_get_instance(context)
    context.next()
    if instance.session is not None:
        try:
            instance.session.store.save()
        except Exception as exc:
            _log.error("Save session error %s", exc)


def template_functions(app: GolavaApp) -> dict[str, Callable[..., Any]]:
    """Return the functions templates may call, keyed by name."""
    return {"url": app.base().router.url}