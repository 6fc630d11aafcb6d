"""Per-request state attached to the handler context."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .app import GolavaApp
from .auth import Guard
from .router import Redirector
from .session import SessionManager
from .web import Context, Handler

_INSTANCE_KEY = "instance"


class InstanceError(LookupError):
    """The context carries no usable request instance."""


@dataclass
class Instance:
    """The application, session, guard and redirector for one request."""

    app: GolavaApp
    redirector: Redirector
    session: Optional[SessionManager] = None
    auth: Optional[Guard] = None


def new_instance(app: GolavaApp) -> Handler:
    """Return a handler that attaches a fresh Instance to each request."""

    def handler(context: Context) -> None:
        redirector = Redirector(router=app.base().router, context=context)  # type: ignore[arg-type]
        context.set(_INSTANCE_KEY, Instance(app=app, redirector=redirector))
        context.next()

    return handler


def get_instance(context: Context) -> Instance:
    """Return the request's Instance; raise InstanceError if absent or of the wrong type."""
    try:
        found = context.get(_INSTANCE_KEY)
    except KeyError:
        raise InstanceError("instance not found in context") from None
    if not isinstance(found, Instance):
        raise InstanceError("instance is not of type Instance")
    return found


def must_get_instance(context: Context) -> Instance:
    """Return the request's Instance, which handlers rely on being present."""
    return get_instance(context)