"""Template data assembled from the current request."""

from __future__ import annotations

from typing import Any, Callable, Mapping

from markupsafe import Markup, escape

from .instance import must_get_instance
from .session import Store, get_flash_errors
from .web import Context


class TemplateData(dict):
    """Values handed to a template."""

    def wrap(self, data: Mapping[str, Any]) -> "TemplateData":
        """Merge ``data`` in and return this object."""
        self.update(data)
        return self


TemplateDataFunc = Callable[[Context, TemplateData], TemplateData]


def new(context: Context, *funcs: TemplateDataFunc) -> TemplateData:
    """Build template data by applying ``funcs`` in order."""
    data = TemplateData()
    for func in funcs:
        data = func(context, data)
    return data


def default(context: Context, *funcs: TemplateDataFunc) -> TemplateData:
    """Build template data with ``funcs`` followed by the standard ones."""
    return new(context, *funcs, with_metadata, with_errors, with_old, with_csrf, with_auth)


def _store(context: Context) -> Store:
    instance = must_get_instance(context)
    if instance.session is None:
        raise RuntimeError("session has not been started")
    return instance.session.store


def with_metadata(context: Context, data: TemplateData) -> TemplateData:
    instance = must_get_instance(context)
    data["app"] = {"name": instance.app.base().name}
    return data


def with_errors(context: Context, data: TemplateData) -> TemplateData:
    data["errors"] = get_flash_errors(_store(context))
    return data


def with_old(context: Context, data: TemplateData) -> TemplateData:
    old = _store(context).get_old_input()
    data["old"] = old if old is not None else {}
    return data


def with_csrf(context: Context, data: TemplateData) -> TemplateData:
    token = _store(context).token()
    data["csrf_token"] = token
    data["csrf"] = Markup(f'<input type="hidden" name="_token" value="{escape(token)}">')
    return data


def with_auth(context: Context, data: TemplateData) -> TemplateData:
    data["auth"] = must_get_instance(context).auth
    return data