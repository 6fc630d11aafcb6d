"""URL resolution against a base URL, and redirect helpers for a request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from urllib.parse import urljoin, urlsplit

from .session import SessionManager
from .web import Context, expect_json

_INTENDED_KEY = "url.intended"


@dataclass
class Router:
    """Resolves paths against the application's base URL."""

    base_url: str

    def url(self, path: str) -> str:
        """Return ``path`` resolved against the base URL."""
        return urljoin(self.base_url, path)


def new_router(base_url: str) -> Router:
    """Make a router; raise ValueError if ``base_url`` cannot be parsed."""
    try:
        urlsplit(base_url)
    except ValueError as exc:
        raise ValueError(f"invalid base URL {base_url!r}: {exc}") from exc
    return Router(base_url=base_url)


@dataclass
class Redirector:
    """Sends redirect responses for one request and remembers intended URLs."""

    router: Router
    context: Context
    session: Optional[SessionManager] = None

    def _session(self) -> SessionManager:
        if self.session is None:
            raise RuntimeError("redirector has no session")
        return self.session

    def redirect(self, code: int, path: str) -> None:
        """Redirect to ``path`` resolved against the base URL."""
        self.context.redirect(code, self.router.url(path))

    def intended(self, code: int, path: str) -> None:
        """Remember ``path`` as the intended URL and redirect to it."""
        self._session().store.flash(_INTENDED_KEY, path)
        self.redirect(code, path)

    def set_intended_url(self, url: str) -> None:
        self._session().store.flash(_INTENDED_KEY, url)

    def guest(self, code: int, path: str) -> None:
        """Remember where the guest was heading, then redirect to ``path``."""
        request = self.context.request
        if request.method == "GET" and not expect_json(self.context.accepted):
            self.set_intended_url(request.url)
        else:
            self.set_intended_url(self.previous())
        self.context.redirect(code, self.router.url(path))

    def previous(self, fallback: Optional[str] = None) -> str:
        """Return the referring URL, else ``fallback`` or the site root resolved."""
        referer = self.context.request.referer()
        if referer:
            return referer
        return self.router.url(fallback if fallback is not None else "/")

    def back(self, code: int, fallback: Optional[str] = None) -> None:
        """Redirect to the previous URL."""
        self.context.redirect(code, self.previous(fallback))