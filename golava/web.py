"""Minimal request, response and handler-chain context."""

from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import Any, Callable

Handler = Callable[["Context"], None]

_ABORT_INDEX = sys.maxsize // 2
_READING_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


class NoCookieError(LookupError):
    """The request carries no cookie of the given name."""

    def __init__(self, name: str = "") -> None:
        super().__init__(f"named cookie not present: {name}" if name else "named cookie not present")
        self.name = name


@dataclass
class Request:
    """An incoming HTTP request."""

    method: str = "GET"
    url: str = "/"
    headers: dict[str, str] = field(default_factory=dict)
    cookies: dict[str, str] = field(default_factory=dict)

    def _header(self, name: str) -> str:
        wanted = name.lower()
        return next((value for key, value in self.headers.items() if key.lower() == wanted), "")

    def cookie(self, name: str) -> str:
        """Return the value of cookie ``name``; raise NoCookieError if absent."""
        try:
            return self.cookies[name]
        except KeyError:
            raise NoCookieError(name) from None

    def referer(self) -> str:
        """Return the Referer header, or an empty string."""
        return self._header("Referer")


@dataclass
class Response:
    """An outgoing HTTP response."""

    status: int = 200
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""

    def add_header(self, name: str, value: str) -> None:
        """Append a header, keeping any earlier ones of the same name."""
        self.headers.append((name, value))


def _parse_accept(header: str) -> list[str]:
    accepted = []
    for part in header.split(","):
        cut = part.find(";")
        if cut > 0:
            part = part[:cut]
        part = part.strip()
        if part:
            accepted.append(part)
    return accepted


@dataclass
class Context:
    """One request's trip through a chain of handlers."""

    request: Request = field(default_factory=Request)
    response: Response = field(default_factory=Response)
    handlers: list[Handler] = field(default_factory=list)
    keys: dict[str, Any] = field(default_factory=dict)
    errors: list[BaseException] = field(default_factory=list)
    accepted: list[str] = field(init=False)
    _index: int = field(default=-1, init=False, repr=False)

    def __post_init__(self) -> None:
        self.accepted = _parse_accept(self.request._header("Accept"))

    def next(self) -> None:
        """Run the remaining handlers; called from a handler it wraps the rest."""
        self._index += 1
        while self._index < len(self.handlers):
            self.handlers[self._index](self)
            self._index += 1

    def abort(self) -> None:
        """Stop the handlers after the current one from running."""
        self._index = _ABORT_INDEX

    def is_aborted(self) -> bool:
        return self._index >= _ABORT_INDEX

    def set(self, key: str, value: Any) -> None:
        self.keys[key] = value

    def get(self, key: str) -> Any:
        """Return the value stored under ``key``; raise KeyError if absent."""
        return self.keys[key]

    def error(self, err: BaseException) -> BaseException:
        """Record an error against this request and return it."""
        self.errors.append(err)
        return err

    def redirect(self, code: int, location: str) -> None:
        """Answer with a redirect to ``location``."""
        if (code < 300 or code > 308) and code != 201:
            raise ValueError(f"cannot redirect with status code {code}")
        self.response.status = code
        self.response.headers = [
            (name, value) for name, value in self.response.headers if name.lower() != "location"
        ]
        self.response.add_header("Location", location)


def expect_json(accepts: list[str]) -> bool:
    """Tell whether any accepted media type is JSON."""
    return any(accept.startswith("application/json") for accept in accepts)


def is_reading(method: str) -> bool:
    """Tell whether ``method`` only reads."""
    return method in _READING_METHODS