"""HTTP cookies, a manager that reads and writes them, and an encrypting layer."""

from __future__ import annotations

import base64
import dataclasses
import email.utils
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from .encryption import SupportsEncryption
from .web import Context, Handler, Request, Response

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_OLDEST_VALID_YEAR = 1601


class SameSite(Enum):
    """The SameSite attribute of a cookie; DEFAULT writes no attribute."""

    DEFAULT = ""
    LAX = "Lax"
    STRICT = "Strict"
    NONE = "None"


def _format_expires(expires: datetime) -> str:
    if expires.tzinfo is None:
        expires = expires.replace(tzinfo=timezone.utc)
    return email.utils.format_datetime(expires.astimezone(timezone.utc), usegmt=True)


def _quote_value(value: str) -> str:
    if " " in value or "," in value:
        return f'"{value}"'
    return value


@dataclass
class Cookie:
    """A cookie as written in a Set-Cookie header."""

    name: str
    value: str = ""
    path: str = ""
    domain: str = ""
    expires: Optional[datetime] = None
    max_age: int = 0
    secure: bool = False
    http_only: bool = False
    same_site: SameSite = SameSite.DEFAULT

    def render(self) -> str:
        """Return the Set-Cookie header value; a max_age of 0 writes no Max-Age."""
        parts = [f"{self.name}={_quote_value(self.value)}"]
        if self.path:
            parts.append(f"Path={self.path}")
        domain = self.domain.lstrip(".")
        if domain:
            parts.append(f"Domain={domain}")
        if self.expires is not None and self.expires.year >= _OLDEST_VALID_YEAR:
            parts.append(f"Expires={_format_expires(self.expires)}")
        if self.max_age > 0:
            parts.append(f"Max-Age={self.max_age}")
        elif self.max_age < 0:
            parts.append("Max-Age=0")
        if self.http_only:
            parts.append("HttpOnly")
        if self.secure:
            parts.append("Secure")
        if self.same_site is not SameSite.DEFAULT:
            parts.append(f"SameSite={self.same_site.value}")
        return "; ".join(parts)


WriteOption = Callable[[Cookie], None]


class _CookieJar(Protocol):
    def set(self, name: str, value: str, *options: WriteOption) -> None: ...

    def get(self, name: str) -> str: ...

    def write(self, cookie: Cookie) -> None: ...

    def read(self, name: str) -> Cookie: ...

    def new_cookie(self, name: str, value: str) -> Cookie: ...

    def bind(self, request: Request, response: Response) -> None: ...

    def forget(self, name: str, *options: WriteOption) -> None: ...


@dataclass
class CookieManager:
    """Reads cookies from the bound request and writes them to the bound response."""

    path: str = ""
    domain: str = ""
    secure: bool = False
    same_site: SameSite = SameSite.DEFAULT
    request: Optional[Request] = None
    response: Optional[Response] = None

    def set(self, name: str, value: str, *options: WriteOption) -> None:
        cookie = self.new_cookie(name, value)
        for option in options:
            option(cookie)
        self.write(cookie)

    def get(self, name: str) -> str:
        """Return a cookie's value; raise NoCookieError if it is absent."""
        return self.read(name).value

    def write(self, cookie: Cookie) -> None:
        if self.response is None:
            raise RuntimeError("cookie manager is not bound to a response")
        self.response.add_header("Set-Cookie", cookie.render())

    def read(self, name: str) -> Cookie:
        if self.request is None:
            raise RuntimeError("cookie manager is not bound to a request")
        return Cookie(name=name, value=self.request.cookie(name))

    def new_cookie(self, name: str, value: str) -> Cookie:
        return Cookie(
            name=name,
            value=value,
            path=self.path,
            domain=self.domain,
            secure=self.secure,
            same_site=self.same_site,
            http_only=True,
        )

    def bind(self, request: Request, response: Response) -> None:
        """Attach the manager to the current request and response."""
        self.request = request
        self.response = response

    def forget(self, name: str, *options: WriteOption) -> None:
        """Write an already expired cookie so the client drops it."""
        cookie = self.new_cookie(name, "")
        for option in options:
            option(cookie)
        cookie.max_age = 0
        cookie.expires = EPOCH
        self.write(cookie)


@dataclass
class EncryptCookieManager:
    """Encrypts cookie values before handing them to the base manager."""

    base: _CookieJar
    encrypter: SupportsEncryption

    def _seal(self, value: str) -> str:
        encrypted = self.encrypter.encrypt(value.encode("utf-8"))
        return base64.b64encode(encrypted).decode("ascii")

    def _open(self, value: str) -> str:
        decoded = base64.b64decode(value, validate=True)
        return self.encrypter.decrypt(decoded).decode("utf-8")

    def set(self, name: str, value: str, *options: WriteOption) -> None:
        self.base.set(name, self._seal(value), *options)

    def get(self, name: str) -> str:
        """Return the decrypted value; raise ValueError if it cannot be decrypted."""
        return self._open(self.base.get(name))

    def write(self, cookie: Cookie) -> None:
        self.base.write(dataclasses.replace(cookie, value=self._seal(cookie.value)))

    def read(self, name: str) -> Cookie:
        cookie = self.base.read(name)
        cookie.value = self._open(cookie.value)
        return cookie

    def new_cookie(self, name: str, value: str) -> Cookie:
        return self.base.new_cookie(name, value)

    def bind(self, request: Request, response: Response) -> None:
        self.base.bind(request, response)

    def forget(self, name: str, *options: WriteOption) -> None:
        self.base.forget(name, *options)


@dataclass
class EncryptableCookieManager:
    """A plain cookie manager that also offers an encrypting view of itself."""

    base: _CookieJar
    encrypter: SupportsEncryption
    _encrypted: EncryptCookieManager = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._encrypted = EncryptCookieManager(base=self.base, encrypter=self.encrypter)

    def encryption(self) -> EncryptCookieManager:
        """Return the manager that encrypts values."""
        return self._encrypted

    def set(self, name: str, value: str, *options: WriteOption) -> None:
        self.base.set(name, value, *options)

    def get(self, name: str) -> str:
        return self.base.get(name)

    def write(self, cookie: Cookie) -> None:
        self.base.write(cookie)

    def read(self, name: str) -> Cookie:
        return self.base.read(name)

    def new_cookie(self, name: str, value: str) -> Cookie:
        return self.base.new_cookie(name, value)

    def bind(self, request: Request, response: Response) -> None:
        self.base.bind(request, response)

    def forget(self, name: str, *options: WriteOption) -> None:
        self.base.forget(name, *options)


def with_max_age(max_age: int) -> WriteOption:
    def apply(cookie: Cookie) -> None:
        cookie.max_age = max_age

    return apply


def with_expires(expires: datetime) -> WriteOption:
    def apply(cookie: Cookie) -> None:
        cookie.expires = expires

    return apply


def with_path(path: str) -> WriteOption:
    def apply(cookie: Cookie) -> None:
        cookie.path = path

    return apply


def with_domain(domain: str) -> WriteOption:
    def apply(cookie: Cookie) -> None:
        cookie.domain = domain

    return apply


def with_secure(secure: bool) -> WriteOption:
    def apply(cookie: Cookie) -> None:
        cookie.secure = secure

    return apply


def with_http_only(http_only: bool) -> WriteOption:
    def apply(cookie: Cookie) -> None:
        cookie.http_only = http_only

    return apply


def with_same_site(same_site: SameSite) -> WriteOption:
    def apply(cookie: Cookie) -> None:
        cookie.same_site = same_site

    return apply


def cookie_middleware(manager: _CookieJar) -> Handler:
    """Return a handler that binds ``manager`` to each request before the rest run."""

    def handler(context: Context) -> None:
        manager.bind(context.request, context.response)
        context.next()

    return handler