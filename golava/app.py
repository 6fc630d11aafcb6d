"""The application object holding shared services."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

from .cookie import EncryptableCookieManager
from .encryption import SupportsEncryption
from .hashing import Hasher
from .router import Router
from .session import SessionFactory


@runtime_checkable
class GolavaApp(Protocol):
    """Anything that exposes the core application object."""

    def base(self) -> "App": ...


@dataclass
class App:
    """Shared services of one application."""

    name: str = ""
    debug: bool = False
    app_key: bytes = field(default=b"", repr=False)
    router: Optional[Router] = None
    cookie: Optional[EncryptableCookieManager] = None
    encryption: Optional[SupportsEncryption] = None
    hashing: Optional[Hasher] = None
    session_factory: Optional[SessionFactory] = None

    def base(self) -> "App":
        """Return the core application object, which is this one."""
        return self