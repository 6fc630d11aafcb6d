"""Session storage: attribute store, flash data, handlers and serialisation."""

from __future__ import annotations

import base64
import dataclasses
import json
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Mapping, Optional, Protocol

from .cookie import EncryptableCookieManager, with_max_age
from .util import random_token
from .web import NoCookieError

_FLASH_NEW = "_flash.new"
_FLASH_OLD = "_flash.old"
_OLD_INPUT = "_old_input"
_TOKEN = "_token"
_TOKEN_BYTES = 30


class SessionHandler(Protocol):
    """Persists session payloads by session id."""

    def read(self, session_id: str) -> Optional[bytes]:
        """Return the stored payload, or None if there is none."""
        ...

    def write(self, session_id: str, payload: bytes) -> None: ...

    def gc(self, lifetime: timedelta) -> int:
        """Drop sessions idle longer than ``lifetime``; return how many went."""
        ...

    def destroy(self, session_id: str) -> None: ...


def new_session_id() -> str:
    """Return a fresh random session id."""
    return str(uuid.uuid4())


def marshal(value: Any) -> bytes:
    """Encode a value as base64-wrapped JSON."""
    return base64.b64encode(json.dumps(value, separators=(",", ":")).encode("utf-8"))


def unmarshal(data: bytes) -> Any:
    """Decode what :func:`marshal` produced; raise ValueError on bad input."""
    return json.loads(base64.b64decode(data, validate=True).decode("utf-8"))


def input_to_map(value: Any) -> dict[str, Any]:
    """Turn a mapping or a dataclass instance into a dict of its public fields."""
    if isinstance(value, Mapping):
        if not all(isinstance(key, str) for key in value):
            raise TypeError("input map keys must be strings")
        return dict(value)
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            f.name: getattr(value, f.name)
            for f in dataclasses.fields(value)
            if not f.name.startswith("_")
        }
    raise TypeError("input must be a struct or map")


@dataclass
class Store:
    """The attributes of one session and the handler that keeps them."""

    id: str
    handler: SessionHandler
    attributes: dict[str, Any] = field(default_factory=dict)

    def start(self) -> None:
        """Load the stored attributes and make sure a CSRF token exists."""
        self._load_session()
        if not self.has(_TOKEN):
            self.regenerate_token()

    def _load_session(self) -> None:
        payload = self.handler.read(self.id)
        if payload is None:
            return
        loaded = unmarshal(payload)
        if not isinstance(loaded, dict):
            raise ValueError("session payload is not a map")
        self.attributes.update(loaded)

    def get(self, key: str) -> Any:
        """Return the attribute, or None if absent."""
        return self.attributes.get(key)

    def put(self, key: str, value: Any) -> None:
        self.attributes[key] = value

    def has(self, key: str) -> bool:
        return key in self.attributes

    def forget(self, key: str) -> None:
        self.attributes.pop(key, None)

    def flash(self, key: str, value: Any) -> None:
        """Store a value that lives until the end of the next request."""
        self.put(key, value)
        self._push(_FLASH_NEW, key)
        self._remove_from_old_flash_data(key)

    def _push(self, key: str, value: str) -> None:
        if self.attributes.get(key) is None:
            self.attributes[key] = []
        self.attributes[key].append(value)

    def _remove_from_old_flash_data(self, key: str) -> None:
        old = self._string_list(_FLASH_OLD)
        if key not in old:
            self.attributes[_FLASH_OLD] = old

    def _string_list(self, key: str) -> list[str]:
        value = self.attributes.get(key)
        return list(value) if isinstance(value, list) else []

    def age_flash_data(self) -> None:
        """Drop last request's flash data and mark this request's as old."""
        for key in self._string_list(_FLASH_OLD):
            self.forget(key)
        self.attributes[_FLASH_OLD] = self._string_list(_FLASH_NEW)
        self.attributes[_FLASH_NEW] = []

    def _compact_for_storage(self) -> None:
        for key in (_FLASH_NEW, _FLASH_OLD):
            if not self._string_list(key):
                self.attributes.pop(key, None)

    def save(self) -> None:
        """Age the flash data and write the attributes through the handler."""
        self.age_flash_data()
        self._compact_for_storage()
        self.handler.write(self.id, marshal(self.attributes))

    def flash_input(self, value: Any) -> None:
        self.flash(_OLD_INPUT, input_to_map(value))

    def get_old_input(self) -> Optional[dict[str, Any]]:
        """Return the flashed input, or None if there is none."""
        return self.get(_OLD_INPUT)

    def get_old_input_value(self, key: str) -> Any:
        data = self.get_old_input()
        if data is None:
            return None
        return data.get(key)

    def migrate(self, destroy: bool) -> None:
        """Move to a new session id, destroying the old session if asked."""
        if destroy:
            self.handler.destroy(self.id)
        self.id = new_session_id()

    def remove(self, key: str) -> None:
        self.attributes.pop(key, None)

    def flush(self) -> None:
        self.attributes = {}

    def invalidate(self) -> None:
        """Clear all attributes and move to a fresh session."""
        self.flush()
        self.migrate(True)

    def token(self) -> str:
        value = self.get(_TOKEN)
        return value if isinstance(value, str) else ""

    def regenerate_token(self) -> None:
        self.put(_TOKEN, random_token(_TOKEN_BYTES))


@dataclass
class SessionManager:
    """A named session with its store and lifetime."""

    name: str
    store: Store
    lifetime: timedelta = timedelta(0)
    http_only: bool = False

    def migrate_name(self) -> str:
        """Return the name of the cookie that carries a migrating session id."""
        return self.name + "_migrate"


@dataclass
class SessionFactory:
    """Makes a fresh session for each request."""

    name: str
    lifetime: timedelta
    handler: SessionHandler
    http_only: bool = False

    def make(self) -> SessionManager:
        return SessionManager(
            name=self.name,
            store=Store(new_session_id(), self.handler),
            lifetime=self.lifetime,
            http_only=self.http_only,
        )


def get_flash_errors(store: Store) -> Optional[dict[str, str]]:
    """Return the flashed validation errors, or None."""
    errors = store.get("errors")
    return errors if isinstance(errors, dict) else None


def get_flash_error(store: Store, key: str) -> str:
    errors = get_flash_errors(store)
    if errors is None:
        return ""
    return errors.get(key, "")


@dataclass
class CookieSessionHandler:
    """Keeps the whole session payload in an encrypted cookie."""

    cookie: EncryptableCookieManager
    expiration: timedelta

    def read(self, session_id: str) -> Optional[bytes]:
        try:
            value = self.cookie.encryption().get(session_id)
        except NoCookieError:
            return None
        return value.encode("utf-8")

    def write(self, session_id: str, payload: bytes) -> None:
        self.cookie.encryption().set(
            session_id,
            payload.decode("utf-8"),
            with_max_age(int(self.expiration.total_seconds())),
        )

    def gc(self, lifetime: timedelta) -> int:
        """Report no removals: cookie sessions expire on the client, by max-age."""
        expired_on_server = 0
        return expired_on_server

    def destroy(self, session_id: str) -> None:
        self.cookie.forget(session_id)