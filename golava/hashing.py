"""Password hashers for argon2id and bcrypt, and a manager choosing between them."""

from __future__ import annotations

import base64
import binascii
import hmac
import os
import re
from dataclasses import dataclass, field
from typing import Protocol

import bcrypt
from cryptography.hazmat.primitives.kdf.argon2 import Argon2id

_ARGON2_VERSION = 19
_ARGON2_PREFIX = "$argon2id$"
_BCRYPT_PREFIXES = ("$2a$", "$2b$")
_BCRYPT_MIN_COST = 4
_BCRYPT_MAX_COST = 31
_BCRYPT_DEFAULT_COST = 10
_BCRYPT_MIN_HASH_SIZE = 59
_BCRYPT_MAX_INPUT_BYTES = 72
_TEXT_ENCODING = "utf-8"

_DEPRECATED_HASHERS = frozenset({"bcrypt"})

_VERSION_RE = re.compile(r"v=(\d+)")
_PARAMS_RE = re.compile(r"m=(\d+),t=(\d+),p=(\d+)")


class Hasher(Protocol):
    """A one-way password hasher."""

    def make(self, value: str) -> str:
        """Hash ``value``."""
        ...

    def check(self, value: str, hashed_value: str) -> bool:
        """Tell whether ``value`` matches ``hashed_value``."""
        ...

    def needs_rehash(self, hashed_value: str) -> bool:
        """Tell whether ``hashed_value`` should be hashed again."""
        ...


class UnknownHasherError(ValueError):
    """No hasher is known for the hash's format."""

    def __init__(self, message: str = "unknown hasher") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class Argon2idParams:
    """Cost parameters for argon2id; memory is in KiB."""

    memory: int = 64 * 1024
    iterations: int = 1
    parallelism: int = 2
    salt_length: int = 16
    key_length: int = 32


def _b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii").rstrip("=")


def _b64decode(text: str) -> bytes:
    if "=" in text:
        raise ValueError("argon2id: hash is not in the correct format")
    try:
        return base64.b64decode(text + "=" * (-len(text) % 4), validate=True)
    except binascii.Error as exc:
        raise ValueError("argon2id: hash is not in the correct format") from exc


def _argon2id_key(value: str, salt: bytes, params: Argon2idParams, length: int) -> bytes:
    kdf = Argon2id(
        salt=salt,
        length=length,
        iterations=params.iterations,
        lanes=params.parallelism,
        memory_cost=params.memory,
    )
    return kdf.derive(value.encode(_TEXT_ENCODING))


@dataclass
class Argon2idHasher:
    """Hashes passwords with argon2id in the PHC string format."""

    params: Argon2idParams = field(default_factory=Argon2idParams)

    def make(self, value: str) -> str:
        params = self.params
        salt = os.urandom(params.salt_length)
        key = _argon2id_key(value, salt, params, params.key_length)
        return (
            f"$argon2id$v={_ARGON2_VERSION}"
            f"$m={params.memory},t={params.iterations},p={params.parallelism}"
            f"${_b64encode(salt)}${_b64encode(key)}"
        )

    def check(self, value: str, hashed_value: str) -> bool:
        """Compare ``value`` with an argon2id hash; raise ValueError if it is malformed."""
        parts = hashed_value.split("$")
        if len(parts) != 6:
            raise ValueError("argon2id: hash is not in the correct format")
        version = _VERSION_RE.match(parts[2])
        if version is None:
            raise ValueError("argon2id: hash is not in the correct format")
        if int(version.group(1)) != _ARGON2_VERSION:
            raise ValueError("argon2id: incompatible version of argon2")
        found = _PARAMS_RE.match(parts[3])
        if found is None:
            raise ValueError("argon2id: hash is not in the correct format")
        salt = _b64decode(parts[4])
        expected = _b64decode(parts[5])
        params = Argon2idParams(
            memory=int(found.group(1)),
            iterations=int(found.group(2)),
            parallelism=int(found.group(3)),
            salt_length=len(salt),
            key_length=len(expected),
        )
        derived = _argon2id_key(value, salt, params, len(expected))
        return hmac.compare_digest(derived, expected)

    def needs_rehash(self, hashed_value: str) -> bool:
        return not hashed_value.startswith(_ARGON2_PREFIX)


def _bcrypt_cost(hashed_value: str) -> int | None:
    if len(hashed_value) < _BCRYPT_MIN_HASH_SIZE:
        return None
    digits = hashed_value[4:6]
    if not digits.isdigit() or hashed_value[6:7] != "$":
        return None
    cost = int(digits)
    if not _BCRYPT_MIN_COST <= cost <= _BCRYPT_MAX_COST:
        return None
    return cost


@dataclass
class BcryptHasher:
    """Hashes passwords with bcrypt at a fixed cost."""

    cost: int = _BCRYPT_DEFAULT_COST

    def make(self, value: str) -> str:
        raw = value.encode(_TEXT_ENCODING)
        if len(raw) > _BCRYPT_MAX_INPUT_BYTES:
            raise ValueError("bcrypt: password length exceeds 72 bytes")
        cost = self.cost if self.cost >= _BCRYPT_MIN_COST else _BCRYPT_DEFAULT_COST
        if cost > _BCRYPT_MAX_COST:
            raise ValueError(f"bcrypt: cost {cost} is outside allowed range")
        return bcrypt.hashpw(raw, bcrypt.gensalt(rounds=cost, prefix=b"2a")).decode("ascii")

    def check(self, value: str, hashed_value: str) -> bool:
        """Compare ``value`` with a bcrypt hash; raise ValueError if it is malformed."""
        return bcrypt.checkpw(value.encode(_TEXT_ENCODING), hashed_value.encode(_TEXT_ENCODING))

    def needs_rehash(self, hashed_value: str) -> bool:
        if not hashed_value.startswith(_BCRYPT_PREFIXES):
            return True
        cost = _bcrypt_cost(hashed_value)
        if cost is None:
            return False
        return cost != self.cost


DEFAULT_ARGON2ID_HASHER = Argon2idHasher()
DEFAULT_BCRYPT_HASHER = BcryptHasher()


def _default_hashers() -> dict[str, Hasher]:
    return {"bcrypt": DEFAULT_BCRYPT_HASHER, "argon2id": DEFAULT_ARGON2ID_HASHER}


def _default_prefixes() -> dict[str, str]:
    return {"$2a$": "bcrypt", "$2b$": "bcrypt", "$argon2id$": "argon2id"}


@dataclass
class HasherManager:
    """Hashes with a default hasher and checks hashes by their prefix."""

    default_hasher: str = "argon2id"
    hashers: dict[str, Hasher] = field(default_factory=_default_hashers)
    hash_prefixes: dict[str, str] = field(default_factory=_default_prefixes)

    def _hasher(self, name: str | None) -> Hasher:
        if name is None or name not in self.hashers:
            raise UnknownHasherError()
        return self.hashers[name]

    def make(self, value: str) -> str:
        return self._hasher(self.default_hasher).make(value)

    def check(self, value: str, hashed_value: str) -> bool:
        return self._hasher(self.identify_hasher(hashed_value)).check(value, hashed_value)

    def needs_rehash(self, hashed_value: str) -> bool:
        name = self.identify_hasher(hashed_value)
        if name in _DEPRECATED_HASHERS:
            return True
        return self._hasher(name).needs_rehash(hashed_value)

    def identify_hasher(self, hashed_value: str) -> str | None:
        """Return the name of the hasher that made ``hashed_value``, or None."""
        segments = hashed_value.split("$", 2)
        if len(segments) < 2:
            return None
        return self.hash_prefixes.get(f"{segments[0]}${segments[1]}$")