"""Authenticated symmetric encryption built on AES."""

from __future__ import annotations

import os
from typing import Protocol

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

NONCE_SIZE = 12
KEY_SIZE = 32
_AES_BLOCK_SIZE = 16


class SupportsEncryption(Protocol):
    """Anything that can encrypt and decrypt byte strings."""

    def encrypt(self, value: bytes) -> bytes:
        """Return ``value`` encrypted."""
        ...

    def decrypt(self, value: bytes) -> bytes:
        """Return the plaintext of ``value``; raise ValueError if it is invalid."""
        ...


class Encrypter:
    """AES-GCM encrypter whose output is the nonce followed by the ciphertext."""

    def __init__(self, key: bytes) -> None:
        self.key = bytes(key)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(<{len(self.key)}-byte key>)"

    def encrypt(self, value: bytes) -> bytes:
        """Encrypt ``value`` under a fresh random nonce."""
        nonce = os.urandom(NONCE_SIZE)
        return nonce + self.gcm_encrypt(value, nonce)

    def decrypt(self, value: bytes) -> bytes:
        """Split off the nonce and decrypt the rest."""
        if len(value) < NONCE_SIZE:
            raise ValueError("unexpected EOF")
        return self.gcm_decrypt(value[NONCE_SIZE:], value[:NONCE_SIZE])

    def gcm_encrypt(self, value: bytes, nonce: bytes) -> bytes:
        """Seal ``value`` with AES-GCM using the given 12-byte nonce."""
        _check_nonce(nonce)
        return AESGCM(self.key).encrypt(bytes(nonce), bytes(value), None)

    def gcm_decrypt(self, ciphertext: bytes, nonce: bytes) -> bytes:
        """Open an AES-GCM ciphertext; raise ValueError if it fails to authenticate."""
        _check_nonce(nonce)
        try:
            return AESGCM(self.key).decrypt(bytes(nonce), bytes(ciphertext), None)
        except InvalidTag as exc:
            raise ValueError("message authentication failed") from exc

    def cbc_encrypt(self, value: bytes, iv: bytes) -> bytes:
        """Encrypt PKCS#7-padded ``value`` with AES-CBC; the IV is not prepended."""
        padded = pkcs7_padding(value, _AES_BLOCK_SIZE)
        encryptor = Cipher(algorithms.AES(self.key), modes.CBC(bytes(iv))).encryptor()
        return encryptor.update(padded) + encryptor.finalize()


def _check_nonce(nonce: bytes) -> None:
    if len(nonce) != NONCE_SIZE:
        raise ValueError(f"nonce must be {NONCE_SIZE} bytes, got {len(nonce)}")


def pkcs7_padding(data: bytes, block_size: int) -> bytes:
    """Pad ``data`` to a multiple of ``block_size`` as PKCS#7 prescribes."""
    padding = block_size - len(data) % block_size
    return bytes(data) + bytes([padding]) * padding


def generate_key() -> bytes:
    """Return a random 256-bit key."""
    return os.urandom(KEY_SIZE)