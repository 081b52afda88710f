"""
The value type stored in an encrypted attribute.

An EncryptedValue wraps the transformed payload exactly as it is persisted.
A cipher may be attached once, after which the value can be compared
against candidate plaintexts (and decrypted, for reversible ciphers).
"""

from __future__ import annotations

import hmac
from typing import TYPE_CHECKING

from encrypted_attributes.services.errors import (
    CipherAlreadyAttachedError,
    IrreversibleCipherError,
)

if TYPE_CHECKING:
    from encrypted_attributes.services.cipher import Cipher


class EncryptedValue:
    """Transformed payload plus an optional, attach-once cipher context."""

    __slots__ = ("_payload", "_cipher")

    def __init__(self, payload: str | bytes, cipher: Cipher | None = None):
        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")
        self._payload = payload
        self._cipher = cipher

    @property
    def payload(self) -> str:
        return self._payload

    @property
    def cipher(self) -> Cipher | None:
        return self._cipher

    @property
    def encrypted(self) -> bool:
        """True once a cipher is attached and the value is plaintext-comparable."""
        return self._cipher is not None

    def attach(self, cipher: Cipher) -> EncryptedValue:
        if self._cipher is not None:
            raise CipherAlreadyAttachedError("A cipher is already attached to this value")
        self._cipher = cipher
        return self

    def equals_plaintext(self, candidate: str | None) -> bool:
        """
        Check whether this value was produced from ``candidate``.

        One-way ciphers recompute the payload from the candidate; reversible
        ciphers decrypt the payload instead, because their output is
        randomized. Without a cipher only the raw payload can be compared.
        """
        if candidate is None:
            return False
        if self._cipher is None:
            return _safe_equals(self._payload, candidate)
        if self._cipher.reversible:
            return _safe_equals(self._cipher.decrypt(self._payload), candidate)
        return _safe_equals(self._cipher.encrypt(candidate).payload, self._payload)

    def decrypt(self) -> str:
        if self._cipher is None or not self._cipher.reversible:
            raise IrreversibleCipherError("This value cannot be decrypted")
        return self._cipher.decrypt(self._payload)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, EncryptedValue):
            return self._payload == other._payload
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._payload)

    def __len__(self) -> int:
        return len(self._payload)

    def __str__(self) -> str:
        return self._payload

    def __repr__(self) -> str:
        state = type(self._cipher).__name__ if self._cipher else "stored"
        return f"<EncryptedValue {state} {self._payload[:12]}...>"


def _safe_equals(left: str, right: str) -> bool:
    return hmac.compare_digest(left.encode("utf-8"), right.encode("utf-8"))
