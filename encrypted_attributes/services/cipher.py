"""
Cipher capability shared by every encryption mode.

A cipher is built once per encrypt/read with its configuration fully
resolved, then used to transform plaintext into an EncryptedValue.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from encrypted_attributes.services.encrypted_value import EncryptedValue
from encrypted_attributes.services.errors import IrreversibleCipherError


@dataclass(frozen=True)
class CipherConfig:
    """Immutable options for one attribute declaration."""

    mode: str
    options: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "mode", self.mode.lower())
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))

    def get(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)


class Cipher(ABC):
    """Base class for digest, symmetric and asymmetric ciphers."""

    reversible: bool = False

    @classmethod
    def from_options(cls, options: Mapping[str, Any]) -> Cipher:
        return cls(**options)

    @classmethod
    def for_write(cls, config: CipherConfig, record: Any) -> Cipher:
        """Build the cipher used to encrypt a new value for ``record``."""
        return cls.from_options(config.options)

    @classmethod
    def for_read(cls, config: CipherConfig, record: Any, payload: str) -> Cipher:
        """Rebuild the cipher that produced a stored ``payload``."""
        return cls.from_options(config.options)

    @abstractmethod
    def encrypt_payload(self, plaintext: str) -> str:
        """Transform plaintext into its storable form."""

    def decrypt(self, payload: str) -> str:
        raise IrreversibleCipherError(f"{type(self).__name__} is a one-way cipher")

    def encrypt(self, plaintext: str) -> EncryptedValue:
        return EncryptedValue(self.encrypt_payload(plaintext), cipher=self)
