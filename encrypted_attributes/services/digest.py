"""
Salted one-way digests with optional salt embedding.

With embedding enabled the stored payload is ``hexdigest || salt`` with no
delimiter. The algorithm's fixed hex length is the only way to split the two
apart again, so changing the algorithm of an attribute that already holds
data is a breaking change.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Any

from encrypted_attributes.config import settings
from encrypted_attributes.services.cipher import Cipher, CipherConfig
from encrypted_attributes.services.errors import ConfigurationError
from encrypted_attributes.services.salt import Absent, Direction, SaltSpec, as_salt_spec

logger = logging.getLogger(__name__)

# Hex characters produced by each supported algorithm.
ALGORITHM_LENGTHS: dict[str, int] = {
    "md5": 32,
    "sha1": 40,
    "sha224": 56,
    "sha256": 64,
    "sha384": 96,
    "sha512": 128,
}


def normalize_algorithm(algorithm: str) -> str:
    name = algorithm.lower().replace("-", "").replace("_", "")
    if name not in ALGORITHM_LENGTHS:
        raise ConfigurationError(f"Unsupported digest algorithm: {algorithm!r}")
    return name


def digest_length(algorithm: str) -> int:
    return ALGORITHM_LENGTHS[normalize_algorithm(algorithm)]


class DigestCipher(Cipher):
    """One-way cipher computing ``digest(plaintext + salt)``."""

    def __init__(self, salt: str | None = None, algorithm: str | None = None, embed: bool = False):
        self.algorithm = normalize_algorithm(algorithm or settings.DIGEST_ALGORITHM)
        self.salt = salt or ""
        self.embed = embed

    @classmethod
    def from_options(cls, options):
        return cls.for_write(CipherConfig("sha", options), None)

    @classmethod
    def for_write(cls, config: CipherConfig, record: Any) -> DigestCipher:
        spec = as_salt_spec(config.get("salt"))
        salt = _resolve(spec, record, Direction.WRITE)
        embed = config.get("embed_salt")
        if embed is None:
            embed = spec.dynamic
        return cls(salt=salt, algorithm=config.get("algorithm"), embed=bool(embed))

    @classmethod
    def for_read(cls, config: CipherConfig, record: Any, payload: str) -> DigestCipher:
        algorithm = normalize_algorithm(config.get("algorithm") or settings.DIGEST_ALGORITHM)

        # The embedded tail reflects the salt actually used for this payload,
        # so it takes precedence over whatever the declaration resolves to.
        if config.get("embed_salt") is not False:
            tail = payload[ALGORITHM_LENGTHS[algorithm]:]
            if tail:
                return cls(salt=tail, algorithm=algorithm, embed=True)

        spec = as_salt_spec(config.get("salt"))
        return cls(salt=_resolve(spec, record, Direction.READ), algorithm=algorithm, embed=False)

    def encrypt_payload(self, plaintext: str) -> str:
        digest = hashlib.new(self.algorithm, (plaintext + self.salt).encode("utf-8")).hexdigest()
        if self.embed:
            digest += self.salt
        return digest

    def __repr__(self) -> str:
        return f"DigestCipher(algorithm={self.algorithm!r}, embed={self.embed})"


def _resolve(spec: SaltSpec, record: Any, direction: Direction) -> str | None:
    if isinstance(spec, Absent):
        return settings.DIGEST_DEFAULT_SALT
    return spec.resolve(record, direction)
