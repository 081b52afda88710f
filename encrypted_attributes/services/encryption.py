"""
Reversible ciphers backed by the ``cryptography`` package.

- SymmetricCipher: Fernet (AES-128-CBC + HMAC-SHA256), key from settings or
  the attribute declaration.
- AsymmetricCipher: RSA-OAEP (SHA-256), encrypting with the public key and
  decrypting with the private key.

Key material is never generated implicitly; a missing or malformed key is a
ConfigurationError.
"""

from __future__ import annotations

import base64

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from encrypted_attributes.config import settings
from encrypted_attributes.services.cipher import Cipher
from encrypted_attributes.services.errors import ConfigurationError, DecryptionError


class SymmetricCipher(Cipher):
    """Wraps Fernet symmetric encryption for attribute values."""

    reversible = True

    def __init__(self, key: str | bytes | None = None):
        raw_key = key or settings.SYMMETRIC_ENCRYPTION_KEY
        if not raw_key:
            # In production the key comes from a secrets manager via the environment
            raise ConfigurationError("SYMMETRIC_ENCRYPTION_KEY is not set")
        try:
            self._fernet = Fernet(raw_key.encode() if isinstance(raw_key, str) else raw_key)
        except (ValueError, TypeError) as exc:
            raise ConfigurationError(f"Invalid symmetric key: {exc}") from exc

    @staticmethod
    def generate_key() -> str:
        return Fernet.generate_key().decode()

    def encrypt_payload(self, plaintext: str) -> str:
        """Encrypt a string and return base64-encoded ciphertext."""
        return self._fernet.encrypt(plaintext.encode()).decode()

    def decrypt(self, payload: str) -> str:
        """Decrypt base64-encoded ciphertext back to plaintext."""
        try:
            return self._fernet.decrypt(payload.encode()).decode()
        except InvalidToken as exc:
            raise DecryptionError("Payload was not produced with the configured symmetric key") from exc


class AsymmetricCipher(Cipher):
    """RSA-OAEP encryption with PEM keys given inline or as file paths."""

    reversible = True

    def __init__(
        self,
        public_key: str | bytes | None = None,
        private_key: str | bytes | None = None,
        public_key_file: str | None = None,
        private_key_file: str | None = None,
        passphrase: str | None = None,
    ):
        public_pem = public_key or _read_pem(public_key_file or settings.ASYMMETRIC_PUBLIC_KEY_FILE)
        private_pem = private_key or _read_pem(private_key_file or settings.ASYMMETRIC_PRIVATE_KEY_FILE)
        if not public_pem and not private_pem:
            raise ConfigurationError("No public or private key configured for asymmetric encryption")

        passphrase = passphrase or settings.ASYMMETRIC_PRIVATE_KEY_PASSPHRASE or None
        try:
            self._private_key = (
                serialization.load_pem_private_key(
                    _as_bytes(private_pem),
                    password=passphrase.encode() if passphrase else None,
                )
                if private_pem
                else None
            )
            if public_pem:
                self._public_key = serialization.load_pem_public_key(_as_bytes(public_pem))
            else:
                self._public_key = self._private_key.public_key()
        except (ValueError, TypeError, UnsupportedAlgorithm) as exc:
            raise ConfigurationError(f"Invalid asymmetric key: {exc}") from exc

        if not isinstance(self._public_key, rsa.RSAPublicKey):
            raise ConfigurationError("Asymmetric encryption requires an RSA key")

    @property
    def can_decrypt(self) -> bool:
        return self._private_key is not None

    def encrypt_payload(self, plaintext: str) -> str:
        ciphertext = self._public_key.encrypt(plaintext.encode(), _oaep())
        return base64.b64encode(ciphertext).decode()

    def decrypt(self, payload: str) -> str:
        if self._private_key is None:
            raise ConfigurationError("A private key is required to decrypt")
        try:
            return self._private_key.decrypt(base64.b64decode(payload), _oaep()).decode()
        except ValueError as exc:
            raise DecryptionError("Payload was not produced with the configured key pair") from exc


def _oaep() -> padding.OAEP:
    return padding.OAEP(mgf=padding.MGF1(algorithm=hashes.SHA256()), algorithm=hashes.SHA256(), label=None)


def _read_pem(path: str | None) -> bytes | None:
    if not path:
        return None
    try:
        with open(path, "rb") as fh:
            return fh.read()
    except OSError as exc:
        raise ConfigurationError(f"Cannot read key file {path}: {exc}") from exc


def _as_bytes(pem: str | bytes) -> bytes:
    return pem.encode() if isinstance(pem, str) else pem
