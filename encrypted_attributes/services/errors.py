"""Exception hierarchy for encrypted attributes."""


class EncryptedAttributesError(Exception):
    """Base class for every error raised by this package."""


class ConfigurationError(EncryptedAttributesError):
    """Missing or invalid cipher configuration (keys, algorithm, mode)."""


class AmbiguousAttributeNameError(ConfigurationError):
    """The plaintext source and the encrypted target share a name."""

    def __init__(self, name: str):
        super().__init__(f"Attribute name cannot be the same as its encrypted target: {name!r}")
        self.name = name


class CipherAlreadyAttachedError(EncryptedAttributesError):
    """An EncryptedValue already carries a cipher."""


class IrreversibleCipherError(EncryptedAttributesError):
    """Decryption was requested from a one-way cipher."""


class DecryptionError(EncryptedAttributesError):
    """A stored payload could not be decrypted with the configured key."""
