"""
Encrypted attribute lifecycle on SQLAlchemy records.

Demonstrates:
- Explicit declaration of encrypted attributes per model (``encrypts``)
- Encrypt-once on write via the Session ``before_flush`` hook
- Lazy cipher reconstruction on read, guarded by attribute history so a
  pending overwrite is never treated as stored ciphertext
- Plaintext cleared from memory once the transaction commits

A declared attribute moves through these states:

    plain --(flush)--> stored --(read, unmodified)--> decorated

A blank source value, one that already carries a cipher, or a plaintext
the storage slot already holds in encrypted form is never re-encrypted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Union

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_dirty

from encrypted_attributes.services.cipher import Cipher, CipherConfig
from encrypted_attributes.services.digest import DigestCipher
from encrypted_attributes.services.encrypted_value import EncryptedValue
from encrypted_attributes.services.encryption import AsymmetricCipher, SymmetricCipher
from encrypted_attributes.services.errors import AmbiguousAttributeNameError, ConfigurationError
from encrypted_attributes.services.salt import as_salt_spec

logger = logging.getLogger(__name__)

CIPHERS: dict[str, type[Cipher]] = {
    "sha": DigestCipher,
    "digest": DigestCipher,
    "symmetric": SymmetricCipher,
    "asymmetric": AsymmetricCipher,
}

HOOKS = ("save", "create", "update")

_WRITTEN_KEY = "encrypted_attributes.written"

Predicate = Union[Callable[[Any], Any], str, None]


def cipher_class(mode: str) -> type[Cipher]:
    try:
        return CIPHERS[mode.lower()]
    except KeyError:
        raise ConfigurationError(f"Unknown encryption mode: {mode!r}") from None


@dataclass(frozen=True)
class EncryptedAttribute:
    """Declaration binding a plaintext attribute to its encrypted target."""

    name: str
    target: str
    config: CipherConfig
    storage: str = ""
    on: str = "save"
    if_: Predicate = None
    unless: Predicate = None

    def __post_init__(self):
        if self.name == self.target:
            raise AmbiguousAttributeNameError(self.name)
        if self.on not in HOOKS:
            raise ConfigurationError(f"Unknown hook {self.on!r}, expected one of {HOOKS}")
        if not self.storage:
            object.__setattr__(self, "storage", f"_{self.target}")
        cipher_class(self.config.mode)


class AttributeLifecycleController:
    """Runs the write and read transitions of one EncryptedAttribute."""

    def __init__(self, attribute: EncryptedAttribute):
        self.attribute = attribute
        self.cipher_class = cipher_class(attribute.config.mode)

    def applies(self, record: Any, on: str) -> bool:
        attribute = self.attribute
        if attribute.on not in ("save", on):
            return False
        if attribute.if_ is not None and not _evaluate(attribute.if_, record):
            return False
        if attribute.unless is not None and _evaluate(attribute.unless, record):
            return False
        return True

    def write(self, record: Any, on: str = "save") -> EncryptedValue | None:
        """Encrypt the plaintext source into raw storage; None when nothing was written."""
        attribute = self.attribute
        value = getattr(record, attribute.name, None)
        if _blank(value) or not self.applies(record, on):
            return None

        if not (isinstance(value, EncryptedValue) and value.encrypted):
            # Storage already holds this plaintext; its salt is generated only once
            stored = inspect(record).dict.get(attribute.storage)
            if isinstance(stored, EncryptedValue) and stored.encrypted and stored.equals_plaintext(str(value)):
                return stored

            cipher = self.cipher_class.for_write(attribute.config, record)
            logger.debug(
                "Encrypting %s.%s with %s",
                type(record).__name__,
                attribute.name,
                type(cipher).__name__,
            )
            value = cipher.encrypt(str(value))

        setattr(record, attribute.storage, value)
        return value

    def read(self, record: Any) -> Any:
        """Return the stored value, attaching a cipher when it is unmodified ciphertext."""
        attribute = self.attribute
        value = getattr(record, attribute.storage)
        if isinstance(value, EncryptedValue) and not value.encrypted and not self.is_dirty(record):
            value.attach(self.cipher_class.for_read(attribute.config, record, value.payload))
        return value

    def is_dirty(self, record: Any) -> bool:
        return inspect(record).attrs[self.attribute.storage].history.has_changes()

    def clear_plaintext(self, record: Any) -> None:
        setattr(record, self.attribute.name, None)
        confirmation = f"{self.attribute.name}_confirmation"
        if hasattr(record, confirmation):
            setattr(record, confirmation, None)


class PlaintextAttribute:
    """In-memory attribute holding a value until it is encrypted; never persisted."""

    def __init__(self, name: str | None = None):
        self.name = name

    def __set_name__(self, owner, name):
        self.name = self.name or name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return instance.__dict__.get(f"_plaintext_{self.name}")

    def __set__(self, instance, value):
        instance.__dict__[f"_plaintext_{self.name}"] = value
        # Nothing mapped changed, so the session would otherwise skip before_flush
        if value is not None:
            flag_dirty(instance)


class EncryptedValueAttribute:
    """Public accessor of an encrypted target; reads decorate, writes go to raw storage."""

    def __init__(self, controller: AttributeLifecycleController):
        self.controller = controller

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        return self.controller.read(instance)

    def __set__(self, instance, value):
        setattr(instance, self.controller.attribute.storage, value)


def encrypts(
    model: type,
    name: str,
    *,
    to: str | None = None,
    storage: str | None = None,
    mode: str = "sha",
    on: str = "save",
    if_: Predicate = None,
    unless: Predicate = None,
    **options: Any,
) -> AttributeLifecycleController:
    """
    Declare ``name`` on ``model`` as an encrypted attribute.

    The ciphertext lives in the mapped attribute ``storage`` (default
    ``_crypted_<name>``) and is exposed as ``to`` (default ``crypted_<name>``).
    Remaining keyword arguments are cipher options, e.g. ``salt``,
    ``algorithm`` and ``embed_salt`` for digests or ``key`` for symmetric
    encryption.
    """
    if "salt" in options:
        options["salt"] = as_salt_spec(options["salt"])

    attribute = EncryptedAttribute(
        name=name,
        target=to or f"crypted_{name}",
        config=CipherConfig(mode, options),
        storage=storage or "",
        on=on,
        if_=if_,
        unless=unless,
    )
    if attribute.storage not in inspect(model).attrs:
        raise ConfigurationError(
            f"{model.__name__} has no mapped attribute {attribute.storage!r} to store {name!r}"
        )

    controller = AttributeLifecycleController(attribute)

    # An accessor the model already defines for the source is kept as-is
    if not hasattr(model, name):
        setattr(model, name, PlaintextAttribute(name))
    setattr(model, attribute.target, EncryptedValueAttribute(controller))

    registry = dict(getattr(model, "__encrypted_attributes__", {}))
    registry[name] = controller
    model.__encrypted_attributes__ = registry

    logger.debug("Declared %s.%s -> %s (%s)", model.__name__, name, attribute.target, attribute.config.mode)
    return controller


def apply_write_hooks(record: Any, on: str | None = None) -> list[AttributeLifecycleController]:
    """Run the write transition of every declared attribute; returns the controllers that wrote."""
    controllers = getattr(type(record), "__encrypted_attributes__", {})
    if on is None:
        on = "update" if inspect(record).has_identity else "create"
    return [controller for controller in controllers.values() if controller.write(record, on) is not None]


# ---------------------------------------------------------------------------
# Session hooks
# ---------------------------------------------------------------------------


@event.listens_for(Session, "before_flush")
def encrypt_before_flush(session, flush_context, instances):
    written = session.info.setdefault(_WRITTEN_KEY, [])

    # Setting a plaintext flags its record, so session.dirty covers every update
    for on, records in (("create", list(session.new)), ("update", list(session.dirty))):
        for record in records:
            if not getattr(type(record), "__encrypted_attributes__", None):
                continue
            for controller in apply_write_hooks(record, on):
                written.append((controller, record))


@event.listens_for(Session, "after_commit")
def clear_plaintext_after_commit(session):
    for controller, record in session.info.pop(_WRITTEN_KEY, []):
        controller.clear_plaintext(record)


@event.listens_for(Session, "after_rollback")
def forget_written_after_rollback(session):
    session.info.pop(_WRITTEN_KEY, None)


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes)):
        return not value.strip()
    return False


def _evaluate(predicate: Predicate, record: Any) -> bool:
    if isinstance(predicate, str):
        predicate = getattr(record, predicate)
        return bool(predicate() if callable(predicate) else predicate)
    return bool(predicate(record))
