"""
Salt specifications and their resolution against a record.

Resolution differs by direction: writing may generate a salt and persist it
on the record, reading only retrieves what is already there, so a loaded
record never derives a different salt than the one it was encrypted with.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable

from encrypted_attributes.services.errors import ConfigurationError

logger = logging.getLogger(__name__)


class Direction(str, Enum):
    WRITE = "write"
    READ = "read"


class SaltSpec(ABC):
    """Base for the salt variants."""

    dynamic = False

    @abstractmethod
    def resolve(self, context: Any, direction: Direction) -> str | None:
        """Return the salt for ``context``; writing may generate and store it."""


@dataclass(frozen=True)
class Absent(SaltSpec):
    def resolve(self, context, direction):
        return None


@dataclass(frozen=True)
class Literal(SaltSpec):
    value: str

    def resolve(self, context, direction):
        return self.value


@dataclass(frozen=True)
class AttributeRef(SaltSpec):
    """Salt kept in a record attribute and generated by ``create_<name>()``."""

    name: str
    dynamic = True

    def resolve(self, context, direction):
        if direction is Direction.READ:
            value = getattr(context, self.name, None)
            return None if value is None else str(value)

        creator = getattr(context, f"create_{self.name}", None)
        if not callable(creator):
            raise ConfigurationError(
                f"{type(context).__name__} must define create_{self.name}() to generate its salt"
            )
        value = _stringify(creator())
        setattr(context, self.name, value)
        logger.debug("Generated salt for %s.%s", type(context).__name__, self.name)
        return value


@dataclass(frozen=True)
class Derived(SaltSpec):
    """Salt computed by a callable from the record, identically in both directions."""

    func: Callable[[Any], Any]
    dynamic = True

    def resolve(self, context, direction):
        return _stringify(self.func(context))


ABSENT = Absent()


def _stringify(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def as_salt_spec(value: Any) -> SaltSpec:
    """Coerce a declaration shorthand into a SaltSpec."""
    if value is None:
        return ABSENT
    if isinstance(value, SaltSpec):
        return value
    if value is True:
        return AttributeRef("salt")
    if isinstance(value, bytes):
        return Literal(value.decode("utf-8"))
    if isinstance(value, str):
        return Literal(value)
    if callable(value):
        return Derived(value)
    raise ConfigurationError(f"Unsupported salt specification: {value!r}")


def resolve_salt(spec: SaltSpec | None, context: Any, direction: Direction) -> str | None:
    return (spec or ABSENT).resolve(context, direction)
