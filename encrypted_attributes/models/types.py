"""SQLAlchemy column type holding EncryptedValue payloads."""

from sqlalchemy import Text, TypeDecorator

from encrypted_attributes.services.encrypted_value import EncryptedValue


class EncryptedText(TypeDecorator):
    """
    Stores the payload of an EncryptedValue as plain text.

    Values read back carry no cipher; the attribute accessor attaches one on
    first read while the column is unmodified.
    """

    impl = Text
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, EncryptedValue):
            return value.payload
        return str(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return EncryptedValue(value)

    def compare_values(self, x, y):
        return _payload(x) == _payload(y)


def _payload(value):
    return value.payload if isinstance(value, EncryptedValue) else value
