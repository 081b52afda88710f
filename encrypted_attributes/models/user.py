"""
User accounts with a salted, one-way encrypted password.

Demonstrates:
- Declaring an encrypted attribute explicitly on a model
- A per-record salt generated on write and persisted next to the digest
- A confirmation attribute that is cleared together with the password
"""

import secrets

from sqlalchemy import Column, Integer, String

from encrypted_attributes.models.database import Base
from encrypted_attributes.models.types import EncryptedText
from encrypted_attributes.services.lifecycle import PlaintextAttribute, encrypts
from encrypted_attributes.services.salt import AttributeRef


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    login = Column(String(64), unique=True, nullable=False)
    salt = Column(String(64), comment="Per-user salt mixed into the password digest")
    _crypted_password = Column("crypted_password", EncryptedText, comment="SHA digest followed by its salt")

    password_confirmation = PlaintextAttribute()

    def create_salt(self) -> str:
        return secrets.token_hex(8)


encrypts(User, "password", salt=AttributeRef("salt"), algorithm="sha256")
