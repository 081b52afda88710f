"""Tests for encrypted attributes on SQLAlchemy records (in-memory SQLite)."""

import hashlib
import secrets

import pytest
from sqlalchemy import Column, Integer, String

from encrypted_attributes.models.database import Base
from encrypted_attributes.models.types import EncryptedText
from encrypted_attributes.services import lifecycle
from encrypted_attributes.services.digest import DigestCipher
from encrypted_attributes.services.encrypted_value import EncryptedValue
from encrypted_attributes.services.encryption import SymmetricCipher
from encrypted_attributes.services.errors import AmbiguousAttributeNameError, ConfigurationError
from encrypted_attributes.services.lifecycle import (
    EncryptedValueAttribute,
    PlaintextAttribute,
    apply_write_hooks,
    encrypts,
)

SECRET = "8152bc582f58c854f580cb101d3182813dec4afe"
SHHH = "162cf5debf84cbc2af13da848544c3e2c515b4d3"
SYMMETRIC_KEY = SymmetricCipher.generate_key()


class AccountColumns:
    id = Column(Integer, primary_key=True)
    login = Column(String(64))
    salt = Column(String(64))
    _crypted_password = Column("crypted_password", EncryptedText)

    def create_salt(self):
        return f"{self.login}_salt"


class Account(AccountColumns, Base):
    __tablename__ = "accounts"


class SaltedAccount(AccountColumns, Base):
    __tablename__ = "salted_accounts"


class RandomSaltedAccount(AccountColumns, Base):
    __tablename__ = "random_salted_accounts"

    def create_salt(self):
        return secrets.token_hex(8)


class LoginSaltedAccount(AccountColumns, Base):
    __tablename__ = "login_salted_accounts"


class ConfirmedAccount(AccountColumns, Base):
    __tablename__ = "confirmed_accounts"

    password_confirmation = PlaintextAttribute()


class GuardedAccount(AccountColumns, Base):
    __tablename__ = "guarded_accounts"

    locked = Column(String(8))

    def is_locked(self):
        return self.locked == "yes"


class ConditionalAccount(AccountColumns, Base):
    __tablename__ = "conditional_accounts"


class CreateOnlyAccount(AccountColumns, Base):
    __tablename__ = "create_only_accounts"


class SymmetricAccount(AccountColumns, Base):
    __tablename__ = "symmetric_accounts"


class CustomSourceAccount(AccountColumns, Base):
    __tablename__ = "custom_source_accounts"

    raw_password = PlaintextAttribute()


encrypts(Account, "password", algorithm="sha1")
encrypts(SaltedAccount, "password", salt=True, algorithm="sha1")
encrypts(RandomSaltedAccount, "password", salt=True, algorithm="sha1")
encrypts(LoginSaltedAccount, "password", salt=lambda account: account.login, algorithm="sha1")
encrypts(ConfirmedAccount, "password", algorithm="sha1")
encrypts(GuardedAccount, "password", unless="is_locked", algorithm="sha1")
encrypts(ConditionalAccount, "password", if_=lambda account: False, algorithm="sha1")
encrypts(CreateOnlyAccount, "password", on="create", algorithm="sha1")
encrypts(SymmetricAccount, "password", mode="symmetric", key=SYMMETRIC_KEY)
encrypts(CustomSourceAccount, "raw_password", to="crypted_password", algorithm="sha1")


def _create(db, model=Account, **attrs):
    attrs.setdefault("login", "admin")
    record = model(**attrs)
    db.add(record)
    db.commit()
    return record


def _reload(db, record):
    model, record_id = type(record), record.id
    db.expunge_all()
    return db.get(model, record_id)


# ---------------------------------------------------------------------------
# Write path
# ---------------------------------------------------------------------------


def test_digest_with_default_salt(db):
    account = _create(db, password="secret")
    assert str(account.crypted_password) == SECRET


def test_blank_values_are_not_encrypted(db):
    for blank in (None, "", "   "):
        account = _create(db, login=f"blank-{blank!r}", password=blank)
        assert account.crypted_password is None


def test_blank_plaintext_is_left_in_place_without_cipher():
    account = Account(login="admin", password="")
    assert apply_write_hooks(account) == []
    assert account.password == ""
    assert account.crypted_password is None


def test_already_encrypted_value_is_not_encrypted_again(db):
    account = _create(db, password=DigestCipher(salt="salt").encrypt("secret"))
    assert str(account.crypted_password) == SECRET


def test_write_is_idempotent():
    account = Account(login="admin", password="secret")
    apply_write_hooks(account)
    first = account.crypted_password
    apply_write_hooks(account)
    assert account.crypted_password == first
    assert account.crypted_password.payload == SECRET


def test_write_with_generated_salt_is_idempotent():
    account = RandomSaltedAccount(login="admin", password="secret")
    apply_write_hooks(account)
    salt, payload = account.salt, account.crypted_password.payload

    assert apply_write_hooks(account)
    assert account.salt == salt
    assert account.crypted_password.payload == payload
    assert account.crypted_password.equals_plaintext("secret")


def test_second_flush_keeps_generated_salt(db):
    account = RandomSaltedAccount(login="admin", password="secret")
    db.add(account)
    db.flush()
    salt, payload = account.salt, account.crypted_password.payload

    account.login = "admin2"
    db.commit()
    assert account.password is None

    reloaded = _reload(db, account)
    assert reloaded.salt == salt
    assert reloaded.crypted_password.payload == payload
    assert reloaded.crypted_password.equals_plaintext("secret")


def test_new_plaintext_after_flush_generates_new_digest(db):
    account = RandomSaltedAccount(login="admin", password="secret")
    db.add(account)
    db.flush()
    payload = account.crypted_password.payload

    account.password = "shhh"
    db.commit()
    reloaded = _reload(db, account)
    assert reloaded.crypted_password.payload != payload
    assert reloaded.crypted_password.equals_plaintext("shhh")


def test_flush_only_visits_new_and_dirty_records(db, monkeypatch):
    untouched = _create(db, login="untouched", password="secret")
    changed = _create(db, login="changed", password="secret")
    assert untouched in db.identity_map.values()

    visited = []

    def recording_write_hooks(record, on=None):
        visited.append((record, on))
        return apply_write_hooks(record, on)

    monkeypatch.setattr(lifecycle, "apply_write_hooks", recording_write_hooks)
    changed.password = "shhh"
    db.commit()

    assert visited == [(changed, "update")]
    assert str(changed.crypted_password) == SHHH
    assert str(untouched.crypted_password) == SECRET


def test_encrypts_before_validation_without_a_session():
    account = Account(login="admin", password="secret")
    apply_write_hooks(account)
    assert account.crypted_password.encrypted
    assert account.crypted_password.equals_plaintext("secret")


def test_plaintext_cleared_after_commit(db):
    account = _create(db, password="secret")
    assert account.password is None


def test_confirmation_cleared_after_commit(db):
    account = _create(db, ConfirmedAccount, password="secret", password_confirmation="secret")
    assert account.password is None
    assert account.password_confirmation is None


def test_plaintext_kept_until_commit(db):
    account = Account(login="admin", password="secret")
    db.add(account)
    db.flush()
    assert account.password == "secret"
    db.commit()
    assert account.password is None


def test_plaintext_kept_after_rollback(db):
    account = Account(login="admin", password="secret")
    db.add(account)
    db.flush()
    db.rollback()
    assert account.password == "secret"


def test_update_without_password_change_keeps_digest(db):
    account = _create(db, password="secret")
    account.login = "Administrator"
    db.commit()
    assert account.crypted_password.encrypted
    assert str(account.crypted_password) == SECRET


def test_update_with_password_change_reencrypts(db):
    account = _create(db, password="secret")
    account.password = "shhh"
    db.commit()
    assert account.crypted_password.encrypted
    assert str(account.crypted_password) == SHHH
    assert str(_reload(db, account).crypted_password) == SHHH


def test_unless_guard_skips_encryption(db):
    account = _create(db, GuardedAccount, password="secret", locked="yes")
    assert account.password == "secret"
    assert account.crypted_password is None


def test_unless_guard_allows_encryption(db):
    account = _create(db, GuardedAccount, password="secret", locked="no")
    assert str(account.crypted_password) == SECRET


def test_if_guard_with_callable(db):
    account = _create(db, ConditionalAccount, password="secret")
    assert account.password == "secret"
    assert account.crypted_password is None


def test_create_only_hook(db):
    account = _create(db, CreateOnlyAccount, password="secret")
    assert str(account.crypted_password) == SECRET

    account.password = "shhh"
    db.commit()
    assert str(account.crypted_password) == SECRET
    assert account.password == "shhh"


def test_custom_source_and_target(db):
    account = _create(db, CustomSourceAccount, raw_password="secret")
    assert str(account.crypted_password) == SECRET
    assert account.raw_password is None


# ---------------------------------------------------------------------------
# Read path
# ---------------------------------------------------------------------------


def test_reloaded_value_is_decorated(db):
    account = _reload(db, _create(db, password="secret"))
    value = account.crypted_password
    assert isinstance(value, EncryptedValue)
    assert value.encrypted
    assert value.cipher.salt == "salt"
    assert value.equals_plaintext("secret")
    assert not value.equals_plaintext("secrets")


def test_reading_twice_keeps_the_same_cipher(db):
    account = _reload(db, _create(db, password="secret"))
    assert account.crypted_password.cipher is account.crypted_password.cipher


def test_raw_storage_is_not_decorated(db):
    account = _reload(db, _create(db, password="secret"))
    assert not account._crypted_password.encrypted


def test_pending_overwrite_is_not_decorated(db):
    account = _reload(db, _create(db, password="secret"))
    account.crypted_password = EncryptedValue("f" * 40)
    value = account.crypted_password
    assert not value.encrypted
    assert not value.equals_plaintext("secret")


def test_attribute_salt_persisted_and_recovered(db):
    account = _create(db, SaltedAccount, password="secret")
    assert account.salt == "admin_salt"
    expected = hashlib.sha1(b"secretadmin_salt").hexdigest() + "admin_salt"
    assert str(account.crypted_password) == expected

    reloaded = _reload(db, account)
    assert reloaded.crypted_password.cipher.salt == "admin_salt"
    assert reloaded.crypted_password.equals_plaintext("secret")


def test_derived_salt_embedded_and_recovered(db):
    account = _create(db, LoginSaltedAccount, password="secret")
    assert str(account.crypted_password) == "a55d037f385cad22efe7862e07b805938d150154admin"

    reloaded = _reload(db, account)
    reloaded.login = "renamed"
    assert reloaded.crypted_password.cipher.salt == "admin"
    assert reloaded.crypted_password.equals_plaintext("secret")


def test_symmetric_value_decrypts_after_reload(db):
    account = _create(db, SymmetricAccount, password="secret")
    assert str(account.crypted_password) != "secret"

    reloaded = _reload(db, account)
    assert reloaded.crypted_password.decrypt() == "secret"
    assert reloaded.crypted_password.equals_plaintext("secret")


# ---------------------------------------------------------------------------
# Declaration
# ---------------------------------------------------------------------------


def test_declaration_installs_accessors():
    assert isinstance(Account.password, PlaintextAttribute)
    assert isinstance(Account.crypted_password, EncryptedValueAttribute)
    assert set(Account.__encrypted_attributes__) == {"password"}


def test_existing_source_accessor_is_kept():
    assert CustomSourceAccount.__dict__["raw_password"].name == "raw_password"
    assert "password" not in CustomSourceAccount.__dict__


def test_declarations_do_not_leak_between_models():
    assert Account.__encrypted_attributes__["password"] is not SaltedAccount.__encrypted_attributes__["password"]
    assert set(CustomSourceAccount.__encrypted_attributes__) == {"raw_password"}


def test_source_and_target_must_differ():
    with pytest.raises(AmbiguousAttributeNameError):
        encrypts(Account, "password", to="password")


def test_missing_storage_attribute():
    with pytest.raises(ConfigurationError, match="no mapped attribute"):
        encrypts(Account, "token", to="crypted_token")


def test_unknown_mode():
    with pytest.raises(ConfigurationError, match="Unknown encryption mode"):
        encrypts(Account, "password", mode="rot13")


def test_unknown_hook():
    with pytest.raises(ConfigurationError, match="Unknown hook"):
        encrypts(Account, "password", on="delete")
