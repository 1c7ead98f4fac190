import pytest
from cryptography.fernet import Fernet

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.services import crypto_service
from app.services.crypto_service import (
    EncryptionError,
    decrypt_identifier,
    encrypt_identifier,
    hash_password,
    verify_password,
)


@pytest.fixture
def fresh_key(monkeypatch):
    crypto_service._get_fernet.cache_clear()
    monkeypatch.setattr(settings, "ENCRYPTION_KEY", Fernet.generate_key().decode())
    yield
    crypto_service._get_fernet.cache_clear()


def test_identifier_round_trip():
    token = encrypt_identifier("507f1f77bcf86cd799439011")
    assert token != "507f1f77bcf86cd799439011"
    assert decrypt_identifier(token) == "507f1f77bcf86cd799439011"


def test_encryption_is_randomized():
    assert encrypt_identifier("USER1") != encrypt_identifier("USER1")


def test_tampered_token_is_rejected():
    token = encrypt_identifier("USER1")
    with pytest.raises(EncryptionError):
        decrypt_identifier(token[:-4] + "AAAA")


def test_empty_values_are_rejected():
    with pytest.raises(EncryptionError):
        encrypt_identifier("")
    with pytest.raises(EncryptionError):
        decrypt_identifier("")


def test_token_from_another_key_is_rejected(fresh_key):
    foreign = Fernet(Fernet.generate_key()).encrypt(b"USER1").decode()
    with pytest.raises(EncryptionError):
        decrypt_identifier(foreign)


def test_configured_key_is_used(fresh_key):
    token = encrypt_identifier("USER1")
    assert Fernet(settings.ENCRYPTION_KEY.encode()).decrypt(token.encode()) == b"USER1"


def test_password_hashing():
    hashed = hash_password("s3cret-pass")
    assert hashed != "s3cret-pass"
    assert verify_password("s3cret-pass", hashed) is True
    assert verify_password("wrong-pass", hashed) is False


def test_verify_against_missing_or_corrupt_hash():
    assert verify_password("anything", None) is False
    assert verify_password("anything", "not-a-bcrypt-hash") is False


def test_password_at_bcrypt_limit_is_hashed():
    hashed = hash_password("a" * 72)
    assert verify_password("a" * 72, hashed) is True


@pytest.mark.parametrize("password", ["a1" * 50, "é" * 37])
def test_password_over_72_bytes_is_rejected(password):
    with pytest.raises(ValidationError):
        hash_password(password)
