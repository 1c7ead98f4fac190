"""
app/services/crypto_service.py

Purpose: Identifier encryption and password hashing

- Fernet symmetric encryption for identifiers exposed to clients
  (referral ids, reward ids, referrer ids)
- bcrypt password hashing and verification
"""

import base64
import hashlib
from functools import lru_cache

import bcrypt
from cryptography.fernet import Fernet, InvalidToken

from app.core.config import settings
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from utils.constants import MAX_PASSWORD_BYTES
from utils.validation_utils import password_fits_hash

logger = get_logger(__name__)


class EncryptionError(Exception):
    """Raised when an identifier cannot be encrypted or decrypted."""

    pass


def _resolve_key() -> bytes:
    """
    Returns the configured Fernet key.

    Outside production a key is derived from SECRET_KEY when ENCRYPTION_KEY
    is unset; production refuses to start without one (see validate_settings).
    """
    if settings.ENCRYPTION_KEY:
        return settings.ENCRYPTION_KEY.encode("utf-8")

    if settings.is_production:
        raise EncryptionError("ENCRYPTION_KEY not configured in environment")

    digest = hashlib.sha256(settings.SECRET_KEY.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


@lru_cache(maxsize=1)
def _get_fernet() -> Fernet:
    try:
        return Fernet(_resolve_key())
    except EncryptionError:
        raise
    except Exception as e:
        logger.error(f"Failed to initialize Fernet cipher: {str(e)}")
        raise EncryptionError(f"Invalid encryption key: {e}") from e


def encrypt_identifier(value: str) -> str:
    """
    Encrypts an identifier for exposure to clients.

    Args:
        value: Plain identifier (ObjectId hex, user_id, ...)

    Returns:
        URL-safe Fernet token as str

    Raises:
        EncryptionError: If value is empty or encryption fails
    """
    if not value:
        raise EncryptionError("Identifier must be a non-empty string")

    try:
        return _get_fernet().encrypt(str(value).encode("utf-8")).decode("utf-8")
    except EncryptionError:
        raise
    except Exception as e:
        logger.error(f"Failed to encrypt identifier: {str(e)}")
        raise EncryptionError(f"Encryption failed: {e}") from e


def decrypt_identifier(token: str) -> str:
    """
    Decrypts an identifier previously produced by encrypt_identifier.

    Raises:
        EncryptionError: If the token is empty, tampered or encrypted
            under another key
    """
    if not token:
        raise EncryptionError("Encrypted identifier must be a non-empty string")

    try:
        return _get_fernet().decrypt(token.encode("utf-8")).decode("utf-8")
    except InvalidToken as e:
        logger.warning("Identifier decryption failed - invalid token")
        raise EncryptionError("Invalid or corrupted identifier") from e


def hash_password(password: str) -> str:
    """
    Hashes a password with bcrypt using the configured cost factor.

    Raises:
        ValidationError: If the password exceeds bcrypt's 72-byte input limit
    """
    if not password_fits_hash(password):
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    if not password or not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False
