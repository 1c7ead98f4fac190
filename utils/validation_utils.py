"""
utils/validation_utils.py

Purpose: Input validation

- ObjectId parsing for embedded-entry and document ids
- Email, phone and referral code normalization
- Input sanitization
"""

import re
from typing import Optional

from bson import ObjectId
from bson.errors import InvalidId

from utils.constants import MAX_PASSWORD_BYTES

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9]{10,15}$")
REFERRAL_CODE_PATTERN = re.compile(r"^[A-Z0-9]{4,16}$")


def parse_object_id(value: Optional[str]) -> Optional[ObjectId]:
    """
    Parses a 24-hex string into an ObjectId.

    Returns:
        ObjectId if well-formed, None otherwise
    """
    if isinstance(value, ObjectId):
        return value
    if not value or not isinstance(value, str):
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def validate_email(email: str) -> bool:
    if not email:
        return False
    return bool(EMAIL_PATTERN.match(email.strip()))


def normalize_email(email: str) -> str:
    return email.strip().lower()


def normalize_phone(phone: str) -> str:
    """
    Strips spaces, dashes and brackets from a phone number.
    """
    return re.sub(r"[\s\-()]", "", phone or "")


def password_fits_hash(password: str) -> bool:
    """
    Checks the password fits bcrypt's input limit once UTF-8 encoded.
    """
    return len((password or "").encode("utf-8")) <= MAX_PASSWORD_BYTES


def validate_phone(phone: str) -> bool:
    """
    Validates a phone number (10-15 digits, optional leading +).
    """
    return bool(PHONE_PATTERN.match(normalize_phone(phone)))


def normalize_referral_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def validate_referral_code_format(code: Optional[str]) -> bool:
    """
    Checks a referral code is plausible before hitting the database.
    Generated codes are 8 characters; legacy codes may be 4-16.
    """
    return bool(REFERRAL_CODE_PATTERN.match(normalize_referral_code(code)))


def sanitize_input(text: str, max_length: int = 1000) -> str:
    """
    Sanitizes user input by removing control characters and limiting length.
    """
    if not text:
        return ""

    text = "".join(char for char in text if char.isprintable() or char in "\n\t")
    text = " ".join(text.split())
    return text[:max_length]


def escape_search_term(term: str) -> str:
    """
    Escapes a free-text search term for use inside a $regex.
    """
    return re.escape(term.strip())
