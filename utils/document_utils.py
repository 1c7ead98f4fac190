"""
utils/document_utils.py

Purpose: MongoDB document shaping

- Converts ObjectIds to strings recursively for JSON responses
- Strips secrets (password hash, raw session tokens) from user documents
"""

from typing import Any, Dict, Optional

from bson import ObjectId


def serialize_document(value: Any) -> Any:
    """
    Recursively converts ObjectId values (including `_id`) to strings.
    """
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {key: serialize_document(item) for key, item in value.items()}
    if isinstance(value, list):
        return [serialize_document(item) for item in value]
    return value


def sanitize_user(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Returns a JSON-safe copy of a user document without credentials.

    Removes the password hash and the raw session token list; sessions are
    exposed only through the masked session listing.
    """
    if not user:
        return None

    cleaned = serialize_document(user)

    account = dict(cleaned.get("account") or {})
    account.pop("password", None)
    cleaned["account"] = account

    security = dict(cleaned.get("security") or {})
    security.pop("tokens", None)
    cleaned["security"] = security

    return cleaned
