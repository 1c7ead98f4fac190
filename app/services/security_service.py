"""
app/services/security_service.py

Purpose: Account security settings and password changes

- Reads and partially updates the security preference flags
- Verifies the current password before storing a new bcrypt hash
"""

from typing import Any, Dict, Optional

from pymongo import ReturnDocument

from app.db.mongo import get_users_collection
from app.models.user import active_user_query
from app.services.activity_service import append_activity
from app.services.crypto_service import hash_password, verify_password
from app.core.exceptions import AuthenticationError, ResourceNotFoundError, ValidationError
from app.core.logging import get_logger
from utils.constants import (
    ACTIVITY_STATUS_FAILED,
    ACTIVITY_TYPE_PASSWORD_CHANGE,
    SECURITY_SETTINGS_KEYS,
)
from utils.time_utils import utc_now

logger = get_logger(__name__)

# Flags that default to on when never set
_DEFAULT_ON = {"login_notifications", "session_timeout", "device_tracking"}


def _settings_from(security: Dict[str, Any]) -> Dict[str, bool]:
    return {
        key: bool(security.get(key, key in _DEFAULT_ON))
        for key in SECURITY_SETTINGS_KEYS
    }


async def get_security_settings(user_id: str) -> Dict[str, bool]:
    users = get_users_collection()
    projection = {f"security.{key}": 1 for key in SECURITY_SETTINGS_KEYS}
    user = await users.find_one(active_user_query(user_id), projection)
    if not user:
        raise ResourceNotFoundError("User not found")
    return _settings_from(user.get("security") or {})


async def update_security_settings(user_id: str, updates: Dict[str, bool]) -> Dict[str, bool]:
    """
    Partially updates the security flags.

    Raises:
        ValidationError: If no recognised flag is supplied
        ResourceNotFoundError: If the user does not exist
    """
    changes = {
        f"security.{key}": bool(value)
        for key, value in updates.items()
        if key in SECURITY_SETTINGS_KEYS and value is not None
    }
    if not changes:
        raise ValidationError("No security settings provided")

    users = get_users_collection()
    updated = await users.find_one_and_update(
        active_user_query(user_id),
        {"$set": {**changes, "updated_at": utc_now()}},
        projection={f"security.{key}": 1 for key in SECURITY_SETTINGS_KEYS},
        return_document=ReturnDocument.AFTER
    )
    if updated is None:
        raise ResourceNotFoundError("User not found")

    logger.info("Security settings updated", extra={"user_id": user_id, "fields": list(changes)})
    return _settings_from(updated.get("security") or {})


async def change_password(
    user_id: str,
    current_password: str,
    new_password: str,
    ip_address: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Replaces the user's password after verifying the current one.

    Raises:
        ResourceNotFoundError: If the user does not exist
        AuthenticationError: If the current password is wrong
        ValidationError: If the new password equals the current one
    """
    users = get_users_collection()
    user = await users.find_one(active_user_query(user_id), {"account.password": 1})
    if not user:
        raise ResourceNotFoundError("User not found")

    stored_hash = (user.get("account") or {}).get("password")
    if not verify_password(current_password, stored_hash):
        await append_activity(user_id, {
            "type": ACTIVITY_TYPE_PASSWORD_CHANGE,
            "description": "Password change rejected: wrong current password",
            "status": ACTIVITY_STATUS_FAILED,
            "ip_address": ip_address,
        })
        raise AuthenticationError("Current password is incorrect")

    if current_password == new_password:
        raise ValidationError("New password must differ from the current password")

    now = utc_now()
    await users.update_one(
        {"_id": user["_id"]},
        {"$set": {
            "account.password": hash_password(new_password),
            "last_password_change": now,
            "updated_at": now,
        }}
    )

    logger.info("Password changed", extra={"user_id": user_id})
    await append_activity(user_id, {
        "type": ACTIVITY_TYPE_PASSWORD_CHANGE,
        "description": "Password changed",
        "ip_address": ip_address,
    })
    return {"success": True, "message": "Password changed successfully"}
