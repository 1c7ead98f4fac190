"""
app/services/user_service.py

Purpose: User account management

- Signup (hashing, identifiers, optional referral)
- Retrieval and listing of active users
- Profile and admin status updates (verify, activate, ban)
- Account soft delete / restore / permanent delete
- Favorite kitchens and admin loyalty-points adjustments
- User statistics
"""

import re
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from app.db.mongo import get_users_collection
from app.models.user import (
    UserRole,
    active_user_query,
    build_user_document,
    generate_referral_code,
    generate_user_id,
)
from app.services.activity_service import append_activity
from app.services.crypto_service import encrypt_identifier, hash_password
from app.services.referral_service import get_referral_service
from app.services.soft_delete import SoftDeleteRepository
from app.core.exceptions import ConflictError, DatabaseError, ResourceNotFoundError, ValidationError
from app.core.logging import get_logger, LogContext
from utils.collection_utils import total_pages
from utils.constants import (
    ACTIVITY_TYPE_ACCOUNT_CREATED,
    ACTIVITY_TYPE_ACCOUNT_DELETED,
    LOYALTY_ADD,
    LOYALTY_OPERATIONS,
    LOYALTY_SET,
    LOYALTY_SUBTRACT,
    RECENT_REGISTRATION_DAYS,
    REFERRAL_CODE_MAX_ATTEMPTS,
)
from utils.document_utils import sanitize_user
from utils.time_utils import days_ago, utc_now
from utils.validation_utils import escape_search_term, normalize_email, normalize_phone, parse_object_id

logger = get_logger(__name__)

PROFILE_FIELDS = {
    "fullname": "fullname",
    "username": "account.username",
    "gender": "account.gender",
    "profile_picture_url": "account.profile_picture_url",
}

user_repository = SoftDeleteRepository(
    get_users_collection,
    "User",
    id_field="user_id",
    flag_field="status.is_deleted",
    deleted_at_field="status.deleted_at",
)


def _duplicate_field(error: DuplicateKeyError) -> Optional[str]:
    """
    Name of the unique field that caused a duplicate key error.
    """
    key_pattern = (error.details or {}).get("keyPattern") or {}
    if key_pattern:
        return next(iter(key_pattern))
    match = re.search(r"index: (\S+)", str(error))
    return match.group(1) if match else None


async def create_user(
    fullname: str,
    email: str,
    phone: str,
    password: str,
    role: UserRole = UserRole.USER,
    referral_code: Optional[str] = None,
    username: Optional[str] = None,
    gender: str = "other",
    ip_address: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Creates a user account.

    A failed referral link is logged and does not fail the signup.

    Returns:
        Sanitized user document

    Raises:
        ConflictError: If the email or phone is already registered
    """
    users = get_users_collection()
    email = normalize_email(email)
    phone = normalize_phone(phone)

    if await users.count_documents({"account.email": email}, limit=1):
        raise ConflictError("Email already in use")
    if await users.count_documents({"account.phone": phone}, limit=1):
        raise ConflictError("Phone number already in use")

    password_hash = hash_password(password)
    user_doc: Optional[Dict[str, Any]] = None

    for attempt in range(1, REFERRAL_CODE_MAX_ATTEMPTS + 1):
        user_doc = build_user_document(
            user_id=generate_user_id(),
            fullname=fullname,
            email=email,
            phone=phone,
            password_hash=password_hash,
            referral_code=generate_referral_code(),
            encrypted_referral_id=encrypt_identifier(generate_user_id()),
            role=role,
            username=username,
            gender=gender,
            ip_address=ip_address,
        )
        try:
            await users.insert_one(user_doc)
            break
        except DuplicateKeyError as e:
            field = _duplicate_field(e) or ""
            if "email" in field:
                raise ConflictError("Email already in use") from e
            if "phone" in field:
                raise ConflictError("Phone number already in use") from e
            logger.warning(
                f"Generated identifier collided on {field or 'unknown index'}, retrying "
                f"(attempt {attempt}/{REFERRAL_CODE_MAX_ATTEMPTS})"
            )
    else:
        raise DatabaseError("Could not generate unique user identifiers")

    user_id = user_doc["user_id"]
    with LogContext(user_id=user_id, operation="create_user"):
        logger.info("New user created", extra={"user_id": user_id, "role": role.value})

        if referral_code:
            try:
                linked = await get_referral_service().process_referral_signup(user_id, referral_code)
                if not linked:
                    logger.info("Referral code not applied", extra={"referral_code": referral_code})
            except DatabaseError as e:
                logger.error(f"Referral signup failed: {e.message}", extra={"user_id": user_id})

        await append_activity(user_id, {
            "type": ACTIVITY_TYPE_ACCOUNT_CREATED,
            "description": "Account created",
            "ip_address": ip_address,
        })

    created = await users.find_one({"user_id": user_id})
    return sanitize_user(created or user_doc)


async def get_user(user_id: str) -> Dict[str, Any]:
    """
    Raises:
        ResourceNotFoundError: If no active user has this id
    """
    users = get_users_collection()
    user = await users.find_one(active_user_query(user_id))
    if not user:
        raise ResourceNotFoundError("User not found")
    return sanitize_user(user)


async def get_user_role(user_id: str) -> Optional[str]:
    """
    Role of an active user, or None if the user does not exist.
    """
    users = get_users_collection()
    user = await users.find_one(active_user_query(user_id), {"security.role": 1})
    if not user:
        return None
    return (user.get("security") or {}).get("role")


async def list_users(
    page: int = 1,
    limit: int = 10,
    role: Optional[str] = None,
    search: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Paginated active users, newest first.

    Args:
        role: Restrict to a role
        search: Case-insensitive match on name, email, phone or user id
    """
    users = get_users_collection()
    query: Dict[str, Any] = {"status.is_deleted": {"$ne": True}}
    if role:
        query["security.role"] = role
    if search:
        pattern = {"$regex": escape_search_term(search), "$options": "i"}
        query["$or"] = [
            {"fullname": pattern},
            {"account.email": pattern},
            {"account.phone": pattern},
            {"user_id": pattern},
        ]

    total = await users.count_documents(query)
    cursor = (
        users.find(query, {"account.password": 0, "security.tokens": 0})
        .sort("created_at", DESCENDING)
        .skip((page - 1) * limit)
        .limit(limit)
    )
    items = await cursor.to_list(length=limit)

    return {
        "users": [sanitize_user(user) for user in items],
        "total": total,
        "page": page,
        "total_pages": total_pages(total, limit),
    }


async def update_profile(user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Partially updates name, username, gender and profile picture.

    Raises:
        ValidationError: If no updatable field is supplied
        ResourceNotFoundError: If the user does not exist
    """
    changes = {
        PROFILE_FIELDS[key]: value
        for key, value in fields.items()
        if key in PROFILE_FIELDS and value is not None
    }
    if not changes:
        raise ValidationError("No profile fields provided")

    now = utc_now()
    users = get_users_collection()
    updated = await users.find_one_and_update(
        active_user_query(user_id),
        {"$set": {**changes, "last_profile_update": now, "updated_at": now}},
        return_document=ReturnDocument.AFTER
    )
    if updated is None:
        raise ResourceNotFoundError("User not found")

    logger.info("Profile updated", extra={"user_id": user_id, "fields": list(changes)})
    return sanitize_user(updated)


async def update_user_status(
    user_id: str,
    is_active: Optional[bool] = None,
    is_verified: Optional[bool] = None,
    is_banned: Optional[bool] = None,
    ban_reason: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Admin status changes. Banning stamps banned_at; unbanning clears the
    reason and timestamp.

    Raises:
        ValidationError: If no status field is supplied
        ResourceNotFoundError: If the user does not exist
    """
    changes: Dict[str, Any] = {}
    if is_active is not None:
        changes["status.is_active"] = is_active
    if is_verified is not None:
        changes["status.is_verified"] = is_verified
    if is_banned is not None:
        changes["status.is_banned"] = is_banned
        changes["status.banned_at"] = utc_now() if is_banned else None
        changes["status.ban_reason"] = ban_reason if is_banned else None
    if not changes:
        raise ValidationError("No status fields provided")

    users = get_users_collection()
    updated = await users.find_one_and_update(
        active_user_query(user_id),
        {"$set": {**changes, "updated_at": utc_now()}},
        return_document=ReturnDocument.AFTER
    )
    if updated is None:
        raise ResourceNotFoundError("User not found")

    logger.info("User status updated", extra={"user_id": user_id, "fields": list(changes)})
    return sanitize_user(updated)


async def delete_account(user_id: str, ip_address: Optional[str] = None) -> bool:
    """
    Soft-deletes the account and signs out every session.

    Raises:
        ResourceNotFoundError: If no active user has this id
    """
    with LogContext(user_id=user_id, operation="delete_account"):
        if not await user_repository.soft_delete(user_id):
            raise ResourceNotFoundError("User not found")

        users = get_users_collection()
        await users.update_one({"user_id": user_id}, {"$set": {"security.tokens": []}})
        await append_activity(user_id, {
            "type": ACTIVITY_TYPE_ACCOUNT_DELETED,
            "description": "Account deleted",
            "ip_address": ip_address,
        })
        return True


async def restore_account(user_id: str) -> bool:
    return await user_repository.restore(user_id)


async def permanently_delete_account(user_id: str) -> bool:
    return await user_repository.permanent_delete(user_id)


async def bulk_delete_accounts(user_ids: List[str]) -> int:
    return await user_repository.bulk_soft_delete(user_ids)


async def bulk_restore_accounts(user_ids: List[str]) -> int:
    return await user_repository.bulk_restore(user_ids)


async def list_deleted_accounts(page: int = 1, limit: int = 10) -> Dict[str, Any]:
    return await user_repository.list_deleted(
        page, limit, projection={"account.password": 0, "security.tokens": 0}
    )


async def record_first_order(user_id: str) -> bool:
    """
    Hook for the order pipeline: grants first-order referral bonuses.
    """
    return await get_referral_service().process_referral_first_order(user_id)


async def _favorites_after(user_id: str, update: Dict[str, Any]) -> List[str]:
    users = get_users_collection()
    updated = await users.find_one_and_update(
        active_user_query(user_id),
        {**update, "$set": {"updated_at": utc_now()}},
        projection={"activity.favorites": 1},
        return_document=ReturnDocument.AFTER
    )
    if updated is None:
        raise ResourceNotFoundError("User not found")
    return [str(favorite) for favorite in (updated.get("activity") or {}).get("favorites") or []]


def _parse_kitchen_ids(kitchen_ids: List[str]) -> List[ObjectId]:
    parsed = [parse_object_id(kitchen_id) for kitchen_id in kitchen_ids]
    invalid = [kitchen_id for kitchen_id, oid in zip(kitchen_ids, parsed) if oid is None]
    if invalid:
        raise ValidationError("Invalid kitchen id", details={"kitchen_ids": invalid})
    return parsed


async def list_favorites(user_id: str) -> List[str]:
    """Favorite kitchen ids, oldest first."""
    users = get_users_collection()
    user = await users.find_one(active_user_query(user_id), {"activity.favorites": 1})
    if not user:
        raise ResourceNotFoundError("User not found")
    return [str(favorite) for favorite in (user.get("activity") or {}).get("favorites") or []]


async def add_favorites(user_id: str, kitchen_ids: List[str]) -> List[str]:
    """
    Adds kitchens to the user's favorites. Kitchens already present are
    not duplicated.

    Returns:
        The full favorites list

    Raises:
        ValidationError: If no id is given or an id is malformed
        ResourceNotFoundError: If the user does not exist
    """
    if not kitchen_ids:
        raise ValidationError("No kitchen ids provided")

    favorites = await _favorites_after(
        user_id,
        {"$addToSet": {"activity.favorites": {"$each": _parse_kitchen_ids(kitchen_ids)}}}
    )
    logger.info("Favorites added", extra={"user_id": user_id, "count": len(kitchen_ids)})
    return favorites


async def remove_favorite(user_id: str, kitchen_id: str) -> List[str]:
    """
    Removes a kitchen from the user's favorites. Removing a kitchen that is
    not a favorite is a no-op.
    """
    (oid,) = _parse_kitchen_ids([kitchen_id])
    favorites = await _favorites_after(user_id, {"$pull": {"activity.favorites": oid}})
    logger.info("Favorite removed", extra={"user_id": user_id, "entity_id": kitchen_id})
    return favorites


async def adjust_loyalty_points(user_id: str, points: int, operation: str = LOYALTY_ADD) -> int:
    """
    Admin adjustment of a user's loyalty-points balance.

    Args:
        user_id: User ID
        points: Non-negative amount
        operation: "add", "subtract" or "set"

    Returns:
        The new balance

    Raises:
        ValidationError: If points is negative, the operation is unknown, or
            a subtraction would take the balance below zero
        ResourceNotFoundError: If the user does not exist
    """
    if points < 0:
        raise ValidationError("Points must not be negative")
    if operation not in LOYALTY_OPERATIONS:
        raise ValidationError("Invalid loyalty operation", details={"operation": operation})

    query = active_user_query(user_id)
    if operation == LOYALTY_SET:
        change = {"$set": {"activity.loyalty_points": points}}
    elif operation == LOYALTY_SUBTRACT:
        # Guarded in the filter so concurrent claims cannot drive it negative
        query["activity.loyalty_points"] = {"$gte": points}
        change = {"$inc": {"activity.loyalty_points": -points}}
    else:
        change = {"$inc": {"activity.loyalty_points": points}}

    users = get_users_collection()
    updated = await users.find_one_and_update(
        query,
        {**change, "$set": {**change.get("$set", {}), "updated_at": utc_now()}},
        projection={"activity.loyalty_points": 1},
        return_document=ReturnDocument.AFTER
    )
    if updated is None:
        if operation == LOYALTY_SUBTRACT and await users.count_documents(active_user_query(user_id), limit=1):
            raise ValidationError("Insufficient loyalty points", details={"requested": points})
        raise ResourceNotFoundError("User not found")

    balance = (updated.get("activity") or {}).get("loyalty_points", 0)
    logger.info(
        "Loyalty points adjusted",
        extra={"user_id": user_id, "loyalty_operation": operation, "points": points, "balance": balance}
    )
    return balance


async def user_statistics() -> Dict[str, Any]:
    """
    Aggregate counts over active (non-deleted) users.
    """
    users = get_users_collection()
    active = {"status.is_deleted": {"$ne": True}}

    role_counts = await users.aggregate([
        {"$match": active},
        {"$group": {"_id": "$security.role", "count": {"$sum": 1}}},
    ]).to_list(length=None)

    return {
        "total_users": await users.count_documents(active),
        "active_users": await users.count_documents({**active, "status.is_active": True}),
        "verified_users": await users.count_documents({**active, "status.is_verified": True}),
        "banned_users": await users.count_documents({**active, "status.is_banned": True}),
        "deleted_users": await users.count_documents({"status.is_deleted": True}),
        "recent_registrations": await users.count_documents(
            {**active, "created_at": {"$gte": days_ago(RECENT_REGISTRATION_DAYS)}}
        ),
        "by_role": {entry["_id"] or "unknown": entry["count"] for entry in role_counts},
    }
