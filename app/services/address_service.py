"""
app/services/address_service.py

Purpose: User address book with per-entry soft delete

- Clients address entries by their position among ACTIVE addresses
- Each index is resolved to the entry's _id before writing, and writes
  target that _id with the positional operator
- Removing an entry soft-deletes it; it can be restored by id
"""

from typing import Any, Dict, List, Optional

from bson import ObjectId

from app.db.mongo import get_users_collection
from app.models.user import active_user_query, build_address
from app.core.exceptions import ResourceNotFoundError, ValidationError
from app.core.logging import get_logger, LogContext
from utils.constants import ADDRESS_FIELDS
from utils.document_utils import serialize_document
from utils.time_utils import utc_now
from utils.validation_utils import parse_object_id

logger = get_logger(__name__)


def active_addresses(addresses: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Active entries in insertion order.
    """
    return [address for address in addresses if not address.get("is_deleted")]


def resolve_active_address(addresses: List[Dict[str, Any]], active_index: int) -> Optional[Dict[str, Any]]:
    """
    Maps a position among active addresses to the stored entry.

    Returns:
        The entry, or None if the index is out of range
    """
    active = active_addresses(addresses)
    if active_index < 0 or active_index >= len(active):
        return None
    return active[active_index]


def _present(addresses: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {**serialize_document(address), "index": index}
        for index, address in enumerate(addresses)
    ]


async def _load_addresses(user_id: str) -> List[Dict[str, Any]]:
    users = get_users_collection()
    user = await users.find_one(active_user_query(user_id), {"addresses": 1})
    if not user:
        raise ResourceNotFoundError("User not found")
    return user.get("addresses") or []


async def _resolve_or_raise(user_id: str, active_index: int) -> ObjectId:
    address = resolve_active_address(await _load_addresses(user_id), active_index)
    if address is None:
        raise ResourceNotFoundError("Address not found", details={"index": active_index})
    return address["_id"]


async def add_address(user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Appends an address to the user's address book.

    Returns:
        The stored address with its active index
    """
    with LogContext(user_id=user_id, operation="add_address"):
        users = get_users_collection()
        address = build_address(fields)

        result = await users.update_one(
            active_user_query(user_id),
            {"$push": {"addresses": address}, "$set": {"last_profile_update": utc_now()}}
        )
        if result.matched_count == 0:
            raise ResourceNotFoundError("User not found")

        index = len(active_addresses(await _load_addresses(user_id))) - 1
        logger.info("Address added", extra={"user_id": user_id, "entity_id": str(address["_id"])})
        return {**serialize_document(address), "index": index}


async def list_addresses(user_id: str) -> List[Dict[str, Any]]:
    """Active addresses with their active index."""
    return _present(active_addresses(await _load_addresses(user_id)))


async def list_deleted_addresses(user_id: str) -> List[Dict[str, Any]]:
    deleted = [a for a in await _load_addresses(user_id) if a.get("is_deleted")]
    return [serialize_document(address) for address in deleted]


async def update_address(user_id: str, active_index: int, fields: Dict[str, Any]) -> Dict[str, Any]:
    """
    Updates the active address at `active_index`.

    Raises:
        ValidationError: If no updatable field is supplied
        ResourceNotFoundError: If the user or address does not exist
    """
    with LogContext(user_id=user_id, operation="update_address"):
        changes = {
            f"addresses.$.{key}": value
            for key, value in fields.items()
            if key in ADDRESS_FIELDS and value is not None
        }
        if not changes:
            raise ValidationError("No address fields provided")

        address_id = await _resolve_or_raise(user_id, active_index)
        users = get_users_collection()
        result = await users.update_one(
            {
                **active_user_query(user_id),
                "addresses": {"$elemMatch": {"_id": address_id, "is_deleted": {"$ne": True}}},
            },
            {"$set": {**changes, "last_profile_update": utc_now()}}
        )
        if result.matched_count == 0:
            raise ResourceNotFoundError("Address not found", details={"index": active_index})

        logger.info("Address updated", extra={"user_id": user_id, "entity_id": str(address_id)})
        return {**serialize_document(
            resolve_active_address(await _load_addresses(user_id), active_index) or {}
        ), "index": active_index}


async def remove_address(user_id: str, active_index: int) -> bool:
    """
    Soft-deletes the active address at `active_index`.
    Later active addresses shift down by one.
    """
    with LogContext(user_id=user_id, operation="remove_address"):
        address_id = await _resolve_or_raise(user_id, active_index)
        users = get_users_collection()
        now = utc_now()
        result = await users.update_one(
            {
                **active_user_query(user_id),
                "addresses": {"$elemMatch": {"_id": address_id, "is_deleted": {"$ne": True}}},
            },
            {"$set": {
                "addresses.$.is_deleted": True,
                "addresses.$.deleted_at": now,
                "last_profile_update": now,
            }}
        )
        if result.modified_count == 0:
            raise ResourceNotFoundError("Address not found", details={"index": active_index})

        logger.info("Address removed", extra={"user_id": user_id, "entity_id": str(address_id)})
        return True


async def restore_address(user_id: str, address_id: str) -> Dict[str, Any]:
    """
    Restores a soft-deleted address. It reappears at its original
    insertion position among active addresses.

    Raises:
        ValidationError: If address_id is malformed
        ResourceNotFoundError: If no deleted address matches
    """
    oid = parse_object_id(address_id)
    if oid is None:
        raise ValidationError("Invalid address id", details={"address_id": address_id})

    users = get_users_collection()
    result = await users.update_one(
        {
            **active_user_query(user_id),
            "addresses": {"$elemMatch": {"_id": oid, "is_deleted": True}},
        },
        {"$set": {
            "addresses.$.is_deleted": False,
            "addresses.$.deleted_at": None,
            "last_profile_update": utc_now(),
        }}
    )
    if result.modified_count == 0:
        raise ResourceNotFoundError("Deleted address not found")

    logger.info("Address restored", extra={"user_id": user_id, "entity_id": address_id})
    active = active_addresses(await _load_addresses(user_id))
    for index, address in enumerate(active):
        if address["_id"] == oid:
            return {**serialize_document(address), "index": index}
    raise ResourceNotFoundError("Address not found")
