"""
app/services/session_service.py

Purpose: Session registry (authentication sessions embedded in the user)

- Registers sessions most-recent-first, capped at MAX_SESSIONS
- Drops sessions past their 30-day natural expiry
- Lists sessions for display with masked tokens
- Terminates one session, all other sessions, or a session by token (logout)
"""

from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument

from app.db.mongo import get_users_collection
from app.models.user import active_user_query, build_session
from app.services.activity_service import append_activity
from app.core.exceptions import ResourceNotFoundError, ValidationError
from app.core.logging import get_logger, LogContext
from utils.collection_utils import bounded_push
from utils.constants import (
    ACTIVITY_TYPE_LOGOUT,
    ACTIVITY_TYPE_SESSION_TERMINATED,
    MAX_SESSIONS,
    SESSION_TTL_DAYS,
    UNKNOWN_IP,
    UNKNOWN_LOCATION,
)
from utils.device_utils import describe_device, mask_token
from utils.document_utils import sanitize_user
from utils.time_utils import days_ago, get_relative_time, is_session_expired, utc_now
from utils.validation_utils import parse_object_id

logger = get_logger(__name__)


async def _ensure_user_exists(user_id: str) -> None:
    users = get_users_collection()
    if await users.count_documents(active_user_query(user_id), limit=1) == 0:
        raise ResourceNotFoundError("User not found")


async def add_session(
    user_id: str,
    token: str,
    device_info: Optional[str] = None,
    device: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Registers a new session at the front of the user's session list.

    Expired sessions are pruned first; the list is then capped at
    MAX_SESSIONS in the same atomic push.

    Args:
        user_id: User ID
        token: Session (refresh) token
        device_info: Free-text device description
        device: browser, os, type, location, ip_address

    Returns:
        Sanitized updated user document

    Raises:
        ResourceNotFoundError: If the user does not exist or is deleted
    """
    with LogContext(user_id=user_id, operation="add_session"):
        users = get_users_collection()
        now = utc_now()

        # $pull and $push cannot target the same array in one update
        await users.update_one(
            active_user_query(user_id),
            {"$pull": {"security.tokens": {"created_at": {"$lt": days_ago(SESSION_TTL_DAYS, now)}}}}
        )

        session = build_session(token, device_info=device_info, device=device, now=now)
        updated = await users.find_one_and_update(
            active_user_query(user_id),
            {
                "$push": {"security.tokens": bounded_push(session, MAX_SESSIONS)},
                "$set": {"last_login": now, "updated_at": now},
            },
            return_document=ReturnDocument.AFTER
        )

        if updated is None:
            logger.warning("Session not added: user not found", extra={"user_id": user_id})
            raise ResourceNotFoundError("User not found")

        logger.info("Session added", extra={"user_id": user_id, "entity_id": str(session["_id"])})
        return sanitize_user(updated)


def present_session(
    session: Dict[str, Any],
    position: int,
    current: bool,
) -> Dict[str, Any]:
    """
    Shapes a stored session for display.
    """
    device = session.get("device") or {}
    return {
        "id": str(session.get("_id") or f"session_{position}"),
        "device": describe_device(session, position),
        "location": device.get("location") or UNKNOWN_LOCATION,
        "ip": device.get("ip_address") or UNKNOWN_IP,
        "last_active": get_relative_time(session.get("created_at")),
        "current": current,
        "token": mask_token(session.get("token")),
        "created_at": session.get("created_at"),
        "device_info": session.get("device_info"),
    }


async def list_sessions(user_id: str, current_token: Optional[str] = None) -> List[Dict[str, Any]]:
    """
    Lists the user's live sessions in stored (most recent first) order.

    The session whose token equals `current_token` is flagged current; without
    a match the most recent session is assumed current.

    Raises:
        ResourceNotFoundError: If the user does not exist
    """
    users = get_users_collection()
    user = await users.find_one(active_user_query(user_id), {"security.tokens": 1})
    if not user:
        raise ResourceNotFoundError("User not found")

    now = utc_now()
    tokens = [
        session for session in (user.get("security") or {}).get("tokens") or []
        if not is_session_expired(session.get("created_at"), SESSION_TTL_DAYS, now)
    ]

    matched = current_token is not None and any(
        session.get("token") == current_token for session in tokens
    )

    sessions = [
        present_session(
            session,
            index,
            current=(session.get("token") == current_token) if matched else index == 0,
        )
        for index, session in enumerate(tokens)
    ]
    return sessions[:MAX_SESSIONS]


async def terminate_session(
    user_id: str,
    session_id: str,
    ip_address: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Removes exactly the session with the given id.

    Raises:
        ValidationError: If session_id is not a valid id
        ResourceNotFoundError: If the user or session does not exist
    """
    with LogContext(user_id=user_id, operation="terminate_session"):
        oid = parse_object_id(session_id)
        if oid is None:
            raise ValidationError("Invalid session id", details={"session_id": session_id})

        users = get_users_collection()
        result = await users.update_one(
            {**active_user_query(user_id), "security.tokens._id": oid},
            {"$pull": {"security.tokens": {"_id": oid}}}
        )

        if result.modified_count == 0:
            await _ensure_user_exists(user_id)
            raise ResourceNotFoundError("Session not found")

        logger.info("Session terminated", extra={"user_id": user_id, "entity_id": session_id})
        await append_activity(user_id, {
            "type": ACTIVITY_TYPE_SESSION_TERMINATED,
            "description": "Session terminated",
            "ip_address": ip_address,
        })

        return {"success": True, "message": "Session terminated successfully"}


async def terminate_all_sessions(
    user_id: str,
    current_token: Optional[str],
    ip_address: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Removes every session whose token differs from `current_token`.

    When `current_token` matches no stored session, every session is removed.

    Returns:
        {"success": True, "terminated_count": n}

    Raises:
        ResourceNotFoundError: If the user does not exist
    """
    with LogContext(user_id=user_id, operation="terminate_all_sessions"):
        users = get_users_collection()
        before = await users.find_one_and_update(
            active_user_query(user_id),
            {"$pull": {"security.tokens": {"token": {"$ne": current_token}}}},
            projection={"security.tokens.token": 1},
            return_document=ReturnDocument.BEFORE
        )
        if before is None:
            raise ResourceNotFoundError("User not found")

        tokens = (before.get("security") or {}).get("tokens") or []
        terminated_count = sum(1 for session in tokens if session.get("token") != current_token)

        logger.info(
            f"Terminated {terminated_count} other sessions",
            extra={"user_id": user_id}
        )
        if terminated_count:
            await append_activity(user_id, {
                "type": ACTIVITY_TYPE_SESSION_TERMINATED,
                "description": f"Signed out of {terminated_count} other session(s)",
                "ip_address": ip_address,
            })

        return {"success": True, "terminated_count": terminated_count}


async def remove_session_token(
    user_id: str,
    token: str,
    ip_address: Optional[str] = None,
) -> bool:
    """
    Logs out the session holding `token`.

    Returns:
        True if a session was removed
    """
    users = get_users_collection()
    result = await users.update_one(
        {"user_id": user_id},
        {"$pull": {"security.tokens": {"token": token}}}
    )

    removed = result.modified_count > 0
    if removed:
        logger.info("Session logged out", extra={"user_id": user_id})
        await append_activity(user_id, {
            "type": ACTIVITY_TYPE_LOGOUT,
            "description": "Logged out",
            "ip_address": ip_address,
        })
    else:
        logger.debug("Logout token not found", extra={"user_id": user_id})

    return removed
