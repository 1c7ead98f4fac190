"""
app/services/activity_service.py

Purpose: Security activity log (audit trail embedded in the user document)

- Appends activities most-recent-first, capped at MAX_ACTIVITIES
- Filtered, paginated queries and trailing-window summaries
- Retention cleanup and cap enforcement across all users
"""

from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

from pymongo import ReturnDocument, UpdateOne

from app.db.mongo import get_users_collection
from app.models.user import active_user_query, build_activity
from app.core.exceptions import ResourceNotFoundError
from app.core.logging import get_logger, LogContext
from utils.collection_utils import (
    bounded_push,
    count_older_than,
    paginate,
    partition_by_cutoff,
    total_pages,
    trim_newest,
)
from utils.constants import (
    ACTIVITY_STATUS_WARNING,
    ACTIVITY_TYPE_LOGIN,
    ACTIVITY_TYPE_PASSWORD_CHANGE,
    BOOTSTRAP_ACTIVITY,
    DEFAULT_ACTIVITY_SUMMARY_DAYS,
    MAX_ACTIVITIES,
    MAX_SESSIONS,
    SESSION_TTL_DAYS,
    TOP_ACTIVITY_TYPES_LIMIT,
)
from utils.time_utils import days_ago, utc_now

logger = get_logger(__name__)

ACTIVITY_FIELDS = (
    "type",
    "description",
    "timestamp",
    "status",
    "location",
    "ip_address",
    "user_agent",
    "device_info",
)


def _public_activity(activity: Dict[str, Any]) -> Dict[str, Any]:
    public = {key: activity.get(key) for key in ACTIVITY_FIELDS}
    if activity.get("_id") is not None:
        public["id"] = str(activity["_id"])
    return public


async def append_activity(user_id: str, activity_data: Dict[str, Any]) -> bool:
    """
    Records a security activity for the user.

    Never raises: activity logging must not break the calling operation.

    Args:
        user_id: User ID
        activity_data: type, description, status, location, ip_address,
            user_agent, device_info

    Returns:
        True if the activity was stored
    """
    try:
        users = get_users_collection()
        activity = build_activity(activity_data)

        result = await users.update_one(
            {"user_id": user_id},
            {"$push": {"security.activities": bounded_push(activity, MAX_ACTIVITIES)}}
        )

        if result.matched_count == 0:
            logger.warning(
                "User not found for activity logging",
                extra={"user_id": user_id, "activity_type": activity_data.get("type")}
            )
            return False

        return True

    except Exception as e:
        logger.error(
            f"Failed to record security activity: {str(e)}",
            extra={"user_id": user_id},
            exc_info=True
        )
        return False


def filter_activities(
    activities: List[Dict[str, Any]],
    activity_type: Optional[str] = None,
    status: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """
    Applies type/status filters and sorts by timestamp, most recent first.
    """
    filtered = [
        activity for activity in activities
        if (not activity_type or activity.get("type") == activity_type)
        and (not status or activity.get("status") == status)
    ]
    filtered.sort(key=lambda a: a.get("timestamp") or datetime.min, reverse=True)
    return filtered


async def query_activities(
    user_id: str,
    page: int = 1,
    limit: int = MAX_ACTIVITIES,
    activity_type: Optional[str] = None,
    status: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Returns a page of the user's security activities.

    An unfiltered first page on an empty log seeds and returns a single
    "Account accessed" activity.

    Raises:
        ResourceNotFoundError: If the user does not exist
    """
    with LogContext(user_id=user_id, operation="query_activities"):
        users = get_users_collection()
        user = await users.find_one(
            active_user_query(user_id),
            {"security.activities": 1}
        )
        if not user:
            raise ResourceNotFoundError("User not found")

        activities = filter_activities(
            (user.get("security") or {}).get("activities") or [],
            activity_type=activity_type,
            status=status,
        )
        total = len(activities)
        page_items = paginate(activities, page, limit)[:MAX_ACTIVITIES]

        if not page_items and page == 1 and not activity_type and not status:
            logger.info("Seeding initial activity for empty log")
            await append_activity(user_id, BOOTSTRAP_ACTIVITY)
            seeded = {**BOOTSTRAP_ACTIVITY, "timestamp": utc_now()}
            return {
                "activities": [_public_activity(seeded)],
                "total": 1,
                "page": 1,
                "total_pages": 1,
            }

        return {
            "activities": [_public_activity(a) for a in page_items],
            "total": total,
            "page": page,
            "total_pages": total_pages(total, limit),
        }


def summarize_activities(activities: List[Dict[str, Any]], since: datetime) -> Dict[str, Any]:
    """
    Summarizes activities at or after `since`.
    """
    recent = [a for a in activities if a.get("timestamp") and a["timestamp"] >= since]
    type_counts = Counter(a.get("type") for a in recent)

    return {
        "total_activities": len(recent),
        "recent_logins": type_counts.get(ACTIVITY_TYPE_LOGIN, 0),
        "password_changes": type_counts.get(ACTIVITY_TYPE_PASSWORD_CHANGE, 0),
        "suspicious_activities": sum(
            1 for a in recent if a.get("status") == ACTIVITY_STATUS_WARNING
        ),
        "top_activity_types": [
            {"type": activity_type, "count": count}
            for activity_type, count in type_counts.most_common(TOP_ACTIVITY_TYPES_LIMIT)
        ],
    }


async def activity_summary(user_id: str, days: int = DEFAULT_ACTIVITY_SUMMARY_DAYS) -> Dict[str, Any]:
    """
    Summarizes the user's security activity over the trailing `days`.

    Raises:
        ResourceNotFoundError: If the user does not exist
    """
    users = get_users_collection()
    user = await users.find_one(active_user_query(user_id), {"security.activities": 1})
    if not user:
        raise ResourceNotFoundError("User not found")

    activities = (user.get("security") or {}).get("activities") or []
    return summarize_activities(activities, days_ago(days))


async def cleanup_old_activities(retention_days: int = 365) -> Dict[str, int]:
    """
    Removes activities older than the retention window across all users.

    The count comes from each document as it was just before its `$pull`,
    using the same predicate, so undated entries are neither removed nor
    counted.

    Returns:
        {"deleted_count": n}
    """
    users = get_users_collection()
    cutoff = days_ago(retention_days)
    stale = {"timestamp": {"$lt": cutoff}}
    deleted_count = 0

    cursor = users.find({"security.activities.timestamp": {"$lt": cutoff}}, {"_id": 1})
    async for user in cursor:
        before = await users.find_one_and_update(
            {"_id": user["_id"]},
            {"$pull": {"security.activities": stale}},
            projection={"security.activities.timestamp": 1},
            return_document=ReturnDocument.BEFORE
        )
        if before is None:
            continue
        activities = (before.get("security") or {}).get("activities") or []
        deleted_count += count_older_than(activities, "timestamp", cutoff)

    logger.info(
        f"Deleted {deleted_count} old security activities",
        extra={"operation": "cleanup_old_activities", "retention_days": retention_days}
    )
    return {"deleted_count": deleted_count}


async def enforce_security_limits() -> Dict[str, int]:
    """
    Re-applies the session and activity caps to every user.

    Entries are ranked by their own timestamps, not array position. Sessions
    past their natural expiry are dropped as well. Idempotent.

    Returns:
        {"users_updated", "activities_trimmed", "sessions_trimmed"}
    """
    users = get_users_collection()
    session_cutoff = days_ago(SESSION_TTL_DAYS)

    users_updated = 0
    activities_trimmed = 0
    sessions_trimmed = 0
    operations: List[UpdateOne] = []

    cursor = users.find(
        {
            "$or": [
                {f"security.activities.{MAX_ACTIVITIES}": {"$exists": True}},
                {f"security.tokens.{MAX_SESSIONS}": {"$exists": True}},
                {"security.tokens.created_at": {"$lt": session_cutoff}},
            ]
        },
        {"security.activities": 1, "security.tokens": 1}
    )

    async for user in cursor:
        security = user.get("security") or {}
        changes: Dict[str, Any] = {}

        activities = security.get("activities") or []
        if len(activities) > MAX_ACTIVITIES:
            kept, removed = trim_newest(activities, MAX_ACTIVITIES, "timestamp")
            changes["security.activities"] = kept
            activities_trimmed += removed

        tokens = security.get("tokens") or []
        live, expired = partition_by_cutoff(tokens, "created_at", session_cutoff)
        kept, over_cap = trim_newest(live, MAX_SESSIONS, "created_at")
        if expired or over_cap:
            changes["security.tokens"] = kept
            sessions_trimmed += expired + over_cap

        if changes:
            operations.append(UpdateOne({"_id": user["_id"]}, {"$set": changes}))
            users_updated += 1

    if operations:
        await users.bulk_write(operations, ordered=False)

    logger.info(
        f"Security limits enforced: {users_updated} users updated, "
        f"{activities_trimmed} activities trimmed, {sessions_trimmed} sessions trimmed",
        extra={"operation": "enforce_security_limits"}
    )
    return {
        "users_updated": users_updated,
        "activities_trimmed": activities_trimmed,
        "sessions_trimmed": sessions_trimmed,
    }
