"""
app/models/contact.py

Purpose: General contact (support request) model

- Status enum for the support workflow
  (PENDING, IN_PROGRESS, RESOLVED, CLOSED)
- Status transition validation
- Document builder
"""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from utils.time_utils import utc_now


class ContactStatus(str, Enum):
    """
    Lifecycle of a support request.
    """
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class ContactPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


# Allowed next statuses; a status may always be re-set to itself
STATUS_TRANSITIONS: Dict[ContactStatus, List[ContactStatus]] = {
    ContactStatus.PENDING: [
        ContactStatus.IN_PROGRESS,
        ContactStatus.RESOLVED,
        ContactStatus.CLOSED,
    ],
    ContactStatus.IN_PROGRESS: [
        ContactStatus.RESOLVED,
        ContactStatus.CLOSED,
        ContactStatus.PENDING,
    ],
    ContactStatus.RESOLVED: [
        ContactStatus.CLOSED,
        ContactStatus.IN_PROGRESS,
    ],
    ContactStatus.CLOSED: [
        ContactStatus.IN_PROGRESS,
    ],
}


def is_valid_transition(from_status: ContactStatus, to_status: ContactStatus) -> bool:
    """
    Checks if a status transition is valid.

    Args:
        from_status: Current status
        to_status: Target status

    Returns:
        True if transition is allowed, False otherwise
    """
    if from_status == to_status:
        return True
    return to_status in STATUS_TRANSITIONS.get(from_status, [])


def build_contact_document(
    data: Dict[str, Any],
    ip_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    now = now or utc_now()
    return {
        "name": data["name"].strip(),
        "email": data["email"].strip().lower(),
        "phone": data.get("phone"),
        "issue_type": data["issue_type"],
        "subject": data["subject"].strip(),
        "message": data["message"].strip(),
        "priority": data.get("priority") or ContactPriority.LOW.value,
        "ip_address": ip_address,
        "status": ContactStatus.PENDING.value,
        "assigned_to": None,
        "response_notes": None,
        "resolved_at": None,
        "customer_satisfaction_rating": None,
        "follow_up_required": False,
        "is_deleted": False,
        "deleted_at": None,
        "created_at": now,
        "updated_at": now,
    }
