"""
app/models/application.py

Purpose: Job and internship application models

- Document builders for the applications and interns collections
- Both share the review flags (is_replied, is_shortlisted) and soft delete
"""

from datetime import datetime
from typing import Any, Dict, Optional

from utils.time_utils import utc_now


def _review_fields(now: datetime) -> Dict[str, Any]:
    return {
        "is_replied": False,
        "is_shortlisted": False,
        "is_deleted": False,
        "deleted_at": None,
        "created_at": now,
        "updated_at": now,
    }


def build_application_document(
    data: Dict[str, Any],
    ip_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    now = now or utc_now()
    return {
        "full_name": data["full_name"].strip(),
        "email": data["email"].strip().lower(),
        "phone": data["phone"],
        "position": data["position"].strip(),
        "experience": data.get("experience"),
        "message": data.get("message"),
        "resume_link": data.get("resume_link"),
        "portfolio_link": data.get("portfolio_link"),
        "ip_address": ip_address,
        **_review_fields(now),
    }


def build_intern_document(
    data: Dict[str, Any],
    ip_address: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    Builds an internship application.

    The caller has already verified privacy_consent is true.
    """
    now = now or utc_now()
    contact_info = data.get("contact_info") or {}
    information = data.get("information") or {}
    links = data.get("links") or {}
    return {
        "full_name": data["full_name"].strip(),
        "college": data.get("college"),
        "contact_info": {
            "email": (contact_info.get("email") or "").strip().lower(),
            "phone": contact_info.get("phone"),
        },
        "information": {
            "experience": information.get("experience"),
            "message": information.get("message"),
        },
        "links": {
            "resume_link": links.get("resume_link"),
            "linkedin": links.get("linkedin"),
            "portfolio_link": links.get("portfolio_link"),
        },
        "additional_info": data.get("additional_info") or {},
        "privacy_consent": True,
        "ip_address": ip_address,
        **_review_fields(now),
    }
