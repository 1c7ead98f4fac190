"""
utils/time_utils.py

Purpose: Time and expiry helpers

- Naive-UTC "now" matching how pymongo decodes stored dates
- Session and reward expiry checks
- Human-readable relative recency
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Current time as naive UTC, the form pymongo returns for stored dates.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def days_ago(days: int, now: Optional[datetime] = None) -> datetime:
    """
    Returns the instant `days` days before now.
    """
    return (now or utc_now()) - timedelta(days=days)


def days_from_now(days: int, now: Optional[datetime] = None) -> datetime:
    return (now or utc_now()) + timedelta(days=days)


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """
    Checks whether an optional expiry timestamp is in the past.
    A missing expiry never expires.
    """
    if not expires_at:
        return False
    return expires_at < (now or utc_now())


def is_session_expired(created_at: Optional[datetime], ttl_days: int, now: Optional[datetime] = None) -> bool:
    """
    Checks if a session created at `created_at` has outlived its TTL.
    """
    if not created_at:
        return True
    return created_at + timedelta(days=ttl_days) < (now or utc_now())


def _plural(value: int, unit: str) -> str:
    return f"{value} {unit}{'s' if value != 1 else ''} ago"


def get_relative_time(dt: Optional[datetime], now: Optional[datetime] = None) -> str:
    """
    Formats a timestamp as "N seconds/minutes/hours/days ago".
    """
    if not dt:
        return "Unknown"

    diff_seconds = max(0, int(((now or utc_now()) - dt).total_seconds()))

    if diff_seconds < 60:
        return _plural(diff_seconds, "second")
    if diff_seconds < 3600:
        return _plural(diff_seconds // 60, "minute")
    if diff_seconds < 86400:
        return _plural(diff_seconds // 3600, "hour")
    return _plural(diff_seconds // 86400, "day")
