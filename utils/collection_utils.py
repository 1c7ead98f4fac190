"""
utils/collection_utils.py

Purpose: Bounded collection policy for embedded arrays

- Builds atomic "$push to front and cap" modifiers for MongoDB
- Trims over-cap arrays by the entries' own timestamps
- Pagination helpers shared by in-memory and database listings
"""

from datetime import datetime
from math import ceil
from typing import Any, Dict, List, Tuple


def bounded_push(item: Dict[str, Any], limit: int) -> Dict[str, Any]:
    """
    Builds the `$push` modifier that inserts `item` at the front of an array
    and evicts tail entries beyond `limit`, in a single atomic update.

    Usage:
        {"$push": {"security.tokens": bounded_push(session, MAX_SESSIONS)}}
    """
    if limit < 1:
        raise ValueError("limit must be at least 1")
    return {"$each": [item], "$position": 0, "$slice": limit}


def trim_newest(items: List[Dict[str, Any]], limit: int, timestamp_key: str) -> Tuple[List[Dict[str, Any]], int]:
    """
    Keeps the `limit` most recent entries, ordered most-recent-first.

    Ordering uses each entry's `timestamp_key` rather than array position,
    since legacy writes may have appended out of order. Entries without a
    timestamp sort as oldest.

    Returns:
        (kept entries, number of entries removed)
    """
    ordered = sorted(
        items,
        key=lambda entry: entry.get(timestamp_key) or datetime.min,
        reverse=True,
    )
    kept = ordered[:limit]
    return kept, len(items) - len(kept)


def partition_by_cutoff(items: List[Dict[str, Any]], timestamp_key: str, cutoff: datetime) -> Tuple[List[Dict[str, Any]], int]:
    """
    Splits out entries older than `cutoff`. Undated entries count as older.

    Returns:
        (entries at or after cutoff in original order, number of older entries)
    """
    kept = [
        entry for entry in items
        if entry.get(timestamp_key) and entry[timestamp_key] >= cutoff
    ]
    return kept, len(items) - len(kept)


def count_older_than(items: List[Dict[str, Any]], timestamp_key: str, cutoff: datetime) -> int:
    """
    Counts entries a `{timestamp_key: {"$lt": cutoff}}` pull removes.
    Entries without a datetime never match.
    """
    return sum(
        1 for entry in items
        if isinstance(entry.get(timestamp_key), datetime) and entry[timestamp_key] < cutoff
    )


def total_pages(total: int, limit: int) -> int:
    if limit <= 0:
        return 0
    return ceil(total / limit)


def paginate(items: List[Any], page: int, limit: int) -> List[Any]:
    """
    Returns the 1-based `page` of `items`.
    """
    start = (page - 1) * limit
    return items[start:start + limit]
