from datetime import datetime, timedelta

import pytest

from utils.collection_utils import bounded_push, count_older_than, paginate, partition_by_cutoff, total_pages, trim_newest

NOW = datetime(2024, 6, 1, 12, 0, 0)


def test_bounded_push_inserts_at_front_and_caps():
    item = {"token": "abc"}
    modifier = bounded_push(item, 10)
    assert modifier == {"$each": [item], "$position": 0, "$slice": 10}


def test_bounded_push_rejects_non_positive_limit():
    with pytest.raises(ValueError):
        bounded_push({}, 0)


def test_trim_newest_orders_by_timestamp_not_position():
    items = [{"n": i, "timestamp": NOW - timedelta(minutes=i)} for i in range(25)]
    items.reverse()  # oldest first, as a legacy append would leave them

    kept, removed = trim_newest(items, 20, "timestamp")

    assert removed == 5
    assert len(kept) == 20
    assert [entry["n"] for entry in kept] == list(range(20))


def test_trim_newest_treats_missing_timestamp_as_oldest():
    items = [{"n": "none"}, {"n": "new", "timestamp": NOW}]
    kept, removed = trim_newest(items, 1, "timestamp")
    assert removed == 1
    assert kept == [{"n": "new", "timestamp": NOW}]


def test_trim_newest_under_cap_removes_nothing():
    items = [{"timestamp": NOW}]
    kept, removed = trim_newest(items, 20, "timestamp")
    assert removed == 0
    assert kept == items


def test_partition_by_cutoff_counts_old_and_undated_entries():
    cutoff = NOW - timedelta(days=30)
    items = [
        {"created_at": NOW},
        {"created_at": cutoff},
        {"created_at": cutoff - timedelta(seconds=1)},
        {},
    ]
    kept, removed = partition_by_cutoff(items, "created_at", cutoff)
    assert kept == items[:2]
    assert removed == 2


def test_count_older_than_skips_undated_entries():
    cutoff = NOW - timedelta(days=30)
    items = [
        {"timestamp": NOW - timedelta(days=40)},
        {"timestamp": None},
        {},
        {"timestamp": NOW - timedelta(days=5)},
        {"timestamp": cutoff},
    ]
    assert count_older_than(items, "timestamp", cutoff) == 1


@pytest.mark.parametrize("total,limit,expected", [(0, 10, 0), (1, 10, 1), (10, 10, 1), (11, 10, 2), (5, 0, 0)])
def test_total_pages(total, limit, expected):
    assert total_pages(total, limit) == expected


def test_paginate_returns_requested_page():
    items = list(range(25))
    assert paginate(items, 1, 10) == list(range(10))
    assert paginate(items, 3, 10) == [20, 21, 22, 23, 24]
    assert paginate(items, 4, 10) == []
