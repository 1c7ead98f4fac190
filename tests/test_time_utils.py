from datetime import datetime, timedelta

from utils.time_utils import days_ago, get_relative_time, is_expired, is_session_expired

NOW = datetime(2024, 6, 1, 12, 0, 0)


def test_missing_expiry_never_expires():
    assert is_expired(None, NOW) is False


def test_expiry_is_strictly_before_now():
    assert is_expired(NOW - timedelta(seconds=1), NOW) is True
    assert is_expired(NOW, NOW) is False
    assert is_expired(NOW + timedelta(days=1), NOW) is False


def test_session_expires_after_ttl():
    assert is_session_expired(NOW - timedelta(days=31), 30, NOW) is True
    assert is_session_expired(NOW - timedelta(days=29), 30, NOW) is False


def test_session_without_creation_time_counts_as_expired():
    assert is_session_expired(None, 30, NOW) is True


def test_days_ago():
    assert days_ago(30, NOW) == NOW - timedelta(days=30)


def test_relative_time_units():
    assert get_relative_time(None) == "Unknown"
    assert get_relative_time(NOW - timedelta(seconds=1), NOW) == "1 second ago"
    assert get_relative_time(NOW - timedelta(seconds=45), NOW) == "45 seconds ago"
    assert get_relative_time(NOW - timedelta(minutes=5), NOW) == "5 minutes ago"
    assert get_relative_time(NOW - timedelta(hours=1), NOW) == "1 hour ago"
    assert get_relative_time(NOW - timedelta(days=3), NOW) == "3 days ago"


def test_relative_time_clamps_future_timestamps():
    assert get_relative_time(NOW + timedelta(minutes=5), NOW) == "0 seconds ago"
