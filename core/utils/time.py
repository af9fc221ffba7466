"""
Time Utilities

Providers return timestamps in different formats:
- Yahoo Finance: seconds since epoch (e.g., 1704110400)
- Financial Modeling Prep: ISO dates (e.g., "2024-01-01")
- We need: Python datetime objects in UTC

The utilities in this module normalize timestamps into consistent UTC
datetime objects and back.
"""

from datetime import datetime, timezone
from typing import Union


def to_utc_datetime(timestamp: Union[int, float]) -> datetime:
    """
    Convert a timestamp (seconds or milliseconds) to UTC datetime.

    Detection Logic:
        - If timestamp > 1e12 (1 trillion): Assumed to be milliseconds
        - Otherwise: Assumed to be seconds

    Args:
        timestamp: Unix timestamp in seconds or milliseconds

    Returns:
        datetime: Timezone-aware datetime object in UTC

    Raises:
        ValueError: If timestamp is negative or invalid

    Examples:
        >>> to_utc_datetime(1704110400000)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)

        >>> to_utc_datetime(1704110400)
        datetime.datetime(2024, 1, 1, 12, 0, tzinfo=datetime.timezone.utc)
    """
    if timestamp < 0:
        raise ValueError(f"Timestamp cannot be negative: {timestamp}")

    # Current time in seconds is ~1.7 billion, in milliseconds ~1.7 trillion
    if timestamp > 1e12:
        timestamp = timestamp / 1000.0

    try:
        return datetime.fromtimestamp(timestamp, tz=timezone.utc)
    except (OSError, OverflowError, ValueError) as e:
        raise ValueError(f"Invalid timestamp: {timestamp}. Error: {e}")


def datetime_to_timestamp(dt: datetime, milliseconds: bool = False) -> int:
    """
    Convert a datetime object to Unix timestamp.

    Args:
        dt: Datetime object (can be naive or timezone-aware)
        milliseconds: If True, return milliseconds; if False, return seconds

    Returns:
        int: Unix timestamp in seconds or milliseconds

    Notes:
        - If datetime is naive (no timezone), UTC is assumed
        - Result is always an integer (fractional seconds are truncated)
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)

    timestamp = int(dt.timestamp())

    if milliseconds:
        timestamp *= 1000

    return timestamp


def current_utc_datetime() -> datetime:
    """Get current time as a timezone-aware datetime in UTC."""
    return datetime.now(timezone.utc)


def current_utc_isoformat() -> str:
    """
    Current UTC time as an ISO-8601 string with a ``Z`` suffix.

    Example:
        >>> current_utc_isoformat()
        '2024-01-01T12:00:00.123456Z'
    """
    return current_utc_datetime().isoformat().replace("+00:00", "Z")


def years_ago(years: int, now: datetime = None) -> datetime:
    """
    Same calendar day ``years`` years before ``now`` (UTC).

    February 29 falls back to February 28 in non-leap target years.
    """
    now = now or current_utc_datetime()
    try:
        return now.replace(year=now.year - years)
    except ValueError:
        return now.replace(year=now.year - years, day=28)
