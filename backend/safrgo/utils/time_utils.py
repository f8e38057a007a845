"""
Time helpers.

WHAT: Current time and timestamp normalization in naive UTC
WHY: Message ordering and unread counts compare timestamps, so every write
     must use one convention
HOW: Aware datetimes are converted to UTC and stripped of tzinfo
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the store keeps naive UTC)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)
