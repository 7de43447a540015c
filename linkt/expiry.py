"""
Time-to-live policy for share entries.

Every entry lives for a fixed 24 hours from its creation time. Liveness is a
pure function of elapsed time; reading an entry never changes it.
"""
from datetime import datetime, timedelta, timezone

TTL = timedelta(hours=24)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def expires_at(created_at: datetime) -> datetime:
    return created_at + TTL


def is_expired(created_at: datetime, now: datetime) -> bool:
    """True once strictly more than the TTL has elapsed since creation."""
    return now - created_at > TTL


def isoformat(value: datetime) -> str:
    """Format as UTC with millisecond precision and a trailing Z."""
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(text: str) -> datetime:
    """Parse a timestamp written by isoformat(); naive values are taken as UTC."""
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value
