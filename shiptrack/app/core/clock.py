"""
Clock helpers.

All persisted timestamps are naive UTC. Call ``clock.utcnow()`` through the
module (not via a from-import) so tests can monkeypatch the current time.
"""

from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo

from shiptrack.app.core.config import settings


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(value: datetime) -> datetime:
    """Normalize an aware or naive datetime to naive UTC (naive is assumed UTC)."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def local_timezone() -> tzinfo:
    return ZoneInfo(settings.timezone)


def as_utc(value: datetime) -> datetime:
    """Attach the UTC tzinfo to a stored naive timestamp."""
    return value.replace(tzinfo=timezone.utc)
