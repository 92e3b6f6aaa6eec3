"""Clock helpers shared by the services and models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    """Return the current UTC datetime."""

    return datetime.now(timezone.utc)


def to_storage(value: datetime) -> datetime:
    """Normalise a datetime to aware UTC before it is written; naive means UTC."""

    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def from_storage(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to a datetime read back from the database.

    SQLite drops the offset on the way in, so values come back naive.
    """

    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat_z(value: datetime) -> str:
    """Render a datetime as ISO-8601 UTC with millisecond precision and a Z suffix."""

    aware = from_storage(value)
    return aware.strftime("%Y-%m-%dT%H:%M:%S.") + f"{aware.microsecond // 1000:03d}Z"


__all__ = [
    "Clock",
    "from_storage",
    "isoformat_z",
    "to_storage",
    "utcnow",
]
