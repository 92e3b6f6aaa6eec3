"""Database model for fixed-window rate-limit counters."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field as ORMField, SQLModel


class RateLimitCounter(SQLModel, table=True):
    """Request count for one key inside one time bucket."""

    __tablename__ = "rate_limit_counters"

    key_type: str = ORMField(primary_key=True, max_length=16)
    # Raw key plus the time bucket, e.g. "203.0.113.7:29012345".
    key_value: str = ORMField(primary_key=True, max_length=128)
    count: int = 0
    expires_at: datetime = ORMField(index=True, sa_type=DateTime(timezone=True))


__all__ = ["RateLimitCounter"]
