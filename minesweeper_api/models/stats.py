"""Database model for per-player submission statistics."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field as ORMField, SQLModel

from ..core.time import utcnow


class UserStats(SQLModel, table=True):
    """Longitudinal statistics for one (username, difficulty) pair."""

    __tablename__ = "user_stats"

    username: str = ORMField(primary_key=True, max_length=64)
    difficulty: str = ORMField(primary_key=True, max_length=16)
    submissions: int = 0
    best_time: Optional[float] = None
    average_time: float = 0.0
    total_time: float = 0.0
    last_submission: Optional[datetime] = ORMField(default=None, sa_type=DateTime(timezone=True))
    suspicious_count: int = 0
    updated_at: datetime = ORMField(
        default_factory=utcnow, index=True, sa_type=DateTime(timezone=True)
    )


__all__ = ["UserStats"]
