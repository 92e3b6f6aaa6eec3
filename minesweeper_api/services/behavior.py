"""Per-player submission cadence heuristics.

Throttles bursts of submissions from one player; never bans permanently. The
suspicion counter grows by one for each submission inside the burst window
and decays by one for each submission outside it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..core.database import dialect_insert
from ..core.time import Clock, from_storage, to_storage, utcnow
from ..errors import log_failure
from ..models import UserStats

logger = logging.getLogger(__name__)

FREQUENT_SUBMISSION_WINDOW_SEC = 300
MAX_SUSPICIOUS_COUNT = 3


@dataclass
class StatsSnapshot:
    submissions: int = 0
    best_time: Optional[float] = None
    average_time: float = 0.0
    total_time: float = 0.0
    last_submission: Optional[datetime] = None
    suspicious_count: int = 0

    @classmethod
    def from_row(cls, row: Optional[UserStats]) -> "StatsSnapshot":
        if row is None:
            return cls()
        return cls(
            submissions=row.submissions,
            best_time=row.best_time,
            average_time=row.average_time,
            total_time=row.total_time,
            last_submission=from_storage(row.last_submission),
            suspicious_count=row.suspicious_count,
        )


@dataclass
class BehaviorVerdict:
    suspicious: bool
    reason: Optional[str] = None
    action: Optional[str] = None
    stats: StatsSnapshot = field(default_factory=StatsSnapshot)
    saved: bool = False
    error: bool = False


class BehaviorProfiler:
    def __init__(
        self,
        session: Session,
        clock: Clock = utcnow,
        window_seconds: int = FREQUENT_SUBMISSION_WINDOW_SEC,
        max_suspicious: int = MAX_SUSPICIOUS_COUNT,
    ):
        self.session = session
        self._clock = clock
        self.window_seconds = window_seconds
        self.max_suspicious = max_suspicious

    def load(self, username: str, difficulty: str) -> StatsSnapshot:
        """Current stats for a player; defaults when absent or unreadable."""

        try:
            row = self.session.exec(
                select(UserStats).where(
                    UserStats.username == username,
                    UserStats.difficulty == difficulty,
                )
            ).first()
        except SQLAlchemyError:
            self.session.rollback()
            log_failure(logger, f"BehaviorProfiler.load({username}, {difficulty})")
            return StatsSnapshot()
        return StatsSnapshot.from_row(row)

    def save(self, username: str, difficulty: str, stats: StatsSnapshot) -> bool:
        """Write the whole stats row back in one upsert."""

        now = to_storage(self._clock())
        values = {
            "username": username,
            "difficulty": difficulty,
            "submissions": stats.submissions,
            "best_time": stats.best_time,
            "average_time": stats.average_time,
            "total_time": stats.total_time,
            "last_submission": to_storage(stats.last_submission) if stats.last_submission else None,
            "suspicious_count": stats.suspicious_count,
            "updated_at": now,
        }
        stmt = dialect_insert(self.session, UserStats).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=["username", "difficulty"],
            set_={
                key: getattr(stmt.excluded, key)
                for key in values
                if key not in ("username", "difficulty")
            },
        )
        try:
            self.session.exec(stmt)
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            log_failure(logger, f"BehaviorProfiler.save({username}, {difficulty})")
            return False
        # Drop any stale UserStats instance cached by earlier selects.
        self.session.expire_all()
        return True

    def analyze(self, username: str, difficulty: str, time: float) -> BehaviorVerdict:
        stats = self.load(username, difficulty)
        now = self._clock()

        if stats.last_submission is not None:
            since_last = (now - stats.last_submission).total_seconds()
        else:
            since_last = float("inf")

        if since_last < self.window_seconds:
            stats.suspicious_count += 1
            if stats.suspicious_count > self.max_suspicious:
                # Capped so a burst throttles for a while instead of banning outright.
                stats.suspicious_count = self.max_suspicious + 1
                saved = self.save(username, difficulty, stats)
                logger.warning(
                    "Temporary block for %s on %s: %d submissions within %ss",
                    username,
                    difficulty,
                    stats.suspicious_count,
                    self.window_seconds,
                )
                return BehaviorVerdict(
                    suspicious=True,
                    reason="frequent submissions",
                    action="temporary_block",
                    stats=stats,
                    saved=saved,
                )
        else:
            stats.suspicious_count = max(0, stats.suspicious_count - 1)

        stats.submissions += 1
        stats.total_time += time
        stats.average_time = stats.total_time / stats.submissions
        stats.best_time = time if stats.best_time is None else min(stats.best_time, time)
        stats.last_submission = now

        saved = self.save(username, difficulty, stats)
        return BehaviorVerdict(suspicious=False, stats=stats, saved=saved, error=not saved)


__all__ = ["BehaviorProfiler", "BehaviorVerdict", "StatsSnapshot"]
