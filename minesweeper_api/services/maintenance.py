"""Opportunistic cleanup and storage health reporting.

There is no background scheduler: request handlers call
:meth:`Housekeeper.maybe_run`, which does real work at most once per
interval. Every cleanup is a plain ``DELETE ... WHERE`` and is safe to run
concurrently from several requests.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..core.time import Clock, isoformat_z, to_storage, utcnow
from ..errors import log_failure
from ..models import ClaimedGame, LeaderboardRecord, RateLimitCounter, UserStats

logger = logging.getLogger(__name__)

RATE_LIMIT_BACKLOG_WARNING = 1000
USER_STATS_BACKLOG_WARNING = 10000


class Housekeeper:
    def __init__(
        self,
        interval_seconds: int = 3600,
        user_stats_retention_days: int = 30,
        clock: Clock = utcnow,
    ):
        self.interval = timedelta(seconds=interval_seconds)
        self.user_stats_retention = timedelta(days=user_stats_retention_days)
        self._clock = clock
        self._last_run = None

    def reset(self) -> None:
        self._last_run = None

    def cleanup_expired_rate_limits(self, session: Session) -> int:
        now = to_storage(self._clock())
        result = session.exec(
            delete(RateLimitCounter)
            .where(RateLimitCounter.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        session.commit()
        return result.rowcount or 0

    def cleanup_expired_user_stats(self, session: Session, retention: Optional[timedelta] = None) -> int:
        cutoff = to_storage(self._clock() - (retention or self.user_stats_retention))
        result = session.exec(
            delete(UserStats)
            .where(UserStats.updated_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        session.commit()
        return result.rowcount or 0

    def perform_maintenance(self, session: Session) -> Optional[Dict[str, Any]]:
        """Run every cleanup now and describe what was removed."""

        actions: List[str] = []
        total = 0
        try:
            rate_limits = self.cleanup_expired_rate_limits(session)
            if rate_limits:
                actions.append(f"removed {rate_limits} expired rate-limit counters")
                total += rate_limits

            stats = self.cleanup_expired_user_stats(session)
            if stats:
                actions.append(f"removed {stats} stale user stats rows")
                total += stats
        except SQLAlchemyError:
            session.rollback()
            log_failure(logger, "Housekeeper.perform_maintenance")
            return None

        self._last_run = self._clock()
        if total:
            logger.info("Maintenance: %s", "; ".join(actions))
        return {
            "timestamp": isoformat_z(self._last_run),
            "actions": actions,
            "totalCleaned": total,
            "status": "completed" if total else "no_action_needed",
        }

    def maybe_run(self, session: Session) -> Optional[Dict[str, Any]]:
        """Run maintenance if the interval has elapsed since the last run."""

        now = self._clock()
        if self._last_run is not None and now - self._last_run < self.interval:
            return None
        return self.perform_maintenance(session)

    def health_report(self, session: Session) -> Optional[Dict[str, Any]]:
        """Row counts per table plus cleanup recommendations."""

        tables = {
            "leaderboard_records": LeaderboardRecord,
            "user_stats": UserStats,
            "rate_limit_counters": RateLimitCounter,
            "claimed_games": ClaimedGame,
        }
        try:
            counts = {
                name: session.exec(select(func.count()).select_from(model)).one()
                for name, model in tables.items()
            }
            now = to_storage(self._clock())
            expired = session.exec(
                select(func.count())
                .select_from(RateLimitCounter)
                .where(RateLimitCounter.expires_at < now)
            ).one()
        except SQLAlchemyError:
            session.rollback()
            log_failure(logger, "Housekeeper.health_report")
            return None

        recommendations: List[str] = []
        if counts["rate_limit_counters"] > RATE_LIMIT_BACKLOG_WARNING:
            recommendations.append("purge expired rate-limit counters")
        if counts["user_stats"] > USER_STATS_BACKLOG_WARNING:
            recommendations.append("purge stale user stats")
        if expired:
            recommendations.append(f"{expired} expired rate-limit counters awaiting cleanup")

        return {
            "timestamp": isoformat_z(self._clock()),
            "tables": counts,
            "recommendations": recommendations,
            "status": "needs_attention" if recommendations else "optimal",
        }


__all__ = ["Housekeeper"]
