"""Durable leaderboard access with a read-through snapshot cache.

Writes keep one row per (difficulty, username): a new time replaces the
stored one only when it is strictly lower, and that comparison happens inside
the same ``INSERT ... ON CONFLICT DO UPDATE ... WHERE`` statement, so
concurrent submissions from one player cannot lose an update.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from ..core.database import dialect_insert
from ..core.time import Clock, to_storage, utcnow
from ..errors import DependencyFailure, log_failure
from ..models import ClaimedGame, LeaderboardRecord
from .cache import TTLCache

logger = logging.getLogger(__name__)

# Rows held in each cached snapshot; ``get_top`` slices from it.
SNAPSHOT_SIZE = 100
DEFAULT_TOP = 20


@dataclass(frozen=True)
class ScoreRecord:
    """A verified score about to be written."""

    username: str
    difficulty: str
    time: float
    game_id: str
    moves: int
    timestamp: datetime
    verified: bool = True


class SubmitStatus(str, enum.Enum):
    INSERTED = "inserted"
    IMPROVED = "improved"
    NOT_IMPROVED = "not_improved"
    DUPLICATE = "duplicate"

    @property
    def written(self) -> bool:
        return self in (SubmitStatus.INSERTED, SubmitStatus.IMPROVED)


@dataclass(frozen=True)
class SubmitResult:
    status: SubmitStatus
    current_best: Optional[float] = None


def snapshot_key(difficulty: str) -> str:
    return TTLCache.key("leaderboard", difficulty)


def rank_of(username: str, records: List[Dict[str, Any]]) -> Optional[int]:
    """1-based position of ``username`` in ``records``, or None."""

    for index, record in enumerate(records, start=1):
        if record.get("username") == username:
            return index
    return None


class LeaderboardStore:
    def __init__(
        self,
        session: Session,
        cache: TTLCache,
        clock: Clock = utcnow,
        cache_ttl: Optional[float] = None,
    ):
        self.session = session
        self.cache = cache
        self._clock = clock
        self.cache_ttl = cache_ttl

    def _query_top(self, difficulty: str, limit: int) -> List[Dict[str, Any]]:
        rows = self.session.exec(
            select(LeaderboardRecord)
            .where(
                LeaderboardRecord.difficulty == difficulty,
                LeaderboardRecord.verified == True,  # noqa: E712 - SQL expression
            )
            .order_by(LeaderboardRecord.time.asc(), LeaderboardRecord.timestamp.asc())
            .limit(limit)
        ).all()
        return [row.to_public() for row in rows]

    def get_top(self, difficulty: str, limit: int = DEFAULT_TOP) -> List[Dict[str, Any]]:
        """Lowest verified times for a difficulty, fastest first.

        Falls back to an empty list when the store cannot be read.
        """

        limit = max(0, min(limit, SNAPSHOT_SIZE))
        key = snapshot_key(difficulty)
        cached = self.cache.get(key)
        if cached is not None:
            return cached[:limit]

        try:
            snapshot = self._query_top(difficulty, SNAPSHOT_SIZE)
        except SQLAlchemyError:
            self.session.rollback()
            log_failure(logger, f"LeaderboardStore.get_top({difficulty})")
            return []

        self.cache.set(key, snapshot, self.cache_ttl)
        return snapshot[:limit]

    def best_time(self, username: str, difficulty: str) -> Optional[float]:
        return self.session.exec(
            select(LeaderboardRecord.time).where(
                LeaderboardRecord.difficulty == difficulty,
                LeaderboardRecord.username == username,
            )
        ).first()

    def _claim_game(self, record: ScoreRecord) -> bool:
        stmt = (
            dialect_insert(self.session, ClaimedGame)
            .values(
                difficulty=record.difficulty,
                game_id=record.game_id,
                username=record.username,
                claimed_at=to_storage(self._clock()),
            )
            .on_conflict_do_nothing(index_elements=["difficulty", "game_id"])
            .returning(ClaimedGame.game_id)
        )
        return self.session.exec(stmt).first() is not None

    def _upsert_if_better(self, record: ScoreRecord) -> bool:
        stmt = dialect_insert(self.session, LeaderboardRecord).values(
            difficulty=record.difficulty,
            username=record.username,
            time=record.time,
            timestamp=to_storage(record.timestamp),
            game_id=record.game_id,
            moves=record.moves,
            verified=record.verified,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["difficulty", "username"],
            set_={
                "time": stmt.excluded.time,
                "timestamp": stmt.excluded.timestamp,
                "game_id": stmt.excluded.game_id,
                "moves": stmt.excluded.moves,
                "verified": stmt.excluded.verified,
            },
            where=LeaderboardRecord.time > stmt.excluded.time,
        ).returning(LeaderboardRecord.time)
        return self.session.exec(stmt).first() is not None

    def submit(self, record: ScoreRecord) -> SubmitResult:
        """Claim the game id and keep the record only if it beats the stored best.

        Raises :class:`DependencyFailure` when the store is unavailable.
        """

        try:
            if not self._claim_game(record):
                self.session.rollback()
                logger.warning(
                    "Duplicate game %s for %s on %s", record.game_id, record.username, record.difficulty
                )
                return SubmitResult(SubmitStatus.DUPLICATE)

            previous = self.best_time(record.username, record.difficulty)
            written = self._upsert_if_better(record)
            current_best = record.time if written else self.best_time(record.username, record.difficulty)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            error_id = log_failure(logger, f"LeaderboardStore.submit({record.username})")
            raise DependencyFailure(
                f"leaderboard write failed ({error_id})",
                log_details={"errorId": error_id},
            ) from exc

        if not written:
            return SubmitResult(SubmitStatus.NOT_IMPROVED, current_best=current_best)

        self.cache.delete(snapshot_key(record.difficulty))
        status = SubmitStatus.INSERTED if previous is None else SubmitStatus.IMPROVED
        logger.info(
            "Stored %.3fs for %s on %s (%s)", record.time, record.username, record.difficulty, status.value
        )
        return SubmitResult(status, current_best=current_best)


__all__ = [
    "DEFAULT_TOP",
    "LeaderboardStore",
    "ScoreRecord",
    "SubmitResult",
    "SubmitStatus",
    "rank_of",
    "snapshot_key",
]
