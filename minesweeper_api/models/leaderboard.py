"""Database models for leaderboard results and consumed game ids."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict

from sqlalchemy import DateTime, Index, UniqueConstraint
from sqlmodel import Field as ORMField, SQLModel

from ..core.time import isoformat_z, utcnow


class LeaderboardRecord(SQLModel, table=True):
    """Best accepted time of one player on one difficulty."""

    __tablename__ = "leaderboard_records"
    __table_args__ = (
        UniqueConstraint("difficulty", "game_id", name="uq_leaderboard_records_game"),
        Index("ix_leaderboard_records_rank", "difficulty", "verified", "time"),
    )

    difficulty: str = ORMField(primary_key=True, max_length=16)
    username: str = ORMField(primary_key=True, max_length=64)
    time: float
    timestamp: datetime = ORMField(default_factory=utcnow, sa_type=DateTime(timezone=True))
    game_id: str = ORMField(max_length=100)
    moves: int = 0
    verified: bool = True

    def to_public(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "difficulty": self.difficulty,
            "time": self.time,
            "timestamp": isoformat_z(self.timestamp),
            "gameId": self.game_id,
            "moves": self.moves,
            "verified": self.verified,
        }


class ClaimedGame(SQLModel, table=True):
    """A game id that has been scored once and may never be scored again."""

    __tablename__ = "claimed_games"

    difficulty: str = ORMField(primary_key=True, max_length=16)
    game_id: str = ORMField(primary_key=True, max_length=100)
    username: str = ORMField(max_length=64)
    claimed_at: datetime = ORMField(default_factory=utcnow, sa_type=DateTime(timezone=True))


__all__ = ["ClaimedGame", "LeaderboardRecord"]
