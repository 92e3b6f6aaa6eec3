"""Canonical difficulty tiers and the plausibility bounds attached to them."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Tuple


@dataclass(frozen=True)
class DifficultyTier:
    """Board configuration and score bounds for one difficulty level."""

    name: str
    width: int
    height: int
    mines: int
    min_moves: int
    min_time: float
    max_time: float
    world_record: float

    @property
    def max_moves(self) -> int:
        # Clicking every cell twice is the most a real game needs.
        return self.width * self.height * 2


TIERS: Dict[str, DifficultyTier] = {
    "beginner": DifficultyTier(
        name="beginner",
        width=9,
        height=9,
        mines=10,
        min_moves=8,
        min_time=1,
        max_time=999,
        world_record=0.49,
    ),
    "intermediate": DifficultyTier(
        name="intermediate",
        width=16,
        height=16,
        mines=40,
        min_moves=15,
        min_time=3,
        max_time=1999,
        world_record=7.03,
    ),
    "expert": DifficultyTier(
        name="expert",
        width=30,
        height=16,
        mines=99,
        min_moves=25,
        min_time=5,
        max_time=2999,
        world_record=31.133,
    ),
}

DIFFICULTIES: Tuple[str, ...] = tuple(TIERS)


__all__ = ["DIFFICULTIES", "DifficultyTier", "TIERS"]
