"""Database model exports."""

from .leaderboard import ClaimedGame, LeaderboardRecord
from .rate_limit import RateLimitCounter
from .stats import UserStats

__all__ = [
    "ClaimedGame",
    "LeaderboardRecord",
    "RateLimitCounter",
    "UserStats",
]
