"""Service layer helpers."""

from .cache import TTLCache
from .context import AppServices, get_client, get_services
from .fingerprint import ClientInfo, Fingerprinter, entity_tag, etag_matches
from .leaderboard import LeaderboardStore
from .maintenance import Housekeeper
from .rate_limiter import RateLimiter, RateLimitPolicy
from .submission import SubmissionOrchestrator

__all__ = [
    "AppServices",
    "ClientInfo",
    "Fingerprinter",
    "Housekeeper",
    "LeaderboardStore",
    "RateLimitPolicy",
    "RateLimiter",
    "SubmissionOrchestrator",
    "TTLCache",
    "entity_tag",
    "etag_matches",
    "get_client",
    "get_services",
]
