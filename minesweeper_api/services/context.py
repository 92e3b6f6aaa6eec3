"""Process-wide service objects shared by every request."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request
from sqlalchemy.engine import Engine

from ..core import config
from ..core.time import Clock, utcnow
from .cache import TTLCache
from .fingerprint import ClientInfo, Fingerprinter, HashProvider, select_hash_provider
from .maintenance import Housekeeper
from .rate_limiter import RateLimitPolicy


@dataclass
class AppServices:
    """Long-lived collaborators built once by ``create_app``."""

    engine: Engine
    fingerprinter: Fingerprinter
    policy: RateLimitPolicy
    clock: Clock = utcnow
    cache: TTLCache = field(default_factory=lambda: TTLCache(config.LEADERBOARD_CACHE_TTL_SEC))
    housekeeper: Optional[Housekeeper] = None
    cache_ttl: float = config.LEADERBOARD_CACHE_TTL_SEC
    page_size: int = config.LEADERBOARD_PAGE_SIZE
    client_ip_header: Optional[str] = config.CLIENT_IP_HEADER

    def __post_init__(self) -> None:
        if self.housekeeper is None:
            self.housekeeper = Housekeeper(
                interval_seconds=config.MAINTENANCE_INTERVAL_SEC,
                user_stats_retention_days=config.USER_STATS_RETENTION_DAYS,
                clock=self.clock,
            )

    @classmethod
    def build(
        cls,
        engine: Engine,
        clock: Clock = utcnow,
        hash_provider: Optional[HashProvider] = None,
        policy: Optional[RateLimitPolicy] = None,
    ) -> "AppServices":
        provider = hash_provider or select_hash_provider(config.FINGERPRINT_HASH)
        return cls(
            engine=engine,
            fingerprinter=Fingerprinter(provider),
            policy=policy or RateLimitPolicy.from_config(),
            clock=clock,
        )

    def reset(self) -> None:
        """Forget cached snapshots and housekeeping state."""

        self.cache.clear()
        self.housekeeper.reset()


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_client(request: Request) -> ClientInfo:
    return ClientInfo.from_request(request, get_services(request).client_ip_header)


__all__ = ["AppServices", "get_client", "get_services"]
