"""Core configuration and infrastructure helpers."""

from .config import (
    ALLOWED_CORS_ORIGINS,
    CLIENT_IP_HEADER,
    DATABASE_URL,
    DB_RESET,
    FINGERPRINT_HASH,
    LEADERBOARD_CACHE_TTL_SEC,
    LEADERBOARD_PAGE_SIZE,
    LOG_LEVEL,
    MAINTENANCE_INTERVAL_SEC,
    RATE_LIMIT_BUCKET_SEC,
    RATE_LIMIT_FINGERPRINT,
    RATE_LIMIT_GLOBAL,
    RATE_LIMIT_IP,
    RATE_LIMIT_TTL_SEC,
    USER_STATS_RETENTION_DAYS,
)
from .database import build_engine, dialect_insert, get_session
from .logging import configure_logging
from .time import Clock, from_storage, isoformat_z, to_storage, utcnow

__all__ = [
    "ALLOWED_CORS_ORIGINS",
    "CLIENT_IP_HEADER",
    "Clock",
    "DATABASE_URL",
    "DB_RESET",
    "FINGERPRINT_HASH",
    "LEADERBOARD_CACHE_TTL_SEC",
    "LEADERBOARD_PAGE_SIZE",
    "LOG_LEVEL",
    "MAINTENANCE_INTERVAL_SEC",
    "RATE_LIMIT_BUCKET_SEC",
    "RATE_LIMIT_FINGERPRINT",
    "RATE_LIMIT_GLOBAL",
    "RATE_LIMIT_IP",
    "RATE_LIMIT_TTL_SEC",
    "USER_STATS_RETENTION_DAYS",
    "build_engine",
    "configure_logging",
    "dialect_insert",
    "from_storage",
    "get_session",
    "isoformat_z",
    "to_storage",
    "utcnow",
]
