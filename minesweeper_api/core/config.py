"""Application settings and environment helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List

from dotenv import load_dotenv

load_dotenv(override=False)


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc


def _split_csv(raw: str | None) -> List[str]:
    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


def _unique(values: Iterable[str]) -> List[str]:
    seen = set()
    ordered: List[str] = []
    for value in values:
        if value not in seen:
            seen.add(value)
            ordered.append(value)
    return ordered


# Storage --------------------------------------------------------------------
_PROJECT_ROOT = Path(__file__).resolve().parents[2]
DATA_DIR = Path(os.getenv("DATA_DIR", str(_PROJECT_ROOT / "data")))
DATABASE_URL = os.getenv("DATABASE_URL") or f"sqlite:///{DATA_DIR / 'leaderboard.db'}"
DB_RESET = _env_bool("DB_RESET", False)


# HTTP surface ---------------------------------------------------------------
# FRONTEND_ORIGIN can contain a comma-separated list for multi-domain deploys.
_frontend_origins = _split_csv(os.getenv("FRONTEND_ORIGIN"))

_local_dev_origins = [
    "http://localhost:8787",
    "http://127.0.0.1:8787",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

ALLOWED_CORS_ORIGINS = _unique([*_frontend_origins, *_local_dev_origins])

# Header carrying the real client address when running behind a proxy/CDN.
CLIENT_IP_HEADER = os.getenv("CLIENT_IP_HEADER", "CF-Connecting-IP")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


# Anti-abuse -----------------------------------------------------------------
FINGERPRINT_HASH = os.getenv("FINGERPRINT_HASH", "sha256").strip().lower()

RATE_LIMIT_IP = _env_int("RATE_LIMIT_IP", 20)
RATE_LIMIT_FINGERPRINT = _env_int("RATE_LIMIT_FINGERPRINT", 15)
RATE_LIMIT_GLOBAL = _env_int("RATE_LIMIT_GLOBAL", 1000)
RATE_LIMIT_BUCKET_SEC = _env_int("RATE_LIMIT_BUCKET_SEC", 120)
RATE_LIMIT_TTL_SEC = _env_int("RATE_LIMIT_TTL_SEC", 120)


# Leaderboard ----------------------------------------------------------------
LEADERBOARD_CACHE_TTL_SEC = _env_int("LEADERBOARD_CACHE_TTL_SEC", 30)
LEADERBOARD_PAGE_SIZE = _env_int("LEADERBOARD_PAGE_SIZE", 20)


# Housekeeping ---------------------------------------------------------------
USER_STATS_RETENTION_DAYS = _env_int("USER_STATS_RETENTION_DAYS", 30)
MAINTENANCE_INTERVAL_SEC = _env_int("MAINTENANCE_INTERVAL_SEC", 3600)


__all__ = [
    "ALLOWED_CORS_ORIGINS",
    "CLIENT_IP_HEADER",
    "DATABASE_URL",
    "DATA_DIR",
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
]
