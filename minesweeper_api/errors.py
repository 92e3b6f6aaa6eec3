"""
Typed rejections raised by the submission pipeline.

Each error carries a stable machine-readable ``code``; the client only ever
sees the generic message mapped from that code, while ``detail``, ``severity``
and ``log_details`` stay in the server log.
"""

from __future__ import annotations

import enum
import logging
import uuid
from typing import Any, Dict, Optional


class Severity(str, enum.Enum):
    """Advisory weight attached to a rejection for logging."""

    NONE = "none"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SAFE_MESSAGES: Dict[str, str] = {
    "INVALID_INPUT": "The request payload is invalid.",
    "INVALID_USERNAME": "The username is not valid.",
    "INVALID_TIME": "The submitted time is not valid.",
    "INVALID_DIFFICULTY": "The difficulty level is not valid.",
    "INVALID_GAME_DATA": "The game data is not valid.",
    "MISSING_GAME_DATA": "Game data is missing.",
    "RATE_LIMIT_EXCEEDED": "Too many requests, please try again later.",
    "UNREASONABLE_SCORE": "The submitted score could not be verified.",
    "SUSPICIOUS_BEHAVIOR": "Unusual activity detected, please take a break and try again.",
    "DUPLICATE_GAME": "This game has already been submitted.",
    "SERVER_ERROR": "The service is temporarily unavailable.",
    "NOT_FOUND": "The requested resource does not exist.",
    "METHOD_NOT_ALLOWED": "The request method is not supported.",
}

_FALLBACK_MESSAGE = "The operation failed, please try again."


def safe_message(code: str) -> str:
    return SAFE_MESSAGES.get(code, _FALLBACK_MESSAGE)


def new_error_id() -> str:
    return uuid.uuid4().hex[:9]


def log_failure(log: logging.Logger, context: str) -> str:
    """Log the exception being handled under a fresh error id and return the id."""

    error_id = new_error_id()
    log.error("[%s] Error in %s", error_id, context, exc_info=True)
    return error_id


class LeaderboardError(Exception):
    """Base exception for leaderboard pipeline rejections."""

    status_code = 400

    def __init__(
        self,
        code: str,
        detail: str,
        *,
        severity: Severity = Severity.NONE,
        status_code: Optional[int] = None,
        log_details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(f"{code}: {detail}")
        self.code = code
        self.detail = detail
        self.severity = severity
        if status_code is not None:
            self.status_code = status_code
        self.log_details = dict(log_details or {})

    @property
    def user_message(self) -> str:
        return safe_message(self.code)


class InputError(LeaderboardError):
    """Malformed or out-of-range client data."""

    status_code = 400


class PolicyRejection(LeaderboardError):
    """Well-formed request refused by an anti-abuse policy."""

    status_code = 400


class RateLimitExceeded(PolicyRejection):
    status_code = 429

    def __init__(self, detail: str, **kwargs: Any):
        super().__init__("RATE_LIMIT_EXCEEDED", detail, **kwargs)


class DependencyFailure(LeaderboardError):
    """Storage or hashing primitive unavailable; never leaks internals."""

    status_code = 500

    def __init__(self, detail: str, **kwargs: Any):
        super().__init__("SERVER_ERROR", detail, **kwargs)


__all__ = [
    "DependencyFailure",
    "InputError",
    "LeaderboardError",
    "PolicyRejection",
    "RateLimitExceeded",
    "SAFE_MESSAGES",
    "Severity",
    "log_failure",
    "new_error_id",
    "safe_message",
]
