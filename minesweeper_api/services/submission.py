"""End-to-end accept/reject decision for one leaderboard request.

Order of checks for a submission: rate limit, field validation, session and
score plausibility, submission cadence, then the durable write. Every
rejection is raised as a :class:`~minesweeper_api.errors.LeaderboardError`
and rendered by the app's exception handlers.
"""

from __future__ import annotations

import logging
from typing import Any, Dict

from sqlmodel import Session

from ..core.time import isoformat_z
from ..errors import InputError, PolicyRejection, RateLimitExceeded, Severity
from .behavior import BehaviorProfiler
from .context import AppServices
from .fingerprint import ClientInfo
from .leaderboard import LeaderboardStore, ScoreRecord, SubmitStatus, rank_of
from .rate_limiter import RateLimiter, RateLimitVerdict
from .score_audit import ScoreAuditor
from .session_auth import SessionAuthenticator
from .validation import (
    validate_difficulty,
    validate_game_data,
    validate_time,
    validate_username,
)

logger = logging.getLogger(__name__)


class SubmissionOrchestrator:
    def __init__(self, session: Session, services: AppServices):
        self.session = session
        self.services = services
        self.rate_limiter = RateLimiter(session, services.policy, services.clock)
        self.store = LeaderboardStore(session, services.cache, services.clock, services.cache_ttl)
        self.auditor = ScoreAuditor(SessionAuthenticator(services.clock))
        self.profiler = BehaviorProfiler(session, services.clock)

    def _enforce_rate_limit(self, client: ClientInfo) -> RateLimitVerdict:
        fingerprint = self.services.fingerprinter.fingerprint(client)
        verdict = self.rate_limiter.check_request(client.ip, fingerprint)
        if not verdict.allowed:
            raise RateLimitExceeded(
                f"rejected by {', '.join(verdict.rejected_by) or 'rate limiter'}",
                log_details={"ip": client.ip, "fingerprint": fingerprint},
            )
        return verdict

    def _server_time(self) -> str:
        return isoformat_z(self.services.clock())

    def read_leaderboard(self, difficulty: Any, client: ClientInfo) -> Dict[str, Any]:
        """Top records for a difficulty, wrapped in the response envelope."""

        verdict = self._enforce_rate_limit(client)

        checked = validate_difficulty(difficulty)
        if not checked.valid:
            raise InputError("INVALID_DIFFICULTY", checked.reason)

        records = self.store.get_top(checked.value, self.services.page_size)
        return {
            "success": True,
            "data": records,
            "meta": {
                "count": len(records),
                "difficulty": checked.value,
                "rateLimit": {"remaining": verdict.remaining},
                "serverTime": self._server_time(),
            },
        }

    def submit(self, difficulty: Any, body: Any, client: ClientInfo) -> Dict[str, Any]:
        """Validate, audit and store one score, returning the refreshed top list."""

        verdict = self._enforce_rate_limit(client)

        if not isinstance(body, dict):
            raise InputError("INVALID_INPUT", "request body is not an object")

        game_data = body.get("gameData")
        if game_data is None:
            raise InputError("MISSING_GAME_DATA", "gameData absent from submission")

        # Independent checks; all evaluated before any result is inspected.
        username = validate_username(body.get("username"))
        time = validate_time(body.get("time"))
        level = validate_difficulty(difficulty)
        envelope = validate_game_data(game_data)

        for code, result in (
            ("INVALID_USERNAME", username),
            ("INVALID_TIME", time),
            ("INVALID_DIFFICULTY", level),
            ("INVALID_GAME_DATA", envelope),
        ):
            if not result.valid:
                raise InputError(code, result.reason)

        plausibility = self.auditor.evaluate(time.value, level.value, game_data)
        if not plausibility.valid:
            raise PolicyRejection(
                "UNREASONABLE_SCORE",
                plausibility.reason,
                severity=plausibility.severity,
                status_code=400,
                log_details={"username": username.value, "time": time.value},
            )

        behavior = self.profiler.analyze(username.value, level.value, time.value)
        if behavior.suspicious:
            raise PolicyRejection(
                "SUSPICIOUS_BEHAVIOR",
                behavior.reason or "suspicious submission pattern",
                severity=Severity.MEDIUM,
                status_code=429,
                log_details={"username": username.value, "action": behavior.action},
            )

        record = ScoreRecord(
            username=username.value,
            difficulty=level.value,
            time=time.value,
            game_id=game_data["gameId"],
            moves=int(game_data["moves"]),
            timestamp=self.services.clock(),
        )
        outcome = self.store.submit(record)
        if outcome.status is SubmitStatus.DUPLICATE:
            raise PolicyRejection(
                "DUPLICATE_GAME",
                f"game {record.game_id} already scored",
                severity=Severity.MEDIUM,
                status_code=400,
                log_details={"username": record.username},
            )

        top = self.store.get_top(record.difficulty, self.services.page_size)
        submitted: Dict[str, Any] = {
            "username": record.username,
            "time": record.time,
            "difficulty": record.difficulty,
            "timestamp": isoformat_z(record.timestamp),
            "rank": rank_of(record.username, top),
            "improved": outcome.status.written,
        }
        if not outcome.status.written:
            submitted["currentBest"] = outcome.current_best

        self.services.housekeeper.maybe_run(self.session)

        return {
            "success": True,
            "data": top,
            "meta": {
                "submitted": submitted,
                "rateLimit": {"remaining": verdict.remaining},
            },
        }


__all__ = ["SubmissionOrchestrator"]
