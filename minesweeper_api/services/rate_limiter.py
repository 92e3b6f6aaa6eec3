"""Store-backed fixed-window rate limiting.

Each counter lives in ``rate_limit_counters`` keyed by (key type, raw key +
time bucket). The check-then-increment is one conditional upsert, so two
concurrent requests can never both consume the last unit of budget.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from ..core import config
from ..core.database import dialect_insert
from ..core.time import Clock, to_storage, utcnow
from ..errors import log_failure
from ..models import RateLimitCounter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitCheck:
    key_type: str
    key_value: str
    limit: int
    ttl: int


@dataclass(frozen=True)
class RateLimitDecision:
    key_type: str
    key_value: str
    limit: int
    allowed: bool
    remaining: int


@dataclass(frozen=True)
class RateLimitPolicy:
    """Ceilings applied to every leaderboard request."""

    ip_limit: int = 20
    fingerprint_limit: int = 15
    global_limit: int = 1000
    bucket_seconds: int = 120
    ttl_seconds: int = 120

    @classmethod
    def from_config(cls) -> "RateLimitPolicy":
        return cls(
            ip_limit=config.RATE_LIMIT_IP,
            fingerprint_limit=config.RATE_LIMIT_FINGERPRINT,
            global_limit=config.RATE_LIMIT_GLOBAL,
            bucket_seconds=config.RATE_LIMIT_BUCKET_SEC,
            ttl_seconds=config.RATE_LIMIT_TTL_SEC,
        )


@dataclass(frozen=True)
class RateLimitVerdict:
    allowed: bool
    remaining: int
    decisions: Tuple[RateLimitDecision, ...] = ()

    @property
    def rejected_by(self) -> List[str]:
        return [decision.key_type for decision in self.decisions if not decision.allowed]


class RateLimiter:
    """Fixed-window counters; store failures fail closed."""

    def __init__(
        self,
        session: Session,
        policy: Optional[RateLimitPolicy] = None,
        clock: Clock = utcnow,
    ):
        self.session = session
        self.policy = policy or RateLimitPolicy()
        self._clock = clock

    def purge_expired(self) -> int:
        """Delete every counter whose window has closed; idempotent."""

        now = to_storage(self._clock())
        result = self.session.exec(
            delete(RateLimitCounter)
            .where(RateLimitCounter.expires_at < now)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()
        return result.rowcount or 0

    def _consume(self, check: RateLimitCheck) -> RateLimitDecision:
        if check.limit <= 0:
            return RateLimitDecision(check.key_type, check.key_value, check.limit, False, 0)

        expires_at = to_storage(self._clock()) + timedelta(seconds=check.ttl)
        stmt = dialect_insert(self.session, RateLimitCounter).values(
            key_type=check.key_type,
            key_value=check.key_value,
            count=1,
            expires_at=expires_at,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["key_type", "key_value"],
            set_={
                "count": RateLimitCounter.count + 1,
                "expires_at": stmt.excluded.expires_at,
            },
            where=RateLimitCounter.count < check.limit,
        ).returning(RateLimitCounter.count)

        row = self.session.exec(stmt).first()
        self.session.commit()

        if row is None:
            logger.warning(
                "Rate limit exceeded for %s:%s, limit %d",
                check.key_type,
                check.key_value,
                check.limit,
            )
            return RateLimitDecision(check.key_type, check.key_value, check.limit, False, 0)

        remaining = max(0, check.limit - int(row[0]))
        return RateLimitDecision(check.key_type, check.key_value, check.limit, True, remaining)

    def check(self, key_type: str, key_value: str, limit: int, ttl: int) -> RateLimitDecision:
        """Consume one unit of budget for a key if any is left."""

        check = RateLimitCheck(key_type, key_value, limit, ttl)
        try:
            self.purge_expired()
            return self._consume(check)
        except SQLAlchemyError:
            self.session.rollback()
            log_failure(logger, f"RateLimiter.check({key_type}, {key_value})")
            return RateLimitDecision(key_type, key_value, limit, False, 0)

    def check_many(self, checks: Iterable[RateLimitCheck]) -> List[RateLimitDecision]:
        """Evaluate every check, even after one has already been refused."""

        checks = list(checks)
        try:
            self.purge_expired()
            return [self._consume(check) for check in checks]
        except SQLAlchemyError:
            self.session.rollback()
            log_failure(logger, "RateLimiter.check_many")
            return [
                RateLimitDecision(check.key_type, check.key_value, check.limit, False, 0)
                for check in checks
            ]

    def request_checks(self, ip: str, fingerprint: str) -> List[RateLimitCheck]:
        policy = self.policy
        bucket = int(self._clock().timestamp() // policy.bucket_seconds)
        return [
            RateLimitCheck("ip", f"{ip}:{bucket}", policy.ip_limit, policy.ttl_seconds),
            RateLimitCheck(
                "fingerprint", f"{fingerprint}:{bucket}", policy.fingerprint_limit, policy.ttl_seconds
            ),
            RateLimitCheck("global", str(bucket), policy.global_limit, policy.ttl_seconds),
        ]

    def check_request(self, ip: str, fingerprint: str) -> RateLimitVerdict:
        """Apply the per-IP, per-fingerprint and global ceilings to one request."""

        decisions = tuple(self.check_many(self.request_checks(ip, fingerprint)))
        allowed = bool(decisions) and all(decision.allowed for decision in decisions)
        fingerprint_decision = next(
            (decision for decision in decisions if decision.key_type == "fingerprint"), None
        )
        remaining = fingerprint_decision.remaining if fingerprint_decision and allowed else 0
        return RateLimitVerdict(allowed=allowed, remaining=remaining, decisions=decisions)


__all__ = [
    "RateLimitCheck",
    "RateLimitDecision",
    "RateLimitPolicy",
    "RateLimitVerdict",
    "RateLimiter",
]
