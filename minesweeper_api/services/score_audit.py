"""Plausibility checks on a submitted time alone."""

from __future__ import annotations

from typing import Any, Optional

from ..errors import Severity
from ..game_rules import TIERS
from .session_auth import GateResult, SessionAuthenticator

# Integer times under this multiple of the world record are rejected as
# "suspiciously round". Coarse filter with a real false-positive risk.
ROUND_TIME_RECORD_FACTOR = 2


class ScoreAuditor:
    def __init__(self, authenticator: Optional[SessionAuthenticator] = None):
        self.authenticator = authenticator or SessionAuthenticator()

    def audit(self, time: float, difficulty: str) -> GateResult:
        """Check ``time`` against the tier's floor, ceiling and world record."""

        tier = TIERS.get(difficulty)
        if tier is None:
            return GateResult.rejected(f"unknown difficulty {difficulty!r}", Severity.CRITICAL)

        if time < tier.min_time:
            return GateResult.rejected(
                f"{time}s is under the {tier.min_time}s floor", Severity.HIGH
            )

        if time > tier.max_time:
            return GateResult.rejected(
                f"{time}s is over the {tier.max_time}s ceiling", Severity.LOW
            )

        if time < tier.world_record:
            return GateResult.rejected(
                f"{time}s beats the {tier.world_record}s world record", Severity.CRITICAL
            )

        if float(time).is_integer() and time < tier.world_record * ROUND_TIME_RECORD_FACTOR:
            return GateResult.rejected(f"{time}s is a suspiciously round time", Severity.MEDIUM)

        return GateResult.passed()

    def evaluate(self, time: float, difficulty: str, game_data: Any = None) -> GateResult:
        """Session checks (when game data is supplied) followed by the time audit.

        The submitted time must also be the time recorded in the game itself.
        """

        if game_data is not None:
            session = self.authenticator.authenticate(game_data, difficulty)
            if not session.valid:
                return session
            claimed = game_data.get("time")
            if isinstance(claimed, bool) or not isinstance(claimed, (int, float)):
                return GateResult.rejected("game time is not a number", Severity.CRITICAL)
            if round(float(claimed), 3) != round(time, 3):
                return GateResult.rejected(
                    f"submitted {time}s but the game recorded {claimed}s", Severity.HIGH
                )
        return self.audit(time, difficulty)


__all__ = ["ScoreAuditor"]
