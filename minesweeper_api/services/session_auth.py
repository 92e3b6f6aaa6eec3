"""Cross-field plausibility checks on a completed game session.

The gates run in a fixed order and stop at the first failure:

    received -> structurally valid -> temporally valid -> board consistent
             -> move consistent -> accepted

Severity on a failed gate is advisory and only shows up in logs.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, Optional

from ..core.time import Clock, utcnow
from ..errors import Severity
from ..game_rules import TIERS

MAX_SESSION_AGE = timedelta(days=7)
MAX_DURATION_DRIFT_SEC = 60.0
MIN_SECONDS_PER_MOVE = 0.05
MAX_SECONDS_PER_MOVE = 60.0

REQUIRED_SESSION_FIELDS = ("gameId", "timestamp", "boardSize", "gameEndTime", "firstClickTime")


@dataclass(frozen=True)
class GateResult:
    valid: bool
    reason: Optional[str] = None
    severity: Severity = Severity.NONE

    @classmethod
    def passed(cls) -> "GateResult":
        return cls(True)

    @classmethod
    def rejected(cls, reason: str, severity: Severity) -> "GateResult":
        return cls(False, reason, severity)


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    number = float(value)
    return number if math.isfinite(number) else None


def parse_session_start(value: Any) -> Optional[datetime]:
    """Parse the client's session start (ISO-8601 string or epoch milliseconds)."""

    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    elif _as_float(value) is not None:
        try:
            parsed = datetime.fromtimestamp(float(value) / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class SessionAuthenticator:
    """Rejects implausible "wins" before they reach scoring."""

    def __init__(self, clock: Clock = utcnow):
        self._clock = clock

    def authenticate(self, game_data: Any, difficulty: str) -> GateResult:
        if not isinstance(game_data, dict):
            return GateResult.rejected("game data is not an object", Severity.CRITICAL)

        gates: Iterable[Callable[[Dict[str, Any], str], GateResult]] = (
            self._check_required_fields,
            self._check_state,
            self._check_session_age,
            self._check_duration,
            self._check_board,
            self._check_move_counts,
            self._check_pace,
        )
        for gate in gates:
            result = gate(game_data, difficulty)
            if not result.valid:
                return result
        return GateResult.passed()

    def _check_required_fields(self, game_data: Dict[str, Any], difficulty: str) -> GateResult:
        missing = [name for name in REQUIRED_SESSION_FIELDS if not game_data.get(name)]
        if missing:
            return GateResult.rejected(
                f"missing session fields: {', '.join(missing)}", Severity.CRITICAL
            )
        return GateResult.passed()

    def _check_state(self, game_data: Dict[str, Any], difficulty: str) -> GateResult:
        if game_data.get("gameState") != "won":
            return GateResult.rejected("only won games can be submitted", Severity.HIGH)
        return GateResult.passed()

    def _check_session_age(self, game_data: Dict[str, Any], difficulty: str) -> GateResult:
        started = parse_session_start(game_data.get("timestamp"))
        if started is None:
            return GateResult.rejected("session timestamp is unparseable", Severity.CRITICAL)
        # Loose bound: tolerates clock skew and slow clients, not a tight anti-cheat.
        if self._clock() - started > MAX_SESSION_AGE:
            return GateResult.rejected("game session older than 7 days", Severity.MEDIUM)
        return GateResult.passed()

    def _check_duration(self, game_data: Dict[str, Any], difficulty: str) -> GateResult:
        ended = _as_float(game_data.get("gameEndTime"))
        first_click = _as_float(game_data.get("firstClickTime"))
        claimed = _as_float(game_data.get("time"))
        if ended is None or first_click is None or claimed is None:
            return GateResult.rejected("session timing fields are not numbers", Severity.CRITICAL)

        measured = (ended - first_click) / 1000.0
        if abs(measured - claimed) > MAX_DURATION_DRIFT_SEC:
            return GateResult.rejected(
                f"session lasted {measured:.3f}s but claims {claimed}s", Severity.HIGH
            )
        return GateResult.passed()

    def _check_board(self, game_data: Dict[str, Any], difficulty: str) -> GateResult:
        tier = TIERS.get(difficulty)
        claimed_difficulty = game_data.get("difficulty")
        if isinstance(claimed_difficulty, str):
            claimed_difficulty = claimed_difficulty.strip().lower()
        if tier is None or claimed_difficulty != difficulty:
            return GateResult.rejected(
                f"game difficulty {claimed_difficulty!r} does not match {difficulty!r}",
                Severity.CRITICAL,
            )

        board = game_data.get("boardSize")
        if not isinstance(board, dict):
            return GateResult.rejected("boardSize is not an object", Severity.CRITICAL)
        if (
            board.get("width") != tier.width
            or board.get("height") != tier.height
            or game_data.get("mineCount") != tier.mines
        ):
            return GateResult.rejected(
                f"board {board.get('width')}x{board.get('height')}/{game_data.get('mineCount')} "
                f"does not match {difficulty}",
                Severity.CRITICAL,
            )
        return GateResult.passed()

    def _check_move_counts(self, game_data: Dict[str, Any], difficulty: str) -> GateResult:
        tier = TIERS[difficulty]
        moves = _as_float(game_data.get("moves"))
        if moves is None or moves < tier.min_moves:
            return GateResult.rejected(
                f"only {game_data.get('moves')} moves, expected at least {tier.min_moves}",
                Severity.CRITICAL,
            )
        if moves > tier.max_moves:
            return GateResult.rejected(
                f"{game_data.get('moves')} moves exceeds {tier.max_moves}", Severity.MEDIUM
            )
        return GateResult.passed()

    def _check_pace(self, game_data: Dict[str, Any], difficulty: str) -> GateResult:
        seconds_per_move = float(game_data["time"]) / float(game_data["moves"])
        if seconds_per_move < MIN_SECONDS_PER_MOVE:
            return GateResult.rejected(
                f"{seconds_per_move:.4f}s per move is below human reaction time",
                Severity.CRITICAL,
            )
        if seconds_per_move > MAX_SECONDS_PER_MOVE:
            return GateResult.rejected(
                f"{seconds_per_move:.1f}s per move is implausibly slow", Severity.LOW
            )
        return GateResult.passed()


__all__ = ["GateResult", "SessionAuthenticator", "parse_session_start"]
