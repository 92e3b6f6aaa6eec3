"""Field validators for untrusted submission input.

Every validator returns a :class:`ValidationResult` and never raises: callers
decide which error code a failed field maps to.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any, Optional

from ..game_rules import DIFFICULTIES

MAX_RAW_USERNAME_LENGTH = 100
MAX_USERNAME_CODEPOINTS = 16
MAX_RAW_TIME_LENGTH = 20
MIN_TIME = 0.1
MAX_TIME = 9999
MAX_TIME_DECIMALS = 3
MAX_RAW_DIFFICULTY_LENGTH = 50
MAX_GAME_DATA_BYTES = 10_000
MAX_GAME_ID_LENGTH = 100

GAME_STATES = frozenset({"won", "lost", "playing"})
GAME_DATA_FIELDS = (
    "difficulty",
    "time",
    "moves",
    "gameId",
    "timestamp",
    "boardSize",
    "mineCount",
    "gameEndTime",
    "firstClickTime",
    "gameState",
)
GAME_DATA_NUMERIC_FIELDS = ("time", "moves", "mineCount", "gameEndTime", "firstClickTime")

_USERNAME_CHARSET = re.compile(r"[a-zA-Z0-9\u4e00-\u9fa5_\-]+")
_ONLY_PUNCTUATION = re.compile(r"[_\-]+")
_HTML_TAG = re.compile(r"<[^>]*>")
_JS_SCHEME = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER = re.compile(r"on\w+=", re.IGNORECASE)
# ASCII word boundaries so keywords glued to CJK text are still caught.
_SQL_KEYWORDS = re.compile(
    r"\b(select|insert|update|delete|drop|union|script|alert)\b",
    re.IGNORECASE | re.ASCII,
)
_DANGEROUS_CHARS = re.compile(r"[<>'\"&]")


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    value: Any = None
    reason: Optional[str] = None

    @classmethod
    def ok(cls, value: Any) -> "ValidationResult":
        return cls(True, value=value)

    @classmethod
    def fail(cls, reason: str) -> "ValidationResult":
        return cls(False, reason=reason)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_finite_number(value: Any) -> bool:
    if not _is_number(value):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def _decimal_places(value: float) -> int:
    # Shortest round-trip repr; no exponent form inside the accepted range.
    fraction = repr(float(value)).partition(".")[2]
    return 0 if fraction == "0" else len(fraction)


def validate_username(username: Any) -> ValidationResult:
    """Validate and normalise a display name."""

    if not username or not isinstance(username, str):
        return ValidationResult.fail("username must be a non-empty string")

    # Length guard runs before any regex work.
    if len(username) > MAX_RAW_USERNAME_LENGTH:
        return ValidationResult.fail("username input too long")

    trimmed = username.strip()
    if not trimmed:
        return ValidationResult.fail("username is blank")

    if len(trimmed) > MAX_USERNAME_CODEPOINTS:
        return ValidationResult.fail("username longer than 16 characters")

    if not _USERNAME_CHARSET.fullmatch(trimmed):
        return ValidationResult.fail("username contains disallowed characters")

    if _ONLY_PUNCTUATION.fullmatch(trimmed):
        return ValidationResult.fail("username consists only of '_' or '-'")

    if _HTML_TAG.search(trimmed) or _JS_SCHEME.search(trimmed) or _EVENT_HANDLER.search(trimmed):
        return ValidationResult.fail("username contains markup")

    if _SQL_KEYWORDS.search(trimmed):
        return ValidationResult.fail("username contains a reserved word")

    if _DANGEROUS_CHARS.sub("", trimmed) != trimmed:
        return ValidationResult.fail("username contains special characters")

    return ValidationResult.ok(trimmed)


def validate_time(time: Any) -> ValidationResult:
    """Validate a completion time in seconds and round it to milliseconds."""

    if isinstance(time, bool) or not isinstance(time, (int, float, str)):
        return ValidationResult.fail("time must be a number or numeric string")

    if isinstance(time, str) and len(time) > MAX_RAW_TIME_LENGTH:
        return ValidationResult.fail("time input too long")

    try:
        number = float(time)
    except (TypeError, ValueError, OverflowError):
        return ValidationResult.fail("time is not numeric")

    if not math.isfinite(number):
        return ValidationResult.fail("time is not finite")

    if number < MIN_TIME or number > MAX_TIME:
        return ValidationResult.fail(f"time {number} outside [{MIN_TIME}, {MAX_TIME}]")

    if _decimal_places(number) > MAX_TIME_DECIMALS:
        return ValidationResult.fail("time has more than 3 decimal places")

    return ValidationResult.ok(round(number, MAX_TIME_DECIMALS))


def validate_difficulty(difficulty: Any) -> ValidationResult:
    if not difficulty or not isinstance(difficulty, str):
        return ValidationResult.fail("difficulty must be a non-empty string")

    if len(difficulty) > MAX_RAW_DIFFICULTY_LENGTH:
        return ValidationResult.fail("difficulty input too long")

    cleaned = difficulty.strip().lower()
    if cleaned not in DIFFICULTIES:
        return ValidationResult.fail(f"unknown difficulty {cleaned!r}")

    return ValidationResult.ok(cleaned)


def validate_game_data(game_data: Any) -> ValidationResult:
    """Check the shape of the client-declared game envelope."""

    if not isinstance(game_data, dict):
        return ValidationResult.fail("game data must be an object")

    try:
        encoded = json.dumps(game_data, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError):
        return ValidationResult.fail("game data is not serialisable")
    if len(encoded.encode("utf-8")) > MAX_GAME_DATA_BYTES:
        return ValidationResult.fail("game data too large")

    missing = [field for field in GAME_DATA_FIELDS if field not in game_data]
    if missing:
        return ValidationResult.fail(f"game data missing fields: {', '.join(missing)}")

    game_id = game_data["gameId"]
    if not isinstance(game_id, str) or len(game_id) > MAX_GAME_ID_LENGTH:
        return ValidationResult.fail("gameId must be a string of at most 100 characters")

    state = game_data["gameState"]
    if not isinstance(state, str) or state not in GAME_STATES:
        return ValidationResult.fail("gameState is not a known state")

    for field in GAME_DATA_NUMERIC_FIELDS:
        if not _is_finite_number(game_data[field]):
            return ValidationResult.fail(f"{field} must be a finite number")

    board = game_data["boardSize"]
    if not isinstance(board, dict):
        return ValidationResult.fail("boardSize must be an object")
    if not _is_number(board.get("width")) or not _is_number(board.get("height")):
        return ValidationResult.fail("boardSize width/height must be numbers")

    return ValidationResult.ok(game_data)


__all__ = [
    "GAME_DATA_FIELDS",
    "ValidationResult",
    "validate_difficulty",
    "validate_game_data",
    "validate_time",
    "validate_username",
]
