"""Client fingerprints and entity tags.

A fingerprint is a heuristic grouping key for rate limiting, not an identity
proof. The hash behind it is chosen once at startup: SHA-256 normally, or a
non-cryptographic rolling hash when SHA-256 is unavailable (or forced by
configuration). The rolling variant has far weaker collision resistance and
is only ever used for fingerprints; entity tags always use SHA-256.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Request

logger = logging.getLogger(__name__)

FINGERPRINT_LENGTH = 12
ETAG_LENGTH = 16


@dataclass(frozen=True)
class ClientInfo:
    """Request metadata the anti-abuse layer looks at."""

    ip: str
    user_agent: str = ""
    accept_language: str = ""
    accept_encoding: str = ""

    @classmethod
    def from_request(cls, request: Request, ip_header: Optional[str] = None) -> "ClientInfo":
        ip = request.headers.get(ip_header) if ip_header else None
        if not ip and request.client is not None:
            ip = request.client.host
        return cls(
            ip=(ip or "unknown").strip(),
            user_agent=request.headers.get("user-agent", ""),
            accept_language=request.headers.get("accept-language", ""),
            accept_encoding=request.headers.get("accept-encoding", ""),
        )


class HashProvider:
    """One-way string hash rendered as lowercase hex."""

    name = "abstract"
    cryptographic = False

    def hexdigest(self, data: str) -> str:  # pragma: no cover - interface
        raise NotImplementedError


class Sha256HashProvider(HashProvider):
    name = "sha256"
    cryptographic = True

    def hexdigest(self, data: str) -> str:
        return hashlib.sha256(data.encode("utf-8")).hexdigest()


class RollingHashProvider(HashProvider):
    """64-bit shift-and-add rolling hash (``h = h * 31 + c``).

    Availability fallback only: trivially collidable and unsuitable for any
    authenticity decision.
    """

    name = "rolling"
    cryptographic = False
    _MASK = (1 << 64) - 1

    def hexdigest(self, data: str) -> str:
        value = 0
        for char in data:
            value = ((value << 5) - value + ord(char)) & self._MASK
        return f"{value:016x}"


def select_hash_provider(name: str = "sha256") -> HashProvider:
    """Pick the fingerprint hash for this process."""

    name = (name or "sha256").strip().lower()
    if name == "rolling":
        logger.warning("Fingerprints configured to use the weak rolling hash")
        return RollingHashProvider()
    if name != "sha256":
        raise RuntimeError(f"Unknown fingerprint hash provider: {name}")
    try:
        hashlib.new("sha256")
    except ValueError:
        logger.warning("SHA-256 unavailable, fingerprints fall back to the rolling hash")
        return RollingHashProvider()
    return Sha256HashProvider()


class Fingerprinter:
    def __init__(self, provider: HashProvider):
        self.provider = provider

    def fingerprint(self, client: ClientInfo) -> str:
        material = ":".join(
            (client.ip, client.user_agent, client.accept_language, client.accept_encoding)
        )
        return self.provider.hexdigest(material)[:FINGERPRINT_LENGTH]


def entity_tag(payload: Any) -> str:
    """Quoted strong ETag over the compact JSON form of ``payload``."""

    body = payload if isinstance(payload, str) else json.dumps(
        payload, separators=(",", ":"), sort_keys=True, ensure_ascii=False
    )
    digest = hashlib.sha256(body.encode("utf-8")).hexdigest()[:ETAG_LENGTH]
    return f'"{digest}"'


def etag_matches(if_none_match: Optional[str], etag: str) -> bool:
    """Evaluate an ``If-None-Match`` header against ``etag`` in constant time per candidate."""

    if not if_none_match:
        return False
    matched = False
    for candidate in if_none_match.split(","):
        candidate = candidate.strip()
        if candidate.startswith("W/"):
            candidate = candidate[2:]
        if candidate == "*" or hmac.compare_digest(candidate.encode(), etag.encode()):
            matched = True
    return matched


__all__ = [
    "ClientInfo",
    "Fingerprinter",
    "HashProvider",
    "RollingHashProvider",
    "Sha256HashProvider",
    "entity_tag",
    "etag_matches",
    "select_hash_provider",
]
