"""In-process TTL cache for leaderboard snapshots."""

from __future__ import annotations

import copy
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

# Expired entries are swept once every this many ``set`` calls.
SWEEP_EVERY = 100


@dataclass
class CacheEntry:
    value: Any
    expiry: float
    created: float
    last_accessed: float


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    evictions: int = 0


class TTLCache:
    """Time-boxed key/value store with manual invalidation.

    Values are deep-copied on the way in and out, so callers never share
    state with the cache. No locking: staleness is bounded by the TTL and the
    durable store remains the source of truth.
    """

    def __init__(self, default_ttl: float = 30.0, clock: Callable[[], float] = time.monotonic):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._stats = CacheStats()

    @staticmethod
    def key(*parts: Any) -> str:
        return ":".join(str(part) for part in parts)

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self._stats.misses += 1
            return None

        now = self._clock()
        if now > entry.expiry:
            self._entries.pop(key, None)
            self._stats.evictions += 1
            self._stats.misses += 1
            return None

        self._stats.hits += 1
        entry.last_accessed = now
        return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        now = self._clock()
        self._entries[key] = CacheEntry(
            value=copy.deepcopy(value),
            expiry=now + (self.default_ttl if ttl is None else ttl),
            created=now,
            last_accessed=now,
        )
        self._stats.sets += 1
        if self._stats.sets % SWEEP_EVERY == 0:
            self.cleanup()

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def cleanup(self) -> int:
        """Drop every expired entry and return how many were removed."""

        now = self._clock()
        expired = [key for key, entry in list(self._entries.items()) if now > entry.expiry]
        for key in expired:
            self._entries.pop(key, None)
        self._stats.evictions += len(expired)
        if expired:
            logger.debug("Swept %d expired cache entries", len(expired))
        return len(expired)

    def stats(self) -> Dict[str, Any]:
        total = self._stats.hits + self._stats.misses
        hit_rate = f"{self._stats.hits / total * 100:.2f}%" if total else "0%"
        return {
            "hits": self._stats.hits,
            "misses": self._stats.misses,
            "sets": self._stats.sets,
            "evictions": self._stats.evictions,
            "hitRate": hit_rate,
            "size": len(self._entries),
        }

    def clear(self) -> None:
        self._entries.clear()
        self._stats = CacheStats()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries


__all__ = ["CacheEntry", "TTLCache"]
