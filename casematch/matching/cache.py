"""In-memory cache of successful service scores with LRU eviction.

A new submission is compared against the same stored cases many times
(drafts get corrected and resubmitted), so identical text pairs and image
pairs reuse the previous score instead of calling the model again. Only
successful outcomes are cached; failures are always retried.
"""

import asyncio
import hashlib
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from casematch.matching.result import ScoreOutcome


@dataclass
class CacheEntry:
    """A cache entry with metadata."""

    outcome: ScoreOutcome
    timestamp: datetime
    ttl_seconds: int = 3600

    def is_expired(self) -> bool:
        if self.ttl_seconds <= 0:
            return False
        return datetime.now() - self.timestamp > timedelta(seconds=self.ttl_seconds)


def make_key(kind: str, *parts: Optional[str]) -> str:
    """Stable cache key for a comparison of ``kind`` over ``parts``."""
    digest = hashlib.sha256()
    digest.update(kind.encode("utf-8"))
    for part in parts:
        digest.update(b"\x00")
        digest.update((part or "").encode("utf-8"))
    return f"{kind}:{digest.hexdigest()[:32]}"


class ScoreCache:
    """Async-safe LRU cache of ``ScoreOutcome`` values."""

    def __init__(self, max_size: int = 1000, ttl_seconds: int = 3600):
        self.max_size = max_size
        self.ttl_seconds = ttl_seconds
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._lock = asyncio.Lock()
        self.hits = 0
        self.misses = 0

    async def get(self, key: str) -> Optional[ScoreOutcome]:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.is_expired():
                del self._entries[key]
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return entry.outcome

    async def set(self, key: str, outcome: ScoreOutcome) -> bool:
        if outcome.failed or not outcome.available:
            return False
        async with self._lock:
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(
                outcome=outcome, timestamp=datetime.now(), ttl_seconds=self.ttl_seconds
            )
            while len(self._entries) > self.max_size:
                self._entries.popitem(last=False)
            return True

    async def clear(self) -> None:
        async with self._lock:
            self._entries.clear()

    def get_stats(self) -> Dict[str, Any]:
        total = self.hits + self.misses
        return {
            "entries": len(self._entries),
            "max_size": self.max_size,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate_percent": round(self.hits / total * 100, 2) if total else 0.0,
        }
