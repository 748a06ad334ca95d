"""
In-memory response cache with LRU eviction and TTL expiry.

The store is reference-transparent: ``get`` hands back the stored object.
Callers that give results to consumers tracking changes by identity must
copy on read themselves (see ``SearchAggregator`` and ``CountAggregator``).
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with its access metadata."""
    value: T
    createdAt: float
    lastAccessedAt: float
    hitCount: int = 0


class LRUCache(Generic[T]):
    """Bounded key/value store with least-recently-used eviction and TTL."""

    def __init__(
        self,
        max_size: int = 50,
        ttl: float = 5 * 60,  # seconds
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Initialize the cache.

        Args:
            max_size: Maximum number of entries kept
            ttl: Entry lifetime in seconds, measured from insertion
            clock: Time source returning seconds (default: time.time)
        """
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock or time.time
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def _is_expired(self, entry: CacheEntry[T], now: float) -> bool:
        return now - entry.createdAt > self.ttl

    def get(self, key: str) -> Optional[T]:
        """Return the cached value, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        now = self._clock()
        if self._is_expired(entry, now):
            del self._entries[key]
            self._misses += 1
            return None

        # Reads refresh LRU position
        entry.lastAccessedAt = now
        entry.hitCount += 1
        self._hits += 1
        return entry.value

    def set(self, key: str, value: T) -> None:
        """Store a value, evicting the least recently used entry if full."""
        now = self._clock()

        if key not in self._entries and len(self._entries) >= self.max_size:
            self._evict_lru()

        self._entries[key] = CacheEntry(value=value, createdAt=now, lastAccessedAt=now)

    def _evict_lru(self) -> None:
        lru_key = None
        lru_time = float("inf")
        # Strict comparison keeps the earliest-inserted entry on ties
        for key, entry in self._entries.items():
            if entry.lastAccessedAt < lru_time:
                lru_time = entry.lastAccessedAt
                lru_key = key

        if lru_key is not None:
            del self._entries[lru_key]
            self._evictions += 1
            logger.debug(f"Evicted cache entry {lru_key}")

    def clear(self) -> None:
        """Remove all entries."""
        self._entries.clear()

    def cleanup(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Cache cleanup removed {len(expired)} expired entries")
        return len(expired)

    def get_stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        return {
            "size": len(self._entries),
            "maxSize": self.max_size,
            "ttl": self.ttl,
            "hits": self._hits,
            "misses": self._misses,
            "evictions": self._evictions,
        }

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and not self._is_expired(entry, self._clock())


class InflightRequests:
    """Shares one pending computation between concurrent callers of a key.

    Keys are the same ones used for the cache, so identical concurrent misses
    hit the upstream sources once. The computation runs in its own task:
    cancelling one caller never cancels it for the others.
    """

    def __init__(self):
        self._pending: Dict[str, asyncio.Future] = {}

    def __len__(self) -> int:
        return len(self._pending)

    async def run(self, key: str, factory: Callable[[], Awaitable[T]]) -> T:
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(factory())
            self._pending[key] = task
            task.add_done_callback(lambda done: self._release(key, done))
        else:
            logger.debug(f"Joining in-flight request {key}")
        return await asyncio.shield(task)

    def _release(self, key: str, task: asyncio.Future) -> None:
        if self._pending.get(key) is task:
            del self._pending[key]
        # Retrieve the exception so a task whose callers all left is not reported
        if not task.cancelled():
            task.exception()
