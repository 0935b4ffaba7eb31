"""
Response Cache Module

Bounded LRU cache for generated replies, so repeated identical prompts
don't trigger another LLM call.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Callable, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

V = TypeVar("V")


class BoundedCache(Generic[V]):
    """
    LRU cache keyed by an opaque string.

    Ordering of the underlying OrderedDict is the recency order:
    the first item is always the next eviction candidate.
    Every successful `get` also refreshes recency.
    """

    def __init__(
        self,
        max_entries: int = 100,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError(f"max_entries must be >= 1, got {max_entries}")
        if ttl_seconds is not None and ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")

        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        # key -> (value, stored_at)
        self._cache: OrderedDict[str, tuple[V, float]] = OrderedDict()

        self.hits = 0
        self.misses = 0
        self.evictions = 0

    def get(self, key: str) -> Optional[V]:
        """Return cached value and mark it most recently used, or None on miss."""
        entry = self._cache.get(key)
        if entry is None:
            self.misses += 1
            return None

        value, stored_at = entry
        if self._is_expired(stored_at, self._clock()):
            del self._cache[key]
            self.misses += 1
            logger.debug(f"Cache entry expired: {key!r}")
            return None

        self._cache.move_to_end(key)
        self.hits += 1
        return value

    def _is_expired(self, stored_at: float, now: float) -> bool:
        return self.ttl_seconds is not None and now - stored_at >= self.ttl_seconds

    def _purge_expired(self) -> None:
        """Drop every expired entry. No-op without a TTL."""
        if self.ttl_seconds is None:
            return
        now = self._clock()
        expired = [k for k, (_, stored_at) in self._cache.items() if self._is_expired(stored_at, now)]
        for key in expired:
            del self._cache[key]
        if expired:
            logger.debug(f"Purged {len(expired)} expired cache entries")

    def put(self, key: str, value: V) -> None:
        """Insert or update an entry at the most-recently-used end."""
        if key in self._cache:
            self._cache.move_to_end(key)
        elif len(self._cache) >= self.max_entries:
            self._purge_expired()

        if key not in self._cache and len(self._cache) >= self.max_entries:
            evicted_key, _ = self._cache.popitem(last=False)
            self.evictions += 1
            logger.info(
                f"Cache full, evicted oldest entry: {evicted_key!r} "
                f"(size={len(self._cache)}, max={self.max_entries})"
            )

        self._cache[key] = (value, self._clock())
        logger.debug(f"Cache stored: {key!r} (size={len(self._cache)})")

    def clear(self) -> int:
        """Drop all entries. Returns how many were dropped."""
        dropped = len(self._cache)
        self._cache.clear()
        return dropped

    def keys(self) -> list[str]:
        """Live keys from least to most recently used."""
        self._purge_expired()
        return list(self._cache.keys())

    @property
    def size(self) -> int:
        self._purge_expired()
        return len(self._cache)

    def __len__(self) -> int:
        return self.size

    def __contains__(self, key: object) -> bool:
        entry = self._cache.get(key)
        return entry is not None and not self._is_expired(entry[1], self._clock())

    def stats(self) -> dict:
        return {
            "size": self.size,
            "max_entries": self.max_entries,
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
        }
