"""
Response Gate Module

Single entry point for expensive reply generation:
cache lookup → rate limit → generator → cache store.

Cache hits bypass the rate limiter, so asking the same thing twice
never counts against a chat's budget.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Hashable, Optional, Union

from companion.gate.cache import BoundedCache
from companion.gate.limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Throttled:
    """Outcome of a request rejected by the rate limiter."""
    requester_key: Hashable
    retry_after_seconds: float = 0.0


def is_throttled(result: object) -> bool:
    return isinstance(result, Throttled)


class ResponseGate:
    """
    Admission and caching layer in front of an async generator.

    Usage:
        gate = ResponseGate(max_cache_entries=100)
        result = await gate.resolve(key, chat_id, lambda: llm_call(...))
        if is_throttled(result):
            ...
    """

    def __init__(
        self,
        cache: Optional[BoundedCache[str]] = None,
        limiter: Optional[RateLimiter] = None,
        *,
        max_cache_entries: int = 100,
        rate_window_ms: int = 20_000,
        max_requests_per_window: int = 3,
        cache_ttl_seconds: Optional[float] = None,
    ):
        self.cache = cache if cache is not None else BoundedCache(
            max_entries=max_cache_entries,
            ttl_seconds=cache_ttl_seconds,
        )
        self.limiter = limiter if limiter is not None else RateLimiter(
            window_ms=rate_window_ms,
            max_requests=max_requests_per_window,
        )

    async def resolve(
        self,
        cache_key: str,
        requester_key: Hashable,
        generator: Callable[[], Awaitable[str]],
    ) -> Union[str, Throttled]:
        """
        Return a cached value, a Throttled signal, or a freshly generated value.

        Generator exceptions propagate unchanged. Failed results are not
        cached and the consumed rate-limit slot is not returned.
        """
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.info(f"Cache hit for requester {requester_key}")
            return cached

        if not self.limiter.try_acquire(requester_key):
            retry_after = self.limiter.retry_after(requester_key)
            logger.info(
                f"Throttled requester {requester_key} "
                f"(retry in {retry_after:.1f}s)"
            )
            return Throttled(requester_key=requester_key, retry_after_seconds=retry_after)

        result = await generator()

        self.cache.put(cache_key, result)
        return result

    def clear_cache(self) -> int:
        """Drop all cached replies (periodic maintenance)."""
        dropped = self.cache.clear()
        logger.info(f"Response cache cleared ({dropped} entries dropped)")
        return dropped

    def stats(self) -> dict:
        return {
            "cache": self.cache.stats(),
            "limiter": self.limiter.stats(),
        }
