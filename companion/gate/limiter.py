"""
Rate Limiter Module

Per-requester fixed-window counter gating how often a chat may trigger
an LLM call. The window resets on the first attempt after it expires;
this is intentionally not a sliding log.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Hashable, Optional

logger = logging.getLogger(__name__)


@dataclass
class RateWindow:
    """Attempt counter for one requester."""
    count: int
    window_start: float


class RateLimiter:
    """
    Fixed-window rate limiter with reset-on-expiry.

    Defaults: 3 admitted requests per 20 seconds per requester.
    A rejected attempt never changes the window.
    """

    def __init__(
        self,
        window_ms: int = 20_000,
        max_requests: int = 3,
        clock: Callable[[], float] = time.monotonic,
    ):
        if window_ms <= 0:
            raise ValueError(f"window_ms must be positive, got {window_ms}")
        if max_requests < 1:
            raise ValueError(f"max_requests must be >= 1, got {max_requests}")

        self.window_ms = window_ms
        self.max_requests = max_requests
        self._window_seconds = window_ms / 1000.0
        self._clock = clock

        # {requester_key: RateWindow}
        self._windows: dict[Hashable, RateWindow] = {}

    def try_acquire(self, requester_key: Hashable, now: Optional[float] = None) -> bool:
        """
        Attempt to admit one action for `requester_key`.

        Args:
            requester_key: Chat/user identifier that partitions the counters.
            now: Timestamp in seconds on the limiter's clock. Defaults to clock().

        Returns:
            True if admitted (counter incremented), False if throttled.
        """
        if now is None:
            now = self._clock()

        window = self._windows.get(requester_key)
        if window is None:
            window = RateWindow(count=0, window_start=now)
            self._windows[requester_key] = window

        if now - window.window_start >= self._window_seconds:
            window.count = 0
            window.window_start = now

        if window.count >= self.max_requests:
            logger.debug(
                f"Rate limit hit for {requester_key}: "
                f"{window.count}/{self.max_requests} in window"
            )
            return False

        window.count += 1
        return True

    def retry_after(self, requester_key: Hashable, now: Optional[float] = None) -> float:
        """Seconds until `requester_key` would be admitted again (0 if now)."""
        if now is None:
            now = self._clock()

        window = self._windows.get(requester_key)
        if window is None:
            return 0.0

        elapsed = now - window.window_start
        if elapsed >= self._window_seconds or window.count < self.max_requests:
            return 0.0
        return self._window_seconds - elapsed

    def window_for(self, requester_key: Hashable) -> Optional[RateWindow]:
        """Current window for a requester (read-only view, may be None)."""
        window = self._windows.get(requester_key)
        if window is None:
            return None
        return RateWindow(count=window.count, window_start=window.window_start)

    @property
    def tracked_keys(self) -> int:
        return len(self._windows)

    def stats(self) -> dict:
        return {
            "window_ms": self.window_ms,
            "max_requests": self.max_requests,
            "tracked_keys": self.tracked_keys,
        }
