"""
Sliding-window rate limiter for registry calls.

Admission control only: a denied caller fails its request, it never waits.
"""
import logging
import threading
import time
from collections import deque
from typing import Callable, Deque, Optional

from .config import RATE_LIMIT_BURST, RATE_LIMIT_REQUESTS_PER_MINUTE, RATE_LIMIT_WINDOW_SECONDS

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Counts admitted requests inside a trailing 60-second window.

    The burst limit is carried as configuration and reported by `stats()`;
    it is not enforced.
    """

    def __init__(
        self,
        requests_per_minute: int = RATE_LIMIT_REQUESTS_PER_MINUTE,
        burst_limit: int = RATE_LIMIT_BURST,
        window_seconds: float = RATE_LIMIT_WINDOW_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ):
        """
        Args:
            requests_per_minute: Max admissions per window
            burst_limit: Reported only
            window_seconds: Window length
            clock: Returns the current time in seconds (defaults to time.time)
        """
        self.requests_per_minute = requests_per_minute
        self.burst_limit = burst_limit
        self.window_seconds = window_seconds
        self._clock = clock or time.time
        self._requests: Deque[float] = deque()
        self._last_reset = self._clock()
        self._lock = threading.Lock()

    def _evict(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._requests and self._requests[0] <= cutoff:
            self._requests.popleft()

    def admit(self) -> bool:
        """Record and admit a request, or return False if the window is full."""
        with self._lock:
            now = self._clock()
            self._evict(now)
            if len(self._requests) >= self.requests_per_minute:
                logger.warning(
                    f"Rate limit reached: {len(self._requests)}/{self.requests_per_minute} "
                    f"requests in the last {self.window_seconds:.0f}s"
                )
                return False
            self._requests.append(now)
            return True

    def remaining(self) -> int:
        with self._lock:
            self._evict(self._clock())
            return max(0, self.requests_per_minute - len(self._requests))

    def clear(self) -> None:
        """Empty the window and stamp the reset time."""
        with self._lock:
            self._requests.clear()
            self._last_reset = self._clock()
        logger.info("Rate limit state cleared")

    def stats(self) -> dict:
        """Usage in the current window."""
        with self._lock:
            now = self._clock()
            self._evict(now)
            in_window = len(self._requests)
            return {
                "requestsInLastMinute": in_window,
                "rateLimitRemaining": self.requests_per_minute - in_window,
                "lastReset": int(self._last_reset * 1000),
                "config": {
                    "requestsPerMinute": self.requests_per_minute,
                    "burstLimit": self.burst_limit,
                    "windowSeconds": self.window_seconds,
                },
            }
