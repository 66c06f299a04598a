"""
In-process sliding-window rate limiter for authentication attempts.

Each identifier keeps the timestamps of its recent attempts; an attempt is
allowed while fewer than ``limit`` attempts fall inside the trailing window.
"""

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_after: float  # seconds until the oldest attempt leaves the window


class SlidingWindowRateLimiter:
    """Sliding-window log limiter keyed by a normalized identifier."""

    def __init__(
        self,
        limit: int = 5,
        window_seconds: float = 3600,
        prefix: str = "auth",
        clock: Callable[[], float] = time.monotonic,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self.prefix = prefix
        self._clock = clock
        self._attempts: dict[str, deque[float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def __len__(self) -> int:
        """Number of identifiers currently tracked."""
        with self._lock:
            return len(self._attempts)

    def _key(self, identifier: str) -> str:
        return f"{self.prefix}:{identifier.strip().lower()}"

    def _prune(self, attempts: deque[float], now: float) -> None:
        cutoff = now - self.window_seconds
        while attempts and attempts[0] <= cutoff:
            attempts.popleft()

    def _sweep(self, now: float) -> None:
        # Drop identifiers whose attempts have all left the window.
        cutoff = now - self.window_seconds
        for key in [k for k, v in self._attempts.items() if not v or v[-1] <= cutoff]:
            del self._attempts[key]
        self._last_sweep = now

    def hit(self, identifier: str) -> RateLimitResult:
        """Record an attempt for ``identifier`` and report whether it is allowed."""
        key = self._key(identifier)
        now = self._clock()
        with self._lock:
            if now - self._last_sweep >= self.window_seconds:
                self._sweep(now)
            attempts = self._attempts.setdefault(key, deque())
            self._prune(attempts, now)
            if len(attempts) >= self.limit:
                reset_after = attempts[0] + self.window_seconds - now
                return RateLimitResult(False, 0, max(reset_after, 0.0))
            attempts.append(now)
            reset_after = attempts[0] + self.window_seconds - now
            return RateLimitResult(True, self.limit - len(attempts), reset_after)

    def reset(self, identifier: str) -> None:
        with self._lock:
            self._attempts.pop(self._key(identifier), None)
