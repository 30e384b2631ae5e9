"""
Per-actor request throttling.

Fixed-window counters kept in process memory, keyed by (actor, bucket).
Good enough for a single worker; a shared store would be needed to bound
requests across several processes.
"""
from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: float
    retry_after_seconds: int = 0


class RateLimiter:

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_every: int = 1000):
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, tuple[int, float]] = {}
        # Expired windows are dropped once every sweep_every hits
        self._sweep_every = sweep_every
        self._hits_since_sweep = 0

    def hit(self, key: str, max_requests: int, window_seconds: int) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            self._hits_since_sweep += 1
            if self._hits_since_sweep >= self._sweep_every:
                self._drop_expired(now)

            count, reset_at = self._windows.get(key, (0, 0.0))
            if now >= reset_at:
                count, reset_at = 0, now + window_seconds

            if count >= max_requests:
                retry_after = max(1, int(reset_at - now + 0.999))
                return RateLimitResult(False, 0, reset_at, retry_after)

            count += 1
            self._windows[key] = (count, reset_at)
            return RateLimitResult(True, max_requests - count, reset_at)

    def prune(self) -> int:
        """Drop expired windows. Returns how many were removed."""
        with self._lock:
            return self._drop_expired(self._clock())

    def _drop_expired(self, now: float) -> int:
        expired = [key for key, (_, reset_at) in self._windows.items() if now >= reset_at]
        for key in expired:
            del self._windows[key]
        self._hits_since_sweep = 0
        return len(expired)

    def __len__(self) -> int:
        return len(self._windows)

    def reset(self) -> None:
        with self._lock:
            self._windows.clear()
            self._hits_since_sweep = 0
