"""In-process fixed-window rate limiter.

Buckets live in process memory only: they reset on restart and are not
shared between deployed instances. This is a best-effort throttle that bounds
worst-case generation cost, not a hard quota. Bursts of up to ``2 * limit``
are possible across a window boundary.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict


@dataclass
class RateBucket:
    window_start: float
    count: int
    window_sec: float = 0.0

    def expired(self, now: float) -> bool:
        return now >= self.window_start + self.window_sec


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_sec: int
    reset_at: float


class RateLimiter:
    def __init__(self, clock: Callable[[], float] = time.monotonic, *, prune_threshold: int = 10_000):
        self._clock = clock
        self._prune_threshold = max(1, int(prune_threshold))
        self._buckets: Dict[str, RateBucket] = {}
        self._lock = threading.Lock()

    def allow(self, key: str, limit: int, window_sec: float) -> RateDecision:
        limit = max(1, int(limit))
        window = float(window_sec)

        with self._lock:
            now = self._clock()
            b = self._buckets.get(key)

            if b is None or now >= b.window_start + window:
                if b is None and len(self._buckets) >= self._prune_threshold:
                    self._prune(now)
                b = RateBucket(window_start=now, count=1, window_sec=window)
                self._buckets[key] = b
                return RateDecision(True, limit, limit - 1, 0, now + window)

            reset_at = b.window_start + window
            if b.count >= limit:
                retry_after = max(1, math.floor(reset_at - now))
                return RateDecision(False, limit, 0, retry_after, reset_at)

            b.count += 1
            return RateDecision(True, limit, max(0, limit - b.count), 0, reset_at)

    def _prune(self, now: float) -> None:
        # Caller holds the lock.
        for k in [k for k, b in self._buckets.items() if b.expired(now)]:
            del self._buckets[k]

    def size(self) -> int:
        with self._lock:
            return len(self._buckets)

    def count(self, key: str) -> int:
        with self._lock:
            b = self._buckets.get(key)
            return b.count if b else 0

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
