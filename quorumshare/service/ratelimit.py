"""Per-peer request limiting for the share service.

One token bucket per key (the service uses the peer address), refilled
continuously.  Buckets live in an LRU: a bucket that has refilled to
capacity carries no state and is dropped, and the table never holds more
than *max_clients* entries.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable

from quorumshare.config import DEFAULT_MAX_REQUESTS_PER_MINUTE, MAX_TRACKED_CLIENTS


@dataclass
class _TokenBucket:
    capacity: float
    refill_rate: float  # tokens per second
    tokens: float
    last_refill: float

    def level(self, now: float) -> float:
        elapsed = max(0.0, now - self.last_refill)
        return min(self.capacity, self.tokens + elapsed * self.refill_rate)

    def try_consume(self, now: float, amount: float = 1.0) -> bool:
        self.tokens = self.level(now)
        self.last_refill = now
        if self.tokens >= amount:
            self.tokens -= amount
            return True
        return False


@dataclass
class RateLimiter:
    """Allow at most *max_per_minute* requests per key, with bursts up to that."""

    max_per_minute: int = DEFAULT_MAX_REQUESTS_PER_MINUTE
    max_clients: int = MAX_TRACKED_CLIENTS
    clock: Callable[[], float] = time.monotonic
    _buckets: "OrderedDict[str, _TokenBucket]" = field(default_factory=OrderedDict, repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def __len__(self) -> int:
        return len(self._buckets)

    def check(self, key: str) -> str | None:
        """Return None if the request is allowed, or a reason string if denied."""
        if self.max_per_minute <= 0:
            return None  # limiting disabled
        with self._lock:
            now = self.clock()
            self._evict(now)
            bucket = self._buckets.get(key)
            if bucket is None:
                bucket = _TokenBucket(
                    capacity=float(self.max_per_minute),
                    refill_rate=self.max_per_minute / 60.0,
                    tokens=float(self.max_per_minute),
                    last_refill=now,
                )
                self._buckets[key] = bucket
            self._buckets.move_to_end(key)
            allowed = bucket.try_consume(now)
        if not allowed:
            return f"rate limit exceeded ({self.max_per_minute}/min)"
        return None

    def _evict(self, now: float) -> None:
        # Least recently used first; stop at the first bucket still draining.
        while self._buckets:
            key, bucket = next(iter(self._buckets.items()))
            if bucket.level(now) < bucket.capacity and len(self._buckets) < self.max_clients:
                break
            del self._buckets[key]

    def reset(self) -> None:
        with self._lock:
            self._buckets.clear()
