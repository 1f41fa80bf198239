# Overview: Best-effort in-memory request rate limiting keyed by client IP.

"""
Request Rate Limiter

Sliding window: at most `max_requests` per `window_seconds` per key. State
lives in this process only; it is not shared between workers and is lost on
restart. That is acceptable for its purpose (blunting runaway clients), not
a security boundary.
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: int  # epoch seconds when the oldest counted request leaves the window
    retry_after: int  # seconds; 0 when allowed

    def headers(self) -> dict:
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class RateLimiter:
    def __init__(self, max_requests: int = 200, window_seconds: int = 600, clock=time.time, max_keys: int = 10000):
        self.max_requests = max_requests
        self.max_keys = max_keys
        self.window_seconds = window_seconds
        self._clock = clock
        self._hits: dict[str, deque] = {}
        self._lock = threading.Lock()

    def hit(self, key: str) -> RateLimitDecision:
        """Count one request for `key` unless it is over the limit."""
        now = self._clock()
        cutoff = now - self.window_seconds
        with self._lock:
            if len(self._hits) > self.max_keys:
                self._drop_stale(cutoff)
            hits = self._hits.setdefault(key, deque())
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= self.max_requests:
                reset_at = hits[0] + self.window_seconds
                return RateLimitDecision(
                    allowed=False,
                    limit=self.max_requests,
                    remaining=0,
                    reset_at=math.ceil(reset_at),
                    retry_after=max(1, math.ceil(reset_at - now)),
                )

            hits.append(now)
            return RateLimitDecision(
                allowed=True,
                limit=self.max_requests,
                remaining=self.max_requests - len(hits),
                reset_at=math.ceil(hits[0] + self.window_seconds),
                retry_after=0,
            )

    def _drop_stale(self, cutoff: float) -> None:
        # caller holds self._lock
        for key in [k for k, hits in self._hits.items() if not hits or hits[-1] <= cutoff]:
            del self._hits[key]

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
