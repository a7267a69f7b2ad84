"""Sliding-window counter stores consumed by the rate-limit stage.

Two implementations share the :class:`RateLimitStore` contract:

* :class:`MemoryRateLimitStore` keeps a per-key log of hit timestamps in
  process. Suitable for a single worker and for tests.
* :class:`RedisRateLimitStore` keeps the log in a Redis sorted set and
  checks/records a hit atomically with a Lua script, so every worker
  shares the same counters.
"""

from __future__ import annotations

import math
import threading
import time
import uuid
from collections import deque
from dataclasses import dataclass
from typing import Callable, Protocol

from redis import Redis


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one counter increment.

    Attributes:
        allowed: Whether the hit fits in the quota (and was recorded)
        remaining: Hits left in the current window
        reset_after: Seconds until the oldest hit leaves the window
    """

    allowed: bool
    remaining: int
    reset_after: float


class RateLimitStore(Protocol):
    """Atomic sliding-window counter."""

    def increment(self, key: str, window_seconds: float, limit: int) -> RateLimitResult:
        """Record a hit for ``key`` if it fits in ``limit`` per window."""
        ...


class MemoryRateLimitStore:
    """In-process sliding log. Thread-safe; not shared across workers.

    Keys whose newest hit has left their window are swept at most once per
    ``sweep_interval`` seconds, so idle IPs and emails do not accumulate.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, sweep_interval: float = 60.0):
        self._clock = clock
        self._hits: dict[str, deque[float]] = {}
        self._windows: dict[str, float] = {}
        self._sweep_interval = sweep_interval
        self._next_sweep = clock() + sweep_interval
        self._lock = threading.Lock()

    def increment(self, key: str, window_seconds: float, limit: int) -> RateLimitResult:
        now = self._clock()
        with self._lock:
            if now >= self._next_sweep:
                self._sweep(now)
                self._next_sweep = now + self._sweep_interval

            hits = self._hits.setdefault(key, deque())
            self._windows[key] = window_seconds
            while hits and hits[0] <= now - window_seconds:
                hits.popleft()
            if not hits and limit <= 0:
                self._forget(key)
                return RateLimitResult(allowed=False, remaining=0, reset_after=window_seconds)

            if len(hits) >= limit:
                reset_after = hits[0] + window_seconds - now
                return RateLimitResult(allowed=False, remaining=0, reset_after=reset_after)

            hits.append(now)
            return RateLimitResult(
                allowed=True,
                remaining=limit - len(hits),
                reset_after=hits[0] + window_seconds - now,
            )

    def reset(self) -> None:
        with self._lock:
            self._hits.clear()
            self._windows.clear()

    def __len__(self) -> int:
        return len(self._hits)

    def _sweep(self, now: float) -> None:
        expired = [
            key for key, hits in self._hits.items()
            if not hits or hits[-1] <= now - self._windows[key]
        ]
        for key in expired:
            self._forget(key)

    def _forget(self, key: str) -> None:
        self._hits.pop(key, None)
        self._windows.pop(key, None)


# KEYS[1] = counter key
# ARGV = now_ms, window_ms, limit, member
_SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])

redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
local count = redis.call('ZCARD', key)
local allowed = 0
if count < limit then
    redis.call('ZADD', key, now, ARGV[4])
    count = count + 1
    allowed = 1
end
redis.call('PEXPIRE', key, window)

local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
local oldest_ms = now
if oldest[2] then
    oldest_ms = tonumber(oldest[2])
end
return {allowed, count, oldest_ms}
"""


class RedisRateLimitStore:
    """Sliding log shared through Redis.

    Connection errors are not caught here: the rate-limit stage fails
    closed, so an unreachable Redis rejects the request.
    """

    def __init__(self, client: Redis, clock: Callable[[], float] = time.time):
        self._client = client
        self._clock = clock
        self._script = client.register_script(_SLIDING_WINDOW_SCRIPT)

    @classmethod
    def from_url(cls, url: str) -> RedisRateLimitStore:
        return cls(Redis.from_url(url))

    def increment(self, key: str, window_seconds: float, limit: int) -> RateLimitResult:
        now_ms = int(self._clock() * 1000)
        window_ms = int(math.ceil(window_seconds * 1000))
        allowed, count, oldest_ms = self._script(
            keys=[key],
            args=[now_ms, window_ms, limit, f"{now_ms}-{uuid.uuid4().hex}"],
        )
        reset_after = max(0.0, (int(oldest_ms) + window_ms - now_ms) / 1000)
        return RateLimitResult(
            allowed=bool(int(allowed)),
            remaining=max(0, limit - int(count)),
            reset_after=reset_after,
        )
