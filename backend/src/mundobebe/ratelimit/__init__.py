"""Sliding-window rate-limit counter stores."""

from mundobebe.ratelimit.store import (
    MemoryRateLimitStore,
    RateLimitResult,
    RateLimitStore,
    RedisRateLimitStore,
)

__all__ = [
    "MemoryRateLimitStore",
    "RateLimitResult",
    "RateLimitStore",
    "RedisRateLimitStore",
]
