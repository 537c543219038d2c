"""Sliding window rate limiting for verification attempts.

Stores:
- InMemoryRateLimitStore (single process, thread and task safe)
- RedisRateLimitStore (shared across worker processes)
"""

from .limiter import RateLimiter, RateLimitStatus
from .memory import InMemoryRateLimitStore
from .redis_store import RedisRateLimitStore
from .window import AttemptKind, RateLimitDecision, RateLimitKey, RateLimitWindow

__all__: list[str] = [
    "AttemptKind",
    "RateLimitKey",
    "RateLimitDecision",
    "RateLimitWindow",
    "RateLimitStatus",
    "RateLimiter",
    "InMemoryRateLimitStore",
    "RedisRateLimitStore",
]
