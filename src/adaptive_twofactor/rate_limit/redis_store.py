"""Redis-backed rate-limit store for multi-process deployments.

Each window is a sorted set scored by attempt time in milliseconds. The
prune-check-append sequence runs as a single Lua script, so it is atomic
across every worker talking to the same Redis.
"""

from __future__ import annotations

import logging
import math
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from ..clock import IClock, SystemClock
from ..ports import IRateLimitStore
from .window import RateLimitDecision, RateLimitKey

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger("adaptive_twofactor.rate_limit.redis")

# KEYS[1] = window key
# ARGV[1] = now (ms), ARGV[2] = window (ms), ARGV[3] = max attempts, ARGV[4] = member
_HIT_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])

redis.call('ZREMRANGEBYSCORE', key, '-inf', now - window)
local count = redis.call('ZCARD', key)
if count >= limit then
    local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
    return {0, count, oldest[2]}
end

redis.call('ZADD', key, now, ARGV[4])
redis.call('PEXPIRE', key, window)
local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
return {1, count + 1, oldest[2]}
"""


def _as_str(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("ascii")
    return str(value)


class RedisRateLimitStore(IRateLimitStore):
    """Rate-limit store using Redis sorted sets.

    Window math uses the wall clock in milliseconds since steady clocks
    are not comparable across hosts; keep worker clocks NTP-synchronised.

    Example:
        ```python
        from redis.asyncio import Redis

        store = RedisRateLimitStore(Redis.from_url("redis://localhost:6379/0"))
        limiter = RateLimiter(store)
        ```
    """

    def __init__(
        self,
        redis: Redis,
        *,
        prefix: str = "twofactor:ratelimit",
        clock: IClock | None = None,
    ) -> None:
        self._redis = redis
        self._prefix = prefix
        self.clock = clock or SystemClock()

    def _key(self, key: RateLimitKey) -> str:
        return f"{self._prefix}:{key.kind.value}:{key.subject_id}"

    async def hit(self, key: RateLimitKey, *, max_attempts: int, window_seconds: float) -> RateLimitDecision:
        now_ms = int(self.clock.time() * 1000)
        window_ms = max(1, math.ceil(window_seconds * 1000))
        member = f"{now_ms}:{uuid4().hex}"

        result = await self._redis.eval(
            _HIT_SCRIPT,
            1,
            self._key(key),
            now_ms,
            window_ms,
            max_attempts,
            member,
        )
        allowed, attempts, oldest = int(result[0]), int(result[1]), result[2]
        oldest_ms = float(_as_str(oldest)) if oldest is not None else float(now_ms)
        decision = RateLimitDecision(
            allowed=bool(allowed),
            attempts=attempts,
            oldest_age=max(0.0, (now_ms - oldest_ms) / 1000),
        )
        if not decision.allowed:
            logger.debug("Redis window full for %s (%d attempts)", key, attempts)
        return decision

    async def clear(self, key: RateLimitKey) -> None:
        await self._redis.delete(self._key(key))


__all__: list[str] = ["RedisRateLimitStore"]
