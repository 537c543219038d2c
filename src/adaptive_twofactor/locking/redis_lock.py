"""Redis-backed subject lock for multi-process deployments.

Acquisition is ``SET key token NX PX ttl`` polled until the timeout;
release deletes the key only while it still holds the caller's token,
checked and deleted in one Lua script.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING
from uuid import uuid4

from ..exceptions import SubjectLockError
from ..ports import ISubjectLock

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = logging.getLogger("adaptive_twofactor.locking.redis")

# KEYS[1] = lock key, ARGV[1] = token
_RELEASE_SCRIPT = """
if redis.call('GET', KEYS[1]) == ARGV[1] then
    return redis.call('DEL', KEYS[1])
end
return 0
"""


class RedisSubjectLock(ISubjectLock):
    """Subject lock using a Redis key per subject.

    Example:
        ```python
        from redis.asyncio import Redis

        redis = Redis.from_url("redis://localhost:6379/0")
        coordinator = TwoFactorCoordinator(..., subject_lock=RedisSubjectLock(redis))
        ```
    """

    def __init__(
        self,
        redis: Redis,
        *,
        prefix: str = "twofactor:lock",
        retry_interval: float = 0.05,
    ) -> None:
        self._redis = redis
        self._prefix = prefix
        self._retry_interval = retry_interval

    def _key(self, subject_id: str) -> str:
        return f"{self._prefix}:{subject_id}"

    async def acquire(self, subject_id: str, *, timeout: float = 10.0, ttl: float = 30.0) -> str:
        key = self._key(subject_id)
        token = uuid4().hex
        ttl_ms = max(1, int(ttl * 1000))
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            if await self._redis.set(key, token, nx=True, px=ttl_ms):
                return token
            if loop.time() >= deadline:
                logger.warning("Redis lock %s not acquired within %.1fs", key, timeout)
                raise SubjectLockError(
                    f"Lock acquisition timeout after {timeout}s",
                    subject_id=subject_id,
                )
            await asyncio.sleep(self._retry_interval)

    async def release(self, subject_id: str, token: str) -> None:
        key = self._key(subject_id)
        released = await self._redis.eval(_RELEASE_SCRIPT, 1, key, token)
        if not int(released):
            logger.warning("Redis lock %s expired or changed hands before release", key)


__all__: list[str] = ["RedisSubjectLock"]
