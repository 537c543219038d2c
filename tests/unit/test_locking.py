"""Tests for per-subject locks."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

import pytest

from adaptive_twofactor import InMemorySubjectLock, ISubjectLock, RedisSubjectLock, SubjectLockError


@pytest.fixture
def lock() -> InMemorySubjectLock:
    return InMemorySubjectLock()


class TestInMemorySubjectLock:
    def test_satisfies_protocol(self, lock: InMemorySubjectLock) -> None:
        assert isinstance(lock, ISubjectLock)

    @pytest.mark.asyncio
    async def test_serialises_same_subject(self, lock: InMemorySubjectLock) -> None:
        order: list[str] = []

        async def critical(name: str) -> None:
            token = await lock.acquire("u1")
            order.append(f"{name}-in")
            await asyncio.sleep(0)
            order.append(f"{name}-out")
            await lock.release("u1", token)

        await asyncio.gather(critical("a"), critical("b"))

        assert order == ["a-in", "a-out", "b-in", "b-out"]

    @pytest.mark.asyncio
    async def test_subjects_do_not_contend(self, lock: InMemorySubjectLock) -> None:
        await lock.acquire("u1")
        token = await lock.acquire("u2", timeout=0.01)
        assert token

    @pytest.mark.asyncio
    async def test_timeout(self, lock: InMemorySubjectLock) -> None:
        await lock.acquire("u1")

        with pytest.raises(SubjectLockError) as exc_info:
            await lock.acquire("u1", timeout=0.01)
        assert exc_info.value.subject_id == "u1"
        assert lock.is_locked("u1")

    @pytest.mark.asyncio
    async def test_stale_token_does_not_release(self, lock: InMemorySubjectLock) -> None:
        token = await lock.acquire("u1")

        await lock.release("u1", "not-the-token")
        assert lock.is_locked("u1")

        await lock.release("u1", token)
        assert not lock.is_locked("u1")

    @pytest.mark.asyncio
    async def test_idle_entries_are_dropped(self, lock: InMemorySubjectLock) -> None:
        token = await lock.acquire("u1")
        await lock.release("u1", token)

        assert lock._states == {}


class TestRedisSubjectLock:
    @pytest.fixture
    def redis(self) -> AsyncMock:
        return AsyncMock()

    @pytest.mark.asyncio
    async def test_acquire_sets_key_with_ttl(self, redis: AsyncMock) -> None:
        redis.set.return_value = True
        lock = RedisSubjectLock(redis)

        token = await lock.acquire("u1", ttl=5)

        redis.set.assert_awaited_once_with("twofactor:lock:u1", token, nx=True, px=5000)

    @pytest.mark.asyncio
    async def test_acquire_retries_until_free(self, redis: AsyncMock) -> None:
        redis.set.side_effect = [None, None, True]
        lock = RedisSubjectLock(redis, retry_interval=0)

        await lock.acquire("u1", timeout=1)

        assert redis.set.await_count == 3

    @pytest.mark.asyncio
    async def test_acquire_timeout(self, redis: AsyncMock) -> None:
        redis.set.return_value = None
        lock = RedisSubjectLock(redis, retry_interval=0)

        with pytest.raises(SubjectLockError):
            await lock.acquire("u1", timeout=0)

    @pytest.mark.asyncio
    async def test_release_checks_token(self, redis: AsyncMock) -> None:
        redis.eval.return_value = 1
        lock = RedisSubjectLock(redis, prefix="app")

        await lock.release("u1", "abc")

        args = redis.eval.await_args.args
        assert args[1:] == (1, "app:u1", "abc")

    @pytest.mark.asyncio
    async def test_release_of_expired_lock_is_logged(
        self, redis: AsyncMock, caplog: pytest.LogCaptureFixture
    ) -> None:
        redis.eval.return_value = 0
        lock = RedisSubjectLock(redis)

        with caplog.at_level("WARNING", logger="adaptive_twofactor.locking.redis"):
            await lock.release("u1", "abc")
        assert "expired" in caplog.text
