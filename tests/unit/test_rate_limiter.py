"""Tests for the sliding window rate limiter and its stores."""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from adaptive_twofactor import (
    AttemptKind,
    InMemoryRateLimitStore,
    ManualClock,
    RateLimitConfig,
    RateLimiter,
    RateLimitExceeded,
    RateLimitKey,
    RedisRateLimitStore,
)


@pytest.fixture
def store(clock: ManualClock) -> InMemoryRateLimitStore:
    return InMemoryRateLimitStore(clock=clock)


@pytest.fixture
def limiter(store: InMemoryRateLimitStore, clock: ManualClock) -> RateLimiter:
    return RateLimiter(store, RateLimitConfig(max_attempts=5, window_seconds=900), clock=clock)


class TestCheckAndRecord:
    @pytest.mark.asyncio
    async def test_allows_up_to_threshold(self, limiter: RateLimiter) -> None:
        remaining = [(await limiter.check_and_record("user-1")).attempts_remaining for _ in range(5)]
        assert remaining == [4, 3, 2, 1, 0]

    @pytest.mark.asyncio
    async def test_sixth_attempt_refused(self, limiter: RateLimiter, store: InMemoryRateLimitStore) -> None:
        for _ in range(5):
            await limiter.check_and_record("user-1")

        with pytest.raises(RateLimitExceeded) as exc_info:
            await limiter.check_and_record("user-1")

        assert exc_info.value.retry_after > 0
        assert exc_info.value.attempts == 5
        assert "Too many attempts" in str(exc_info.value)
        # Refused attempts are not recorded
        assert store.attempts(RateLimitKey("user-1", AttemptKind.TOTP)) == 5

    @pytest.mark.asyncio
    async def test_retry_after_counts_from_oldest_attempt(self, limiter: RateLimiter, clock: ManualClock) -> None:
        await limiter.check_and_record("user-1")
        clock.advance(100)
        for _ in range(4):
            await limiter.check_and_record("user-1")

        with pytest.raises(RateLimitExceeded) as exc_info:
            await limiter.check_and_record("user-1")
        assert exc_info.value.retry_after == pytest.approx(800)

    @pytest.mark.asyncio
    async def test_window_elapses(self, limiter: RateLimiter, clock: ManualClock) -> None:
        for _ in range(5):
            await limiter.check_and_record("user-1")

        clock.advance(900)
        status = await limiter.check_and_record("user-1")
        assert status.attempts_remaining == 4

    @pytest.mark.asyncio
    async def test_oldest_attempt_slides_out(self, limiter: RateLimiter, clock: ManualClock) -> None:
        await limiter.check_and_record("user-1")
        clock.advance(600)
        for _ in range(4):
            await limiter.check_and_record("user-1")

        clock.advance(300)
        # Only the first attempt left the window
        await limiter.check_and_record("user-1")
        with pytest.raises(RateLimitExceeded):
            await limiter.check_and_record("user-1")

    @pytest.mark.asyncio
    async def test_reset_at(self, limiter: RateLimiter, clock: ManualClock) -> None:
        first = await limiter.check_and_record("user-1")
        assert first.reset_at == clock.now() + timedelta(seconds=900)

        clock.advance(60)
        second = await limiter.check_and_record("user-1")
        assert second.reset_at == first.reset_at

    @pytest.mark.asyncio
    async def test_steady_clock_governs_window(self, limiter: RateLimiter, clock: ManualClock) -> None:
        for _ in range(5):
            await limiter.check_and_record("user-1")

        # A wall clock jump must not open the window
        clock.set_wall(clock.time() + 86_400)
        with pytest.raises(RateLimitExceeded):
            await limiter.check_and_record("user-1")

    @pytest.mark.asyncio
    async def test_subjects_and_kinds_are_independent(self, limiter: RateLimiter) -> None:
        for _ in range(5):
            await limiter.check_and_record("user-1", AttemptKind.TOTP)

        await limiter.check_and_record("user-2", AttemptKind.TOTP)
        await limiter.check_and_record("user-1", AttemptKind.BACKUP_CODE)

    @pytest.mark.asyncio
    async def test_clear(self, limiter: RateLimiter) -> None:
        for _ in range(5):
            await limiter.check_and_record("user-1")

        await limiter.clear("user-1", AttemptKind.TOTP)
        status = await limiter.check_and_record("user-1")
        assert status.attempts_remaining == 4


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_concurrent_tasks_never_exceed_threshold(self, limiter: RateLimiter) -> None:
        results = await asyncio.gather(
            *(limiter.check_and_record("user-1") for _ in range(50)),
            return_exceptions=True,
        )

        allowed = [r for r in results if not isinstance(r, BaseException)]
        refused = [r for r in results if isinstance(r, RateLimitExceeded)]
        assert len(allowed) == 5
        assert len(refused) == 45

    def test_concurrent_threads_never_exceed_threshold(self, store: InMemoryRateLimitStore) -> None:
        key = RateLimitKey("user-1", AttemptKind.TOTP)

        def attempt(_: int) -> bool:
            return store.hit_sync(key, max_attempts=5, window_seconds=900).allowed

        with ThreadPoolExecutor(max_workers=16) as pool:
            outcomes = list(pool.map(attempt, range(200)))

        assert outcomes.count(True) == 5
        assert store.attempts(key) == 5

    def test_clear_while_hitting_keeps_bound(self, store: InMemoryRateLimitStore) -> None:
        key = RateLimitKey("user-1", AttemptKind.TOTP)

        def work(i: int) -> None:
            if i % 10 == 0:
                store.clear_sync(key)
            else:
                store.hit_sync(key, max_attempts=5, window_seconds=900)

        with ThreadPoolExecutor(max_workers=16) as pool:
            list(pool.map(work, range(500)))

        assert store.attempts(key) <= 5


class TestInMemoryStore:
    @pytest.mark.asyncio
    async def test_purge_expired(self, store: InMemoryRateLimitStore, clock: ManualClock) -> None:
        await store.hit(RateLimitKey("user-1", AttemptKind.TOTP), max_attempts=5, window_seconds=60)
        clock.advance(30)
        await store.hit(RateLimitKey("user-2", AttemptKind.TOTP), max_attempts=5, window_seconds=60)
        clock.advance(31)

        assert store.purge_expired() == 1
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_clear_unknown_key_is_noop(self, store: InMemoryRateLimitStore) -> None:
        await store.clear(RateLimitKey("nobody", AttemptKind.RECOVERY))
        assert len(store) == 0

    def test_key_string(self) -> None:
        assert str(RateLimitKey("user-1", AttemptKind.BACKUP_CODE)) == "backup_code:user-1"


class TestRedisStore:
    @pytest.fixture
    def redis(self) -> AsyncMock:
        return AsyncMock()

    @pytest.mark.asyncio
    async def test_hit_runs_script_atomically(self, redis: AsyncMock, clock: ManualClock) -> None:
        redis.eval.return_value = [1, 1, b"1700000000000"]
        store = RedisRateLimitStore(redis, clock=clock)

        decision = await store.hit(RateLimitKey("user-1", AttemptKind.TOTP), max_attempts=5, window_seconds=900)

        assert decision.allowed
        assert decision.attempts == 1
        assert decision.oldest_age == 0
        args = redis.eval.await_args.args
        assert args[1] == 1
        assert args[2] == "twofactor:ratelimit:totp:user-1"
        assert args[3:6] == (1_700_000_000_000, 900_000, 5)

    @pytest.mark.asyncio
    async def test_refusal_maps_to_rate_limit_exceeded(self, redis: AsyncMock, clock: ManualClock) -> None:
        redis.eval.return_value = [0, 5, b"1699999700000"]
        limiter = RateLimiter(RedisRateLimitStore(redis, clock=clock), clock=clock)

        with pytest.raises(RateLimitExceeded) as exc_info:
            await limiter.check_and_record("user-1")
        assert exc_info.value.retry_after == pytest.approx(600)
        assert exc_info.value.attempts == 5

    @pytest.mark.asyncio
    async def test_clear_deletes_key(self, redis: AsyncMock, clock: ManualClock) -> None:
        store = RedisRateLimitStore(redis, prefix="app", clock=clock)
        await store.clear(RateLimitKey("user-1", AttemptKind.RECOVERY))
        redis.delete.assert_awaited_once_with("app:recovery:user-1")
