"""Sliding window limiter for verification attempts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..clock import IClock, SystemClock
from ..config import RateLimitConfig
from ..exceptions import RateLimitExceeded
from ..ports import IRateLimitStore
from .window import AttemptKind, RateLimitKey

logger = logging.getLogger("adaptive_twofactor.rate_limit")


@dataclass(frozen=True)
class RateLimitStatus:
    """Result of a recorded attempt.

    Attributes:
        attempts_remaining: Attempts still allowed in the current window.
        reset_at: When the oldest counted attempt leaves the window (UTC).
    """

    attempts_remaining: int
    reset_at: datetime


class RateLimiter:
    """Caps verification attempts per ``(subject, attempt kind)``.

    The store performs the atomic prune-check-append; the limiter turns
    its decision into a status or a RateLimitExceeded error.

    Example:
        ```python
        limiter = RateLimiter(InMemoryRateLimitStore())
        try:
            status = await limiter.check_and_record("user-1", AttemptKind.TOTP)
        except RateLimitExceeded as exc:
            wait(exc.retry_after)
        ```
    """

    def __init__(
        self,
        store: IRateLimitStore,
        config: RateLimitConfig | None = None,
        *,
        clock: IClock | None = None,
    ) -> None:
        self.store = store
        self.config = config or RateLimitConfig()
        self.clock = clock or SystemClock()

    async def check_and_record(
        self,
        subject_id: str,
        attempt_kind: AttemptKind = AttemptKind.TOTP,
    ) -> RateLimitStatus:
        """Record an attempt, or refuse it if the window is full.

        Raises:
            RateLimitExceeded: The threshold is reached; nothing was recorded.
        """
        key = RateLimitKey(subject_id, AttemptKind(attempt_kind))
        window = self.config.window_seconds
        decision = await self.store.hit(
            key,
            max_attempts=self.config.max_attempts,
            window_seconds=window,
        )
        time_left = max(0.0, window - decision.oldest_age)

        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded for subject %s (%s): %d attempts in window",
                subject_id,
                key.kind.value,
                decision.attempts,
            )
            raise RateLimitExceeded(retry_after=time_left, attempts=decision.attempts)

        return RateLimitStatus(
            attempts_remaining=max(0, self.config.max_attempts - decision.attempts),
            reset_at=self.clock.now() + timedelta(seconds=time_left),
        )

    async def clear(self, subject_id: str, attempt_kind: AttemptKind = AttemptKind.TOTP) -> None:
        """Forget all attempts of ``attempt_kind`` for the subject."""
        await self.store.clear(RateLimitKey(subject_id, AttemptKind(attempt_kind)))


__all__: list[str] = ["RateLimitStatus", "RateLimiter"]
