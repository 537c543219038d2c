"""Sliding window primitives shared by the rate-limit stores."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from enum import Enum


class AttemptKind(str, Enum):
    """What kind of attempt is being throttled."""

    TOTP = "totp"
    BACKUP_CODE = "backup_code"
    ENROLLMENT = "enrollment"
    RECOVERY = "recovery"


@dataclass(frozen=True, order=True)
class RateLimitKey:
    """Identifies one window: a subject and an attempt kind."""

    subject_id: str
    kind: AttemptKind

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.subject_id}"


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of one atomic prune-check-append.

    Attributes:
        allowed: Whether the attempt was recorded.
        attempts: Attempts in the window after the operation.
        oldest_age: Seconds since the oldest attempt still in the window.
    """

    allowed: bool
    attempts: int
    oldest_age: float


@dataclass
class RateLimitWindow:
    """Attempt timestamps (steady clock) within the trailing window.

    Every access happens under ``lock``. A window that was cleared is marked
    ``retired``; callers that raced with the clear must look the key up
    again instead of writing into the orphaned window.
    """

    max_attempts: int
    window_seconds: float
    timestamps: deque[float] = field(default_factory=deque)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    retired: bool = False

    def prune(self, now: float) -> None:
        """Drop timestamps at or before ``now - window_seconds``."""
        cutoff = now - self.window_seconds
        while self.timestamps and self.timestamps[0] <= cutoff:
            self.timestamps.popleft()

    def hit(self, now: float) -> RateLimitDecision:
        """Prune, then record ``now`` if below the threshold."""
        self.prune(now)
        if len(self.timestamps) >= self.max_attempts:
            return RateLimitDecision(
                allowed=False,
                attempts=len(self.timestamps),
                oldest_age=now - self.timestamps[0],
            )
        self.timestamps.append(now)
        return RateLimitDecision(
            allowed=True,
            attempts=len(self.timestamps),
            oldest_age=now - self.timestamps[0],
        )


__all__: list[str] = [
    "AttemptKind",
    "RateLimitKey",
    "RateLimitDecision",
    "RateLimitWindow",
]
