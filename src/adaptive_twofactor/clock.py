"""Time sources.

The wall clock feeds TOTP time steps and user-visible timestamps. The
steady clock feeds rate-limit window math and is unaffected by system
clock adjustments.
"""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable


@runtime_checkable
class IClock(Protocol):
    """Protocol for time sources."""

    def now(self) -> datetime:
        """Return the current wall-clock time (timezone-aware UTC)."""
        ...

    def time(self) -> float:
        """Return the current wall-clock time as Unix seconds."""
        ...

    def monotonic(self) -> float:
        """Return a steady reading for interval math."""
        ...


class SystemClock(IClock):
    """Clock backed by the operating system."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def time(self) -> float:
        return time.time()

    def monotonic(self) -> float:
        return time.monotonic()


class ManualClock(IClock):
    """Clock that only moves when told to. For tests and simulations.

    Example:
        ```python
        clock = ManualClock(start=1_700_000_000)
        clock.advance(30)          # both readings move
        clock.set_wall(0)          # simulate a system clock jump
        ```
    """

    def __init__(self, start: float = 1_700_000_000.0, monotonic_start: float = 1_000.0) -> None:
        self._wall = float(start)
        self._steady = float(monotonic_start)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        return datetime.fromtimestamp(self.time(), tz=timezone.utc)

    def time(self) -> float:
        with self._lock:
            return self._wall

    def monotonic(self) -> float:
        with self._lock:
            return self._steady

    def advance(self, seconds: float) -> None:
        """Move both wall and steady readings forward."""
        if seconds < 0:
            raise ValueError("ManualClock cannot move backwards; use set_wall()")
        with self._lock:
            self._wall += seconds
            self._steady += seconds

    def set_wall(self, timestamp: float) -> None:
        """Jump the wall clock only, leaving the steady reading untouched."""
        with self._lock:
            self._wall = float(timestamp)


__all__: list[str] = ["IClock", "SystemClock", "ManualClock"]
