"""In-memory rate-limit store for single-process deployments and tests.

Windows are serialised per key with a ``threading.Lock`` and no await
happens while a lock is held, so the store is safe both across asyncio
tasks and across threads running their own event loops. Different keys
never contend.

It will NOT coordinate multiple worker processes; use
RedisRateLimitStore for that.
"""

from __future__ import annotations

import logging
import threading

from ..clock import IClock, SystemClock
from ..ports import IRateLimitStore
from .window import RateLimitDecision, RateLimitKey, RateLimitWindow

logger = logging.getLogger("adaptive_twofactor.rate_limit")


class InMemoryRateLimitStore(IRateLimitStore):
    """In-memory implementation of IRateLimitStore.

    Example:
        ```python
        store = InMemoryRateLimitStore()
        limiter = RateLimiter(store)
        ```
    """

    def __init__(self, *, clock: IClock | None = None) -> None:
        self.clock = clock or SystemClock()
        self._windows: dict[RateLimitKey, RateLimitWindow] = {}
        self._registry_lock = threading.Lock()

    def _window_for(self, key: RateLimitKey, max_attempts: int, window_seconds: float) -> RateLimitWindow:
        with self._registry_lock:
            window = self._windows.get(key)
            if window is None:
                window = RateLimitWindow(max_attempts=max_attempts, window_seconds=window_seconds)
                self._windows[key] = window
            return window

    def hit_sync(self, key: RateLimitKey, *, max_attempts: int, window_seconds: float) -> RateLimitDecision:
        """Blocking variant of :meth:`hit` for thread-based callers."""
        while True:
            window = self._window_for(key, max_attempts, window_seconds)
            with window.lock:
                if window.retired:
                    # Cleared while we waited; retry against the fresh window.
                    continue
                window.max_attempts = max_attempts
                window.window_seconds = window_seconds
                return window.hit(self.clock.monotonic())

    async def hit(self, key: RateLimitKey, *, max_attempts: int, window_seconds: float) -> RateLimitDecision:
        return self.hit_sync(key, max_attempts=max_attempts, window_seconds=window_seconds)

    def clear_sync(self, key: RateLimitKey) -> None:
        """Blocking variant of :meth:`clear`."""
        with self._registry_lock:
            window = self._windows.pop(key, None)
        if window is None:
            return
        with window.lock:
            window.retired = True
            window.timestamps.clear()

    async def clear(self, key: RateLimitKey) -> None:
        self.clear_sync(key)

    def attempts(self, key: RateLimitKey) -> int:
        """Attempts currently counted for ``key`` (after pruning)."""
        with self._registry_lock:
            window = self._windows.get(key)
        if window is None:
            return 0
        with window.lock:
            window.prune(self.clock.monotonic())
            return len(window.timestamps)

    def purge_expired(self) -> int:
        """Remove windows with no attempts left in them.

        Call periodically to bound memory on long-running processes.

        Returns:
            Number of windows removed.
        """
        with self._registry_lock:
            snapshot = list(self._windows.items())

        removed = 0
        now = self.clock.monotonic()
        for key, window in snapshot:
            with window.lock:
                if window.retired:
                    continue
                window.prune(now)
                if window.timestamps:
                    continue
                window.retired = True
                with self._registry_lock:
                    if self._windows.get(key) is window:
                        del self._windows[key]
                removed += 1

        if removed:
            logger.debug("Purged %d idle rate-limit windows", removed)
        return removed

    def __len__(self) -> int:
        with self._registry_lock:
            return len(self._windows)


__all__: list[str] = ["InMemoryRateLimitStore"]
