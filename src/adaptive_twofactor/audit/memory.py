"""In-memory audit store for testing and development."""

from __future__ import annotations

from collections import defaultdict
from datetime import timedelta
from typing import TYPE_CHECKING

from ..clock import IClock, SystemClock
from ..ports import IAuditStore

if TYPE_CHECKING:
    from .events import TwoFactorAuditEvent, TwoFactorEventType


class InMemoryAuditStore(IAuditStore):
    """In-memory implementation of IAuditStore.

    Note:
        Events are stored in memory and will be lost on restart.
        Not suitable for production use.

    Example:
        ```python
        store = InMemoryAuditStore()
        coordinator = TwoFactorCoordinator(..., audit_store=store)

        events = await store.get_events("user-123")
        ```
    """

    def __init__(self, *, clock: IClock | None = None) -> None:
        self.clock = clock or SystemClock()
        self._events: list[TwoFactorAuditEvent] = []
        self._by_subject: dict[str, list[int]] = defaultdict(list)

    async def record(self, event: TwoFactorAuditEvent) -> None:
        self._by_subject[event.subject_id].append(len(self._events))
        self._events.append(event)

    async def get_events(
        self,
        subject_id: str,
        *,
        event_types: list[TwoFactorEventType] | None = None,
        limit: int = 100,
    ) -> list[TwoFactorAuditEvent]:
        results: list[TwoFactorAuditEvent] = []
        for idx in reversed(self._by_subject.get(subject_id, [])):
            event = self._events[idx]
            if event_types and event.event_type not in event_types:
                continue
            results.append(event)
            if len(results) >= limit:
                break
        return results

    async def get_recent_failures(
        self,
        subject_id: str,
        *,
        minutes: int = 15,
        limit: int = 100,
    ) -> list[TwoFactorAuditEvent]:
        """Failed events for a subject within the last ``minutes`` of the store's clock."""
        cutoff = self.clock.now() - timedelta(minutes=minutes)
        results: list[TwoFactorAuditEvent] = []
        for idx in reversed(self._by_subject.get(subject_id, [])):
            event = self._events[idx]
            if event.timestamp < cutoff or event.success:
                continue
            results.append(event)
            if len(results) >= limit:
                break
        return results

    def clear(self) -> None:
        """Clear all stored events. Useful for test cleanup."""
        self._events.clear()
        self._by_subject.clear()

    def count(self) -> int:
        return len(self._events)


__all__: list[str] = ["InMemoryAuditStore"]
