"""In-memory subject lock for single-process deployments and tests."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from uuid import uuid4

from ..exceptions import SubjectLockError
from ..ports import ISubjectLock

logger = logging.getLogger("adaptive_twofactor.locking")


@dataclass
class _SubjectLockState:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    token: str | None = None
    waiters: int = 0


class InMemorySubjectLock(ISubjectLock):
    """In-memory implementation of ISubjectLock.

    One ``asyncio.Lock`` per subject; subjects never contend with each
    other. Entries are dropped once nobody holds or waits for them.

    It will NOT coordinate multiple worker processes; use
    RedisSubjectLock for that.
    """

    def __init__(self) -> None:
        self._states: dict[str, _SubjectLockState] = {}

    async def acquire(
        self,
        subject_id: str,
        *,
        timeout: float = 10.0,
        ttl: float = 30.0,  # noqa: ARG002
    ) -> str:
        state = self._states.get(subject_id)
        if state is None:
            state = self._states[subject_id] = _SubjectLockState()

        state.waiters += 1
        try:
            await asyncio.wait_for(state.lock.acquire(), timeout=timeout)
        except asyncio.TimeoutError as err:
            logger.warning("Lock for subject %s not acquired within %.1fs", subject_id, timeout)
            raise SubjectLockError(
                f"Lock acquisition timeout after {timeout}s",
                subject_id=subject_id,
            ) from err
        finally:
            state.waiters -= 1
            if state.waiters == 0 and not state.lock.locked():
                self._states.pop(subject_id, None)

        state.token = uuid4().hex
        return state.token

    async def release(self, subject_id: str, token: str) -> None:
        state = self._states.get(subject_id)
        if state is None or state.token != token:
            logger.warning("Ignoring release of subject lock %s with a stale token", subject_id)
            return

        state.token = None
        state.lock.release()
        if state.waiters == 0:
            self._states.pop(subject_id, None)

    def is_locked(self, subject_id: str) -> bool:
        state = self._states.get(subject_id)
        return state is not None and state.lock.locked()


__all__: list[str] = ["InMemorySubjectLock"]
