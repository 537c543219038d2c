"""Ports (protocols) the two-factor core consumes from collaborators.

The core owns the invariants; storage, subject attributes, recovery
tokens and audit sinks are provided by the host application. In-memory
adapters live next to the components that use them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from .audit.events import TwoFactorAuditEvent, TwoFactorEventType
    from .enrollment import Enrollment
    from .rate_limit.window import RateLimitDecision, RateLimitKey
    from .risk import SubjectProfile


@runtime_checkable
class IEnrollmentStore(Protocol):
    """Protocol for persisting per-subject enrollment records.

    Implementations MUST encrypt secrets at rest and should hash backup
    codes. The coordinator holds the subject's ISubjectLock across every
    load, change and save, so a store needs no compare-and-swap of its own.
    """

    async def load(self, subject_id: str) -> Enrollment | None:
        """Load the enrollment for a subject.

        Args:
            subject_id: Subject identifier.

        Returns:
            The enrollment, or None if the subject never enrolled.
        """
        ...

    async def save(self, enrollment: Enrollment) -> None:
        """Persist an enrollment (insert or replace).

        Args:
            enrollment: Record to persist.
        """
        ...

    async def delete(self, subject_id: str) -> None:
        """Remove all stored data for a subject (used when resetting).

        Args:
            subject_id: Subject identifier.
        """
        ...


@runtime_checkable
class ISubjectDirectory(Protocol):
    """Protocol for the subject-attribute source.

    Supplies the role, known devices/origins and the 2FA opt-in flag the
    risk engine decides on. The core never owns a user record.
    """

    async def get_profile(self, subject_id: str) -> SubjectProfile | None:
        """Return the subject's risk-relevant attributes.

        Args:
            subject_id: Subject identifier.

        Returns:
            SubjectProfile, or None if the subject is unknown.
        """
        ...


@runtime_checkable
class IRateLimitStore(Protocol):
    """Protocol for rate-limit window storage.

    ``hit`` MUST prune, check and append as one atomic step per key;
    otherwise concurrent callers can exceed the threshold.
    """

    async def hit(
        self,
        key: RateLimitKey,
        *,
        max_attempts: int,
        window_seconds: float,
    ) -> RateLimitDecision:
        """Record an attempt if the window has room.

        Args:
            key: Subject and attempt kind.
            max_attempts: Threshold for the window.
            window_seconds: Trailing window length.

        Returns:
            Decision describing whether the attempt was recorded.
        """
        ...

    async def clear(self, key: RateLimitKey) -> None:
        """Remove the window for ``key`` entirely.

        Args:
            key: Subject and attempt kind.
        """
        ...


@runtime_checkable
class IRecoveryTokenStore(Protocol):
    """Protocol for administrative recovery tokens.

    Tokens are issued outside the core (e.g. by a support workflow) and
    are single use.
    """

    async def consume(self, subject_id: str, token: str) -> bool:
        """Consume a recovery token.

        Args:
            subject_id: Subject identifier.
            token: Recovery token as submitted.

        Returns:
            True if the token was valid and has now been consumed.
        """
        ...


@runtime_checkable
class ISubjectLock(Protocol):
    """Protocol for per-subject mutual exclusion.

    Held by the coordinator across load, change and save of an
    enrollment. Without it two concurrent requests can both accept the
    same backup code or TOTP step and the later save silently wins.
    """

    async def acquire(self, subject_id: str, *, timeout: float = 10.0, ttl: float = 30.0) -> str:
        """Acquire the lock for a subject.

        Args:
            subject_id: Subject identifier.
            timeout: Maximum time to wait for the lock.
            ttl: Time-to-live for distributed locks; the lock expires on
                its own if the holder dies.

        Returns:
            A token required for release.

        Raises:
            SubjectLockError: The lock could not be acquired in time.
        """
        ...

    async def release(self, subject_id: str, token: str) -> None:
        """Release a lock previously acquired with ``token``.

        Args:
            subject_id: Subject identifier.
            token: The token returned by :meth:`acquire`.
        """
        ...


@runtime_checkable
class IAuditStore(Protocol):
    """Protocol for two-factor audit sinks."""

    async def record(self, event: TwoFactorAuditEvent) -> None:
        """Record an audit event.

        Args:
            event: The audit event to record.
        """
        ...

    async def get_events(
        self,
        subject_id: str,
        *,
        event_types: list[TwoFactorEventType] | None = None,
        limit: int = 100,
    ) -> list[TwoFactorAuditEvent]:
        """Get audit events for a subject, most recent first.

        Args:
            subject_id: Subject identifier.
            event_types: Optional filter by event types.
            limit: Maximum number of events to return.
        """
        ...


__all__: list[str] = [
    "IEnrollmentStore",
    "ISubjectDirectory",
    "IRateLimitStore",
    "IRecoveryTokenStore",
    "IAuditStore",
    "ISubjectLock",
]
