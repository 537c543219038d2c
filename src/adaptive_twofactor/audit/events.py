"""Audit events for two-factor operations.

Events never carry secrets, tokens or backup codes; only the subject,
the outcome and a failure code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class TwoFactorEventType(Enum):
    """Types of two-factor audit events.

    Event naming follows the pattern: `mfa.<resource>.<action>`
    """

    ENROLLMENT_STARTED = "mfa.enrollment.started"
    ENABLED = "mfa.enabled"
    VERIFIED = "mfa.verified"
    FAILED = "mfa.failed"
    RATE_LIMITED = "mfa.rate_limited"
    BACKUP_CODE_USED = "mfa.backup_code.used"
    BACKUP_CODES_REGENERATED = "mfa.backup_codes.regenerated"
    DISABLED = "mfa.disabled"
    RESET = "mfa.reset"


@dataclass(frozen=True)
class TwoFactorAuditEvent:
    """Two-factor audit event.

    Attributes:
        event_type: The type of event.
        subject_id: The subject the event concerns.
        method: Credential kind involved (totp, backup_code, recovery).
        timestamp: When the event occurred (UTC).
        success: Whether the operation was successful.
        error_code: Failure kind if the operation failed.
        metadata: Additional event-specific data.
    """

    event_type: TwoFactorEventType
    subject_id: str
    method: str | None = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    success: bool = True
    error_code: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.success and not self.error_code:
            object.__setattr__(self, "error_code", "UNKNOWN_ERROR")

    def to_dict(self) -> dict[str, Any]:
        """Convert event to a JSON-serialisable dictionary."""
        return {
            "event_type": self.event_type.value,
            "subject_id": self.subject_id,
            "method": self.method,
            "timestamp": self.timestamp.isoformat(),
            "success": self.success,
            "error_code": self.error_code,
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TwoFactorAuditEvent:
        """Create event from dictionary.

        Raises:
            ValueError: If required fields are missing or invalid.
        """
        event_type_str = data.get("event_type")
        if event_type_str is None:
            raise ValueError("Missing required 'event_type'")
        subject_id = data.get("subject_id")
        if not subject_id:
            raise ValueError("Missing required 'subject_id'")

        try:
            event_type = TwoFactorEventType(event_type_str)
        except ValueError as e:
            raise ValueError(f"Invalid event_type: {event_type_str}") from e

        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp)
            if timestamp.tzinfo is None:
                timestamp = timestamp.replace(tzinfo=timezone.utc)
        elif timestamp is None:
            timestamp = datetime.now(timezone.utc)

        return cls(
            event_type=event_type,
            subject_id=subject_id,
            method=data.get("method"),
            timestamp=timestamp,
            success=data.get("success", True),
            error_code=data.get("error_code"),
            metadata=data.get("metadata", {}),
        )


# ═══════════════════════════════════════════════════════════════
# EVENT FACTORY FUNCTIONS
# ═══════════════════════════════════════════════════════════════


def verified_event(subject_id: str, method: str, *, timestamp: datetime | None = None) -> TwoFactorAuditEvent:
    """Create a successful verification event."""
    return TwoFactorAuditEvent(
        event_type=TwoFactorEventType.VERIFIED,
        subject_id=subject_id,
        method=method,
        timestamp=timestamp or datetime.now(timezone.utc),
    )


def failed_event(
    subject_id: str,
    method: str,
    error_code: str,
    *,
    timestamp: datetime | None = None,
) -> TwoFactorAuditEvent:
    """Create a failed verification event."""
    return TwoFactorAuditEvent(
        event_type=TwoFactorEventType.FAILED,
        subject_id=subject_id,
        method=method,
        timestamp=timestamp or datetime.now(timezone.utc),
        success=False,
        error_code=error_code,
    )


def rate_limited_event(
    subject_id: str,
    method: str,
    retry_after: float,
    *,
    timestamp: datetime | None = None,
) -> TwoFactorAuditEvent:
    """Create an event for an attempt refused by the rate limiter."""
    return TwoFactorAuditEvent(
        event_type=TwoFactorEventType.RATE_LIMITED,
        subject_id=subject_id,
        method=method,
        timestamp=timestamp or datetime.now(timezone.utc),
        success=False,
        error_code="RATE_LIMITED",
        metadata={"retry_after": round(retry_after, 3)},
    )


def lifecycle_event(
    event_type: TwoFactorEventType,
    subject_id: str,
    *,
    method: str | None = None,
    timestamp: datetime | None = None,
    metadata: dict[str, Any] | None = None,
) -> TwoFactorAuditEvent:
    """Create an enrollment lifecycle event (started, enabled, disabled...)."""
    return TwoFactorAuditEvent(
        event_type=event_type,
        subject_id=subject_id,
        method=method,
        timestamp=timestamp or datetime.now(timezone.utc),
        metadata=metadata or {},
    )


__all__: list[str] = [
    "TwoFactorEventType",
    "TwoFactorAuditEvent",
    "verified_event",
    "failed_event",
    "rate_limited_event",
    "lifecycle_event",
]
