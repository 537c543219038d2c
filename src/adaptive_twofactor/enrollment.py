"""Enrollment state and its in-memory store.

State machine::

    NOT_ENROLLED --begin--> PENDING_CONFIRMATION --confirm--> ENROLLED
    PENDING_CONFIRMATION --begin--> PENDING_CONFIRMATION   (secret replaced)
    ENROLLED --disable--> DISABLED --reset--> NOT_ENROLLED
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from .backup_codes import BackupCode
from .exceptions import EnrollmentStateError
from .ports import IEnrollmentStore


class EnrollmentState(str, Enum):
    """Per-subject enrollment state."""

    NOT_ENROLLED = "not_enrolled"
    PENDING_CONFIRMATION = "pending_confirmation"
    ENROLLED = "enrolled"
    DISABLED = "disabled"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Enrollment:
    """A subject's second-factor record.

    Secrets are excluded from ``repr``. Transition methods raise
    EnrollmentStateError when called from the wrong state and leave the
    record untouched.
    """

    subject_id: str
    state: EnrollmentState = EnrollmentState.NOT_ENROLLED
    pending_secret: str | None = field(default=None, repr=False)
    active_secret: str | None = field(default=None, repr=False)
    backup_codes: list[BackupCode] = field(default_factory=list, repr=False)
    last_used_step: int | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    def require(self, *states: EnrollmentState, action: str) -> None:
        """Raise EnrollmentStateError unless in one of ``states``."""
        if self.state not in states:
            raise EnrollmentStateError(
                f"Cannot {action} while {self.state.value}",
                state=self.state.value,
            )

    def begin(self, secret_base32: str, at: datetime | None = None) -> None:
        """Store an unconfirmed secret, discarding any previous one."""
        self.require(
            EnrollmentState.NOT_ENROLLED,
            EnrollmentState.PENDING_CONFIRMATION,
            action="start enrollment",
        )
        self.pending_secret = secret_base32
        self.state = EnrollmentState.PENDING_CONFIRMATION
        self.updated_at = at or _utcnow()

    def confirm(
        self,
        backup_codes: list[BackupCode],
        step: int | None = None,
        at: datetime | None = None,
    ) -> None:
        """Activate the pending secret."""
        self.require(EnrollmentState.PENDING_CONFIRMATION, action="confirm enrollment")
        self.active_secret = self.pending_secret
        self.pending_secret = None
        self.backup_codes = backup_codes
        self.last_used_step = step
        self.state = EnrollmentState.ENROLLED
        self.updated_at = at or _utcnow()

    def replace_backup_codes(self, backup_codes: list[BackupCode], at: datetime | None = None) -> None:
        """Swap in a new code set; every previous code becomes invalid."""
        self.require(EnrollmentState.ENROLLED, action="regenerate backup codes")
        self.backup_codes = backup_codes
        self.updated_at = at or _utcnow()

    def disable(self, at: datetime | None = None) -> None:
        self.require(EnrollmentState.ENROLLED, action="disable two-factor")
        self.state = EnrollmentState.DISABLED
        self.updated_at = at or _utcnow()

    def reset(self, at: datetime | None = None) -> None:
        """Forget secrets and codes and return to NOT_ENROLLED."""
        self.require(EnrollmentState.DISABLED, action="reset two-factor")
        self.pending_secret = None
        self.active_secret = None
        self.backup_codes = []
        self.last_used_step = None
        self.state = EnrollmentState.NOT_ENROLLED
        self.updated_at = at or _utcnow()

    @property
    def is_active(self) -> bool:
        return self.state is EnrollmentState.ENROLLED and self.active_secret is not None


class InMemoryEnrollmentStore(IEnrollmentStore):
    """In-memory enrollment store for TESTING ONLY.

    ⚠️ WARNING: Secrets and backup codes are kept in plain text in memory.
    Do NOT use in production!

    Records are copied on load and save so callers cannot mutate stored
    state without saving, as with a real database.
    """

    def __init__(self) -> None:
        self._records: dict[str, Enrollment] = {}

    async def load(self, subject_id: str) -> Enrollment | None:
        record = self._records.get(subject_id)
        return copy.deepcopy(record) if record is not None else None

    async def save(self, enrollment: Enrollment) -> None:
        self._records[enrollment.subject_id] = copy.deepcopy(enrollment)

    async def delete(self, subject_id: str) -> None:
        self._records.pop(subject_id, None)


__all__: list[str] = [
    "EnrollmentState",
    "Enrollment",
    "InMemoryEnrollmentStore",
]
