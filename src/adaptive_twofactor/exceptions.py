"""Two-factor domain exceptions.

All errors inherit from TwoFactorError so host applications can catch the
whole family at their boundary and map it to a transport response.
"""

from __future__ import annotations

from enum import Enum

# ═══════════════════════════════════════════════════════════════
# BASE ERROR
# ═══════════════════════════════════════════════════════════════


class TwoFactorError(Exception):
    """Root exception for the adaptive two-factor core."""


class GenerationError(TwoFactorError):
    """Raised when the entropy source cannot produce secret material.

    Fatal: surfaced to the operator, never retried by the core.
    """


# ═══════════════════════════════════════════════════════════════
# VERIFICATION ERRORS
# ═══════════════════════════════════════════════════════════════


class VerifyFailure(str, Enum):
    """Kinds of user-facing verification failure."""

    INVALID_TOKEN = "invalid_token"  # noqa: S105
    INVALID_CODE = "invalid_code"
    CODE_ALREADY_USED = "code_already_used"
    NOT_ENROLLED = "not_enrolled"
    RATE_LIMITED = "rate_limited"


_NON_RETRYABLE = frozenset({VerifyFailure.CODE_ALREADY_USED, VerifyFailure.NOT_ENROLLED})


class VerifyError(TwoFactorError):
    """Base class for verification failures surfaced to the caller.

    Attributes:
        kind: Which failure occurred.
        subject_id: Subject the attempt was made for (never the credential).
    """

    kind: VerifyFailure = VerifyFailure.INVALID_TOKEN

    def __init__(self, message: str | None = None, *, subject_id: str | None = None) -> None:
        super().__init__(message or self.kind.value.replace("_", " "))
        self.subject_id = subject_id

    @property
    def retryable(self) -> bool:
        """Whether retrying after a backoff can succeed."""
        return self.kind not in _NON_RETRYABLE


class InvalidCredentialError(VerifyError):
    """Raised when a submitted TOTP token or backup code does not verify."""


class InvalidTokenError(InvalidCredentialError):
    """Raised when a TOTP token does not match any step in the window."""

    kind = VerifyFailure.INVALID_TOKEN


class InvalidCodeError(InvalidCredentialError):
    """Raised when a backup code is malformed or unknown."""

    kind = VerifyFailure.INVALID_CODE


class CodeAlreadyUsedError(VerifyError):
    """Raised when a backup code was consumed before."""

    kind = VerifyFailure.CODE_ALREADY_USED


class NotEnrolledError(VerifyError):
    """Raised when verifying a subject that has no active second factor."""

    kind = VerifyFailure.NOT_ENROLLED


class RateLimitedError(VerifyError):
    """Raised when the attempt was throttled before evaluation.

    Attributes:
        retry_after: Seconds until the next attempt may be recorded.
    """

    kind = VerifyFailure.RATE_LIMITED

    def __init__(
        self,
        message: str | None = None,
        *,
        subject_id: str | None = None,
        retry_after: float = 0.0,
    ) -> None:
        super().__init__(message, subject_id=subject_id)
        self.retry_after = retry_after


# ═══════════════════════════════════════════════════════════════
# RATE LIMIT
# ═══════════════════════════════════════════════════════════════


class RateLimitExceeded(TwoFactorError):  # noqa: N818
    """Raised by the rate limiter when the window is full.

    The new attempt is NOT recorded. Callers surface a wait instruction
    and must not retry immediately.

    Attributes:
        retry_after: Seconds until the oldest attempt leaves the window.
        attempts: Attempts currently counted in the window.
    """

    def __init__(self, retry_after: float, attempts: int = 0) -> None:
        super().__init__(f"Too many attempts. Try again in {retry_after:.0f} seconds")
        self.retry_after = retry_after
        self.attempts = attempts


# ═══════════════════════════════════════════════════════════════
# BACKUP CODES
# ═══════════════════════════════════════════════════════════════


class RecoveryCodeError(TwoFactorError):
    """Base class for backup code consumption failures."""


class BackupCodeNotFoundError(RecoveryCodeError):
    """Raised when no backup code in the set matches."""


class BackupCodeAlreadyUsedError(RecoveryCodeError):
    """Raised when the matching backup code was already consumed."""


# ═══════════════════════════════════════════════════════════════
# ENROLLMENT / DISABLE
# ═══════════════════════════════════════════════════════════════


class EnrollmentStateError(TwoFactorError):
    """Raised when an operation is not allowed in the current enrollment state.

    Attributes:
        state: The state value the subject was in.
    """

    def __init__(self, message: str, state: str | None = None) -> None:
        super().__init__(message)
        self.state = state


class DisableError(TwoFactorError):
    """Base class for failures while disabling the second factor."""


class InvalidRecoveryTokenError(DisableError):
    """Raised when a recovery token is unknown, expired or already used."""


# ═══════════════════════════════════════════════════════════════
# CONCURRENCY
# ═══════════════════════════════════════════════════════════════


class SubjectLockError(TwoFactorError):
    """Raised when the per-subject lock cannot be acquired in time.

    Attributes:
        subject_id: Subject whose lock was contended.
    """

    def __init__(self, message: str, *, subject_id: str) -> None:
        super().__init__(message)
        self.subject_id = subject_id


__all__: list[str] = [
    "TwoFactorError",
    "GenerationError",
    "VerifyFailure",
    "VerifyError",
    "InvalidCredentialError",
    "InvalidTokenError",
    "InvalidCodeError",
    "CodeAlreadyUsedError",
    "NotEnrolledError",
    "RateLimitedError",
    "RateLimitExceeded",
    "RecoveryCodeError",
    "BackupCodeNotFoundError",
    "BackupCodeAlreadyUsedError",
    "EnrollmentStateError",
    "DisableError",
    "InvalidRecoveryTokenError",
    "SubjectLockError",
]
