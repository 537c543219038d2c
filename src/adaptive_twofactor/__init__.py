"""adaptive-twofactor: adaptive two-factor authentication core.

TOTP enrollment and verification, single-use backup codes, sliding-window
attempt limiting and risk-based step-up decisions. Storage, subject
attributes and recovery tokens are supplied by the host through ports.
"""

from __future__ import annotations

# ── Audit ────────────────────────────────────────────────────────
from .audit import InMemoryAuditStore, TwoFactorAuditEvent, TwoFactorEventType

# ── Components ───────────────────────────────────────────────────
from .backup_codes import BackupCode, BackupCodeManager
from .clock import IClock, ManualClock, SystemClock

# ── Configuration ────────────────────────────────────────────────
from .config import (
    BackupCodeConfig,
    LockConfig,
    RateLimitConfig,
    RiskConfig,
    TotpConfig,
    TwoFactorConfig,
)

# ── Coordinator ──────────────────────────────────────────────────
from .coordinator import TwoFactorCoordinator
from .enrollment import Enrollment, EnrollmentState, InMemoryEnrollmentStore

# ── Exceptions ───────────────────────────────────────────────────
from .exceptions import (
    BackupCodeAlreadyUsedError,
    BackupCodeNotFoundError,
    CodeAlreadyUsedError,
    DisableError,
    EnrollmentStateError,
    GenerationError,
    InvalidCodeError,
    InvalidCredentialError,
    InvalidRecoveryTokenError,
    InvalidTokenError,
    NotEnrolledError,
    RateLimitedError,
    RateLimitExceeded,
    RecoveryCodeError,
    SubjectLockError,
    TwoFactorError,
    VerifyError,
    VerifyFailure,
)
from .locking import InMemorySubjectLock, RedisSubjectLock
from .observability import TwoFactorMetrics

# ── Ports ────────────────────────────────────────────────────────
from .ports import (
    IAuditStore,
    IEnrollmentStore,
    IRateLimitStore,
    IRecoveryTokenStore,
    ISubjectDirectory,
    ISubjectLock,
)
from .rate_limit import (
    AttemptKind,
    InMemoryRateLimitStore,
    RateLimiter,
    RateLimitKey,
    RateLimitStatus,
    RedisRateLimitStore,
)
from .recovery import InMemoryRecoveryTokenStore, generate_recovery_token
from .risk import RiskAssessment, RiskContext, RiskEngine, SubjectProfile
from .totp import ProvisioningDescriptor, Secret, SecretProvisioner, TokenVerifier

__version__ = "0.1.0"

__all__: list[str] = [
    # Coordinator
    "TwoFactorCoordinator",
    # Configuration
    "TwoFactorConfig",
    "TotpConfig",
    "BackupCodeConfig",
    "RateLimitConfig",
    "RiskConfig",
    "LockConfig",
    # Clock
    "IClock",
    "SystemClock",
    "ManualClock",
    # TOTP
    "Secret",
    "ProvisioningDescriptor",
    "SecretProvisioner",
    "TokenVerifier",
    # Backup codes
    "BackupCode",
    "BackupCodeManager",
    # Rate limiting
    "AttemptKind",
    "RateLimitKey",
    "RateLimitStatus",
    "RateLimiter",
    "InMemoryRateLimitStore",
    "RedisRateLimitStore",
    # Risk
    "SubjectProfile",
    "RiskContext",
    "RiskAssessment",
    "RiskEngine",
    # Locking
    "InMemorySubjectLock",
    "RedisSubjectLock",
    # Enrollment
    "EnrollmentState",
    "Enrollment",
    "InMemoryEnrollmentStore",
    # Recovery
    "InMemoryRecoveryTokenStore",
    "generate_recovery_token",
    # Audit / metrics
    "TwoFactorEventType",
    "TwoFactorAuditEvent",
    "InMemoryAuditStore",
    "TwoFactorMetrics",
    # Ports
    "IEnrollmentStore",
    "ISubjectDirectory",
    "IRateLimitStore",
    "IRecoveryTokenStore",
    "IAuditStore",
    "ISubjectLock",
    # Exceptions
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
