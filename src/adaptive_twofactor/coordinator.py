"""Two-factor coordinator.

The only entry point host applications talk to. It drives the enrollment
state machine, gates every verification attempt through the rate
limiter, and translates component failures into VerifyError subclasses.

Every operation that loads, changes and saves an enrollment does so
while holding the subject's lock, so concurrent requests for one subject
are applied one after another.

Example:
    ```python
    coordinator = TwoFactorCoordinator(
        enrollment_store=MyEnrollmentStore(),
        subject_directory=MyDirectory(),
        rate_limiter=RateLimiter(RedisRateLimitStore(redis)),
        subject_lock=RedisSubjectLock(redis),
        recovery_tokens=MyRecoveryTokenStore(),
    )

    descriptor = await coordinator.start_enrollment("user-1", "alice@example.com")
    codes = await coordinator.confirm_enrollment("user-1", "123456")

    assessment = await coordinator.assess_risk("user-1", RiskContext(client_id=ua, origin=ip))
    if assessment.requires_step_up:
        await coordinator.verify_token("user-1", submitted)
    ```
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import NoReturn

from .audit.events import (
    TwoFactorAuditEvent,
    TwoFactorEventType,
    failed_event,
    lifecycle_event,
    rate_limited_event,
    verified_event,
)
from .backup_codes import BackupCode, BackupCodeManager
from .clock import IClock, SystemClock
from .config import TwoFactorConfig
from .enrollment import Enrollment, EnrollmentState
from .exceptions import (
    BackupCodeAlreadyUsedError,
    BackupCodeNotFoundError,
    CodeAlreadyUsedError,
    InvalidCodeError,
    InvalidRecoveryTokenError,
    InvalidTokenError,
    NotEnrolledError,
    RateLimitedError,
    RateLimitExceeded,
    VerifyError,
)
from .locking import InMemorySubjectLock
from .observability.metrics import TwoFactorMetrics, get_default_metrics
from .ports import (
    IAuditStore,
    IEnrollmentStore,
    IRecoveryTokenStore,
    ISubjectDirectory,
    ISubjectLock,
)
from .rate_limit import AttemptKind, InMemoryRateLimitStore, RateLimiter
from .risk import RiskAssessment, RiskContext, RiskEngine
from .totp import ProvisioningDescriptor, SecretProvisioner, TokenVerifier

logger = logging.getLogger("adaptive_twofactor.coordinator")

_METHOD_BY_KIND = {
    AttemptKind.TOTP: "totp",
    AttemptKind.BACKUP_CODE: "backup_code",
    AttemptKind.ENROLLMENT: "totp",
    AttemptKind.RECOVERY: "recovery",
}


class TwoFactorCoordinator:
    """Orchestrates enrollment, verification, risk and recovery."""

    def __init__(
        self,
        *,
        enrollment_store: IEnrollmentStore,
        subject_directory: ISubjectDirectory,
        rate_limiter: RateLimiter | None = None,
        subject_lock: ISubjectLock | None = None,
        recovery_tokens: IRecoveryTokenStore | None = None,
        audit_store: IAuditStore | None = None,
        config: TwoFactorConfig | None = None,
        clock: IClock | None = None,
        metrics: TwoFactorMetrics | None = None,
    ) -> None:
        """Initialize the coordinator.

        Args:
            enrollment_store: Persistence for enrollment records.
            subject_directory: Source of risk-relevant subject attributes.
            rate_limiter: Attempt limiter; a private in-memory one is
                created when omitted (single-process deployments only).
            subject_lock: Per-subject lock; a private in-memory one is
                created when omitted (single-process deployments only).
            recovery_tokens: Store validating administrative recovery tokens.
            audit_store: Optional audit sink.
            config: Aggregate configuration.
            clock: Time source shared by every component.
            metrics: Metrics recorder; defaults to the global registry.
        """
        self.config = config or TwoFactorConfig()
        self.clock = clock or SystemClock()
        self.enrollment_store = enrollment_store
        self.subject_directory = subject_directory
        self.recovery_tokens = recovery_tokens
        self.audit_store = audit_store
        self.metrics = metrics or get_default_metrics()
        self.subject_lock = subject_lock or InMemorySubjectLock()

        self.provisioner = SecretProvisioner(self.config.totp, clock=self.clock)
        self.verifier = TokenVerifier(self.config.totp, clock=self.clock)
        self.backup_codes = BackupCodeManager(self.config.backup_codes)
        self.risk_engine = RiskEngine(self.config.risk, clock=self.clock)
        self.rate_limiter = rate_limiter or RateLimiter(
            InMemoryRateLimitStore(clock=self.clock),
            self.config.rate_limit,
            clock=self.clock,
        )

    # ── Internals ──────────────────────────────────────────────────────

    @asynccontextmanager
    async def _exclusive(self, subject_id: str) -> AsyncIterator[None]:
        """Hold the subject's lock for one load-change-save cycle."""
        token = await self.subject_lock.acquire(
            subject_id,
            timeout=self.config.lock.timeout,
            ttl=self.config.lock.ttl,
        )
        try:
            yield
        finally:
            await self.subject_lock.release(subject_id, token)

    async def _load(self, subject_id: str) -> Enrollment:
        enrollment = await self.enrollment_store.load(subject_id)
        return enrollment if enrollment is not None else Enrollment(subject_id=subject_id)

    async def _require_enrolled(self, subject_id: str) -> Enrollment:
        enrollment = await self._load(subject_id)
        if not enrollment.is_active:
            logger.info(
                "Verification attempted for subject %s in state %s",
                subject_id,
                enrollment.state.value,
            )
            raise NotEnrolledError("Two-factor authentication is not enabled", subject_id=subject_id)
        return enrollment

    async def _audit(self, event: TwoFactorAuditEvent) -> None:
        if self.audit_store is not None:
            await self.audit_store.record(event)

    async def _throttle(self, subject_id: str, kind: AttemptKind) -> None:
        try:
            await self.rate_limiter.check_and_record(subject_id, kind)
        except RateLimitExceeded as exc:
            method = _METHOD_BY_KIND[kind]
            self.metrics.record_rate_limited(kind.value)
            await self._audit(rate_limited_event(subject_id, method, exc.retry_after, timestamp=self.clock.now()))
            raise RateLimitedError(
                f"Too many attempts. Try again in {exc.retry_after:.0f} seconds",
                subject_id=subject_id,
                retry_after=exc.retry_after,
            ) from exc

    async def _reject(self, error: VerifyError, method: str) -> NoReturn:
        subject_id = error.subject_id or "<unknown>"
        logger.warning(
            "Two-factor verification failed for subject %s: %s",
            subject_id,
            error.kind.value,
        )
        self.metrics.record_verification(method, error.kind.value)
        await self._audit(failed_event(subject_id, method, error.kind.value.upper(), timestamp=self.clock.now()))
        raise error

    async def _succeed(self, subject_id: str, kind: AttemptKind) -> None:
        await self.rate_limiter.clear(subject_id, kind)
        self.metrics.record_verification(_METHOD_BY_KIND[kind], "success")

    async def _check_totp(self, enrollment: Enrollment, token: str) -> None:
        """Verify ``token`` against the active secret, honouring replay rules.

        Must run under the subject's lock when replay rejection is on.
        """
        assert enrollment.active_secret is not None
        step = self.verifier.match_step(enrollment.active_secret, token)
        if step is None:
            await self._reject(InvalidTokenError(subject_id=enrollment.subject_id), "totp")

        if self.config.totp.reject_replay:
            if enrollment.last_used_step is not None and step <= enrollment.last_used_step:
                await self._reject(
                    InvalidTokenError("Token already used", subject_id=enrollment.subject_id),
                    "totp",
                )
            enrollment.last_used_step = step
            await self.enrollment_store.save(enrollment)

    # ── Provisioning / enrollment ─────────────────────────────────────

    def provision_secret(self, account_label: str, issuer_label: str | None = None) -> ProvisioningDescriptor:
        """Generate a secret and URI without touching any state."""
        return self.provisioner.provision(account_label, issuer_label)

    async def start_enrollment(
        self,
        subject_id: str,
        account_label: str,
        issuer_label: str | None = None,
    ) -> ProvisioningDescriptor:
        """Issue a new pending secret for the subject.

        Calling again before confirmation discards the previous secret.

        Raises:
            EnrollmentStateError: The subject is enrolled or disabled.
            GenerationError: The entropy source failed.
        """
        async with self._exclusive(subject_id):
            enrollment = await self._load(subject_id)
            enrollment.require(
                EnrollmentState.NOT_ENROLLED,
                EnrollmentState.PENDING_CONFIRMATION,
                action="start enrollment",
            )
            replaced = enrollment.state is EnrollmentState.PENDING_CONFIRMATION

            secret = self.provisioner.create_secret(account_label, issuer_label)
            enrollment.begin(secret.base32, at=self.clock.now())
            await self.enrollment_store.save(enrollment)

        logger.info("Enrollment started for subject %s (replaced_pending=%s)", subject_id, replaced)
        await self._audit(
            lifecycle_event(
                TwoFactorEventType.ENROLLMENT_STARTED,
                subject_id,
                method="totp",
                timestamp=self.clock.now(),
                metadata={"replaced_pending": replaced},
            )
        )
        return self.provisioner.describe(secret)

    async def confirm_enrollment(self, subject_id: str, token: str) -> list[BackupCode]:
        """Activate the pending secret with a token from the authenticator.

        Returns:
            The freshly generated backup codes (show them once).

        Raises:
            NotEnrolledError: No enrollment was started.
            EnrollmentStateError: Already enrolled or disabled.
            RateLimitedError: Too many confirmation attempts.
            InvalidTokenError: Wrong token; the state stays pending.
        """
        async with self._exclusive(subject_id):
            enrollment = await self._load(subject_id)
            if enrollment.state is EnrollmentState.NOT_ENROLLED:
                raise NotEnrolledError("No enrollment in progress", subject_id=subject_id)
            enrollment.require(EnrollmentState.PENDING_CONFIRMATION, action="confirm enrollment")
            assert enrollment.pending_secret is not None

            await self._throttle(subject_id, AttemptKind.ENROLLMENT)
            step = self.verifier.match_step(enrollment.pending_secret, token)
            if step is None:
                await self._reject(InvalidTokenError(subject_id=subject_id), "totp")

            codes = self.backup_codes.generate()
            enrollment.confirm(codes, step=step, at=self.clock.now())
            await self.enrollment_store.save(enrollment)
            await self._succeed(subject_id, AttemptKind.ENROLLMENT)

        logger.info("Two-factor enabled for subject %s", subject_id)
        await self._audit(
            lifecycle_event(
                TwoFactorEventType.ENABLED,
                subject_id,
                method="totp",
                timestamp=self.clock.now(),
                metadata={"backup_codes": len(codes)},
            )
        )
        return codes

    # ── Verification ───────────────────────────────────────────────────

    async def verify_token(self, subject_id: str, token: str) -> None:
        """Verify a TOTP token for an enrolled subject.

        Raises:
            NotEnrolledError: The subject has no active second factor.
            RateLimitedError: Too many attempts in the window.
            InvalidTokenError: The token does not verify.
        """
        async with self._exclusive(subject_id):
            enrollment = await self._require_enrolled(subject_id)
            await self._throttle(subject_id, AttemptKind.TOTP)
            await self._check_totp(enrollment, token)
            await self._succeed(subject_id, AttemptKind.TOTP)
        await self._audit(verified_event(subject_id, "totp", timestamp=self.clock.now()))

    async def verify_backup_code(self, subject_id: str, code: str) -> None:
        """Consume a backup code for an enrolled subject.

        Input is trimmed and upper-cased before matching. Concurrent calls
        with the same code accept it at most once.

        Raises:
            NotEnrolledError: The subject has no active second factor.
            RateLimitedError: Too many attempts in the window.
            InvalidCodeError: Malformed or unknown code.
            CodeAlreadyUsedError: The code was consumed before.
        """
        async with self._exclusive(subject_id):
            enrollment = await self._require_enrolled(subject_id)
            await self._throttle(subject_id, AttemptKind.BACKUP_CODE)

            normalized = code.strip().upper() if isinstance(code, str) else ""
            if not self.backup_codes.validate_format(normalized):
                await self._reject(InvalidCodeError(subject_id=subject_id), "backup_code")

            try:
                self.backup_codes.consume(enrollment.backup_codes, normalized, at=self.clock.now())
            except BackupCodeNotFoundError:
                await self._reject(InvalidCodeError(subject_id=subject_id), "backup_code")
            except BackupCodeAlreadyUsedError:
                await self._reject(CodeAlreadyUsedError(subject_id=subject_id), "backup_code")

            await self.enrollment_store.save(enrollment)
            await self._succeed(subject_id, AttemptKind.BACKUP_CODE)

        remaining = self.backup_codes.remaining(enrollment.backup_codes)
        logger.info("Backup code used by subject %s (%d remaining)", subject_id, remaining)
        await self._audit(
            lifecycle_event(
                TwoFactorEventType.BACKUP_CODE_USED,
                subject_id,
                method="backup_code",
                timestamp=self.clock.now(),
                metadata={"remaining": remaining},
            )
        )

    async def regenerate_backup_codes(self, subject_id: str, token: str) -> list[BackupCode]:
        """Replace the subject's backup codes after a TOTP check.

        Every previously issued code stops working.
        """
        async with self._exclusive(subject_id):
            enrollment = await self._require_enrolled(subject_id)
            await self._throttle(subject_id, AttemptKind.TOTP)
            await self._check_totp(enrollment, token)

            codes = self.backup_codes.generate()
            enrollment.replace_backup_codes(codes, at=self.clock.now())
            await self.enrollment_store.save(enrollment)
            await self._succeed(subject_id, AttemptKind.TOTP)

        logger.info("Backup codes regenerated for subject %s", subject_id)
        await self._audit(
            lifecycle_event(
                TwoFactorEventType.BACKUP_CODES_REGENERATED,
                subject_id,
                method="totp",
                timestamp=self.clock.now(),
                metadata={"backup_codes": len(codes)},
            )
        )
        return codes

    async def remaining_backup_codes(self, subject_id: str) -> int:
        """Number of unused backup codes (0 when not enrolled)."""
        enrollment = await self._load(subject_id)
        if not enrollment.is_active:
            return 0
        return self.backup_codes.remaining(enrollment.backup_codes)

    async def enrollment_state(self, subject_id: str) -> EnrollmentState:
        return (await self._load(subject_id)).state

    # ── Risk ───────────────────────────────────────────────────────────

    async def assess_risk(self, subject_id: str, context: RiskContext | None = None) -> RiskAssessment:
        """Decide whether step-up is needed. Fails closed."""
        try:
            profile = await self.subject_directory.get_profile(subject_id)
        except Exception:
            logger.exception("Subject directory failed for subject %s; requiring step-up", subject_id)
            return RiskAssessment.fail_closed()

        if profile is None:
            logger.warning("No profile for subject %s; requiring step-up", subject_id)
            return RiskAssessment.fail_closed()

        return self.risk_engine.assess(profile, context or RiskContext())

    # ── Disable / reset ────────────────────────────────────────────────

    async def disable(self, subject_id: str, recovery_token: str) -> None:
        """Disable the second factor with an administrative recovery token.

        Raises:
            NotEnrolledError: The subject has no active second factor.
            RateLimitedError: Too many recovery attempts.
            InvalidRecoveryTokenError: Unknown, expired or used token.
        """
        async with self._exclusive(subject_id):
            enrollment = await self._require_enrolled(subject_id)
            await self._throttle(subject_id, AttemptKind.RECOVERY)

            accepted = False
            if self.recovery_tokens is not None:
                accepted = await self.recovery_tokens.consume(subject_id, recovery_token)
            if not accepted:
                logger.warning("Invalid recovery token for subject %s", subject_id)
                self.metrics.record_verification("recovery", "invalid_recovery_token")
                await self._audit(
                    failed_event(subject_id, "recovery", "INVALID_RECOVERY_TOKEN", timestamp=self.clock.now())
                )
                raise InvalidRecoveryTokenError("Invalid recovery token")

            enrollment.disable(at=self.clock.now())
            await self.enrollment_store.save(enrollment)
            await self._succeed(subject_id, AttemptKind.RECOVERY)

        logger.info("Two-factor disabled for subject %s via recovery token", subject_id)
        await self._audit(
            lifecycle_event(
                TwoFactorEventType.DISABLED,
                subject_id,
                method="recovery",
                timestamp=self.clock.now(),
                metadata={"reason": "recovery_token"},
            )
        )

    async def force_disable(self, subject_id: str, *, reason: str = "administrative") -> None:
        """Disable an enrolled subject without a credential (admin action).

        Raises:
            EnrollmentStateError: The subject is not enrolled.
        """
        async with self._exclusive(subject_id):
            enrollment = await self._load(subject_id)
            enrollment.disable(at=self.clock.now())
            await self.enrollment_store.save(enrollment)

        logger.info("Two-factor disabled for subject %s (%s)", subject_id, reason)
        await self._audit(
            lifecycle_event(
                TwoFactorEventType.DISABLED,
                subject_id,
                timestamp=self.clock.now(),
                metadata={"reason": reason},
            )
        )

    async def reset(self, subject_id: str) -> None:
        """Return a disabled subject to NOT_ENROLLED.

        The stored record is deleted, secrets and backup codes with it.

        Raises:
            EnrollmentStateError: The subject is not disabled.
        """
        async with self._exclusive(subject_id):
            enrollment = await self._load(subject_id)
            enrollment.reset(at=self.clock.now())
            await self.enrollment_store.delete(subject_id)

        logger.info("Two-factor reset for subject %s", subject_id)
        await self._audit(lifecycle_event(TwoFactorEventType.RESET, subject_id, timestamp=self.clock.now()))


__all__: list[str] = ["TwoFactorCoordinator"]
