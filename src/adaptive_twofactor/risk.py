"""Risk-based step-up decisions.

Decides, per authentication attempt, whether the second factor must be
requested. Factors are evaluated independently and recorded as explicit
booleans so every decision path can be tested and audited.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from pydantic import Field

from .clock import IClock, SystemClock
from .config import RiskConfig
from .value_object import ValueObject

logger = logging.getLogger("adaptive_twofactor.risk")


class SubjectProfile(ValueObject):
    """Risk-relevant attributes of a subject, supplied by the directory.

    Attributes:
        subject_id: Subject identifier.
        roles: Role names; elevated roles always require step-up.
        known_devices: Client identifiers seen before (e.g. UA fingerprints).
        known_origins: Network origins seen before (e.g. IPs).
        two_factor_enabled: Whether the subject opted into 2FA.
        timezone: IANA zone for "local" hour-of-day.
    """

    subject_id: str
    roles: frozenset[str] = frozenset()
    known_devices: frozenset[str] = frozenset()
    known_origins: frozenset[str] = frozenset()
    two_factor_enabled: bool = False
    timezone: str | None = None


class RiskContext(ValueObject):
    """Request context the assessment is made for.

    Attributes:
        client_id: Client identifier (user-agent fingerprint).
        origin: Network origin identifier (IP address).
        at: Time of the attempt; the engine's clock is used when None.
        high_value_action: The caller is about to perform a sensitive action.
    """

    client_id: str | None = None
    origin: str | None = None
    at: datetime | None = None
    high_value_action: bool = False


class RiskAssessment(ValueObject):
    """Outcome of a risk assessment. Computed fresh, never cached."""

    new_device: bool = False
    unusual_location: bool = False
    unusual_time: bool = False
    high_value_action: bool = False
    elevated_privilege: bool = False
    assessment_failed: bool = False
    requires_step_up: bool = Field(default=True)

    @classmethod
    def fail_closed(cls) -> RiskAssessment:
        """Assessment returned when factors could not be computed."""
        return cls(assessment_failed=True, requires_step_up=True)


class RiskEngine:
    """Computes whether step-up authentication is required.

    Rules:
        - Elevated roles always require step-up.
        - Subjects that did not opt in (and are not elevated) never do.
        - Otherwise a new device, an unusual origin or a high value action
          requires step-up. Unusual time is informational only.
        - Any failure while computing factors requires step-up.
    """

    def __init__(self, config: RiskConfig | None = None, *, clock: IClock | None = None) -> None:
        self.config = config or RiskConfig()
        self.clock = clock or SystemClock()

    def _local_hour(self, profile: SubjectProfile, context: RiskContext) -> int:
        at = context.at or self.clock.now()
        if at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        zone = ZoneInfo(profile.timezone or self.config.default_timezone)
        return at.astimezone(zone).hour

    def _evaluate(self, profile: SubjectProfile | None, context: RiskContext) -> RiskAssessment:
        if profile is None:
            raise LookupError("No profile available for subject")

        new_device = context.client_id is None or context.client_id not in profile.known_devices
        unusual_location = context.origin is None or context.origin not in profile.known_origins
        hour = self._local_hour(profile, context)
        unusual_time = hour < self.config.earliest_usual_hour or hour > self.config.latest_usual_hour
        elevated = bool(profile.roles & self.config.elevated_roles)

        if elevated:
            requires = True
        elif not profile.two_factor_enabled:
            requires = False
        else:
            requires = new_device or unusual_location or context.high_value_action

        return RiskAssessment(
            new_device=new_device,
            unusual_location=unusual_location,
            unusual_time=unusual_time,
            high_value_action=context.high_value_action,
            elevated_privilege=elevated,
            requires_step_up=requires,
        )

    def assess(self, profile: SubjectProfile | None, context: RiskContext) -> RiskAssessment:
        """Assess the risk of an authentication attempt.

        Args:
            profile: Subject attributes (None if the subject is unknown).
            context: Request context.

        Returns:
            RiskAssessment. Fails closed on any error.
        """
        subject = profile.subject_id if profile is not None else "<unknown>"
        try:
            assessment = self._evaluate(profile, context)
        except Exception:
            logger.exception("Risk assessment failed for subject %s; requiring step-up", subject)
            return RiskAssessment.fail_closed()

        logger.debug(
            "Risk assessment for subject %s: new_device=%s unusual_location=%s "
            "unusual_time=%s elevated=%s requires_step_up=%s",
            subject,
            assessment.new_device,
            assessment.unusual_location,
            assessment.unusual_time,
            assessment.elevated_privilege,
            assessment.requires_step_up,
        )
        return assessment


__all__: list[str] = ["SubjectProfile", "RiskContext", "RiskAssessment", "RiskEngine"]
