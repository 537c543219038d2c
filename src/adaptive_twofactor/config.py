"""Configuration objects for the two-factor core.

All settings are immutable dataclasses handed to constructors; the host
application decides where the values come from.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class TotpConfig:
    """TOTP configuration.

    Attributes:
        issuer: Default issuer label shown in authenticator apps.
        digits: Number of digits in a code.
        interval: Time step in seconds.
        valid_window: Accepted drift in steps on each side of "now".
        secret_bytes: Entropy drawn per secret (minimum 20 = 160 bits).
        reject_replay: Refuse a token whose time step is not newer than the
            last accepted one for the subject.
    """

    issuer: str = "Adaptive2FA"
    digits: int = 6
    interval: int = 30
    valid_window: int = 1
    secret_bytes: int = 20
    reject_replay: bool = False

    def __post_init__(self) -> None:
        if self.digits not in (6, 8):
            raise ValueError("digits must be 6 or 8")
        if not 1 <= self.interval <= 300:
            raise ValueError("interval must be between 1 and 300 seconds")
        if self.valid_window < 0:
            raise ValueError("valid_window must be >= 0")
        if self.secret_bytes < 20:
            raise ValueError("secret_bytes must be >= 20 (160 bits)")


@dataclass(frozen=True)
class BackupCodeConfig:
    """Backup code configuration."""

    count: int = 8
    length: int = 8

    def __post_init__(self) -> None:
        if self.count < 1:
            raise ValueError("count must be >= 1")
        if self.length < 1:
            raise ValueError("length must be >= 1")


@dataclass(frozen=True)
class RateLimitConfig:
    """Sliding window rate limit configuration.

    Attributes:
        max_attempts: Attempts allowed in the trailing window.
        window_seconds: Length of the trailing window (default 15 minutes).
    """

    max_attempts: int = 5
    window_seconds: float = 900.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")


@dataclass(frozen=True)
class RiskConfig:
    """Risk engine configuration.

    Attributes:
        earliest_usual_hour: Hours before this are unusual.
        latest_usual_hour: Hours after this are unusual.
        elevated_roles: Roles that always require step-up.
        default_timezone: IANA zone used when the subject has none.
    """

    earliest_usual_hour: int = 6
    latest_usual_hour: int = 22
    elevated_roles: frozenset[str] = frozenset({"admin"})
    default_timezone: str = "UTC"

    def __post_init__(self) -> None:
        if not 0 <= self.earliest_usual_hour <= self.latest_usual_hour <= 23:
            raise ValueError("usual hours must satisfy 0 <= earliest <= latest <= 23")


@dataclass(frozen=True)
class LockConfig:
    """Per-subject lock configuration.

    Attributes:
        timeout: Seconds to wait for a subject's lock before giving up.
        ttl: Seconds after which a distributed lock expires on its own,
            so a crashed worker cannot block the subject forever.
    """

    timeout: float = 10.0
    ttl: float = 30.0

    def __post_init__(self) -> None:
        if self.timeout < 0:
            raise ValueError("timeout must be >= 0")
        if self.ttl <= 0:
            raise ValueError("ttl must be > 0")


@dataclass(frozen=True)
class TwoFactorConfig:
    """Aggregate configuration for TwoFactorCoordinator."""

    totp: TotpConfig = field(default_factory=TotpConfig)
    backup_codes: BackupCodeConfig = field(default_factory=BackupCodeConfig)
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    risk: RiskConfig = field(default_factory=RiskConfig)
    lock: LockConfig = field(default_factory=LockConfig)


__all__: list[str] = [
    "TotpConfig",
    "BackupCodeConfig",
    "RateLimitConfig",
    "RiskConfig",
    "LockConfig",
    "TwoFactorConfig",
]
