"""Test configuration and fixtures."""

from __future__ import annotations

import pytest
from prometheus_client import CollectorRegistry

from adaptive_twofactor import (
    InMemoryAuditStore,
    InMemoryEnrollmentStore,
    InMemoryRateLimitStore,
    InMemoryRecoveryTokenStore,
    ManualClock,
    RateLimiter,
    SubjectProfile,
    TwoFactorConfig,
    TwoFactorCoordinator,
    TwoFactorMetrics,
)


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests that require external services",
    )


class InMemorySubjectDirectory:
    """Subject directory backed by a dict, for tests."""

    def __init__(self) -> None:
        self.profiles: dict[str, SubjectProfile] = {}

    def add(self, profile: SubjectProfile) -> None:
        self.profiles[profile.subject_id] = profile

    async def get_profile(self, subject_id: str) -> SubjectProfile | None:
        return self.profiles.get(subject_id)


@pytest.fixture
def clock() -> ManualClock:
    """A clock parked on a fixed instant (2023-11-14 22:13:20 UTC)."""
    return ManualClock(start=1_700_000_000.0)


@pytest.fixture
def registry() -> CollectorRegistry:
    return CollectorRegistry()


@pytest.fixture
def metrics(registry: CollectorRegistry) -> TwoFactorMetrics:
    return TwoFactorMetrics(registry)


@pytest.fixture
def enrollment_store() -> InMemoryEnrollmentStore:
    return InMemoryEnrollmentStore()


@pytest.fixture
def audit_store(clock: ManualClock) -> InMemoryAuditStore:
    return InMemoryAuditStore(clock=clock)


@pytest.fixture
def recovery_tokens(clock: ManualClock) -> InMemoryRecoveryTokenStore:
    return InMemoryRecoveryTokenStore(clock=clock)


@pytest.fixture
def directory() -> InMemorySubjectDirectory:
    directory = InMemorySubjectDirectory()
    directory.add(
        SubjectProfile(
            subject_id="user-1",
            roles=frozenset({"customer"}),
            known_devices=frozenset({"firefox-linux"}),
            known_origins=frozenset({"203.0.113.7"}),
            two_factor_enabled=True,
        )
    )
    return directory


@pytest.fixture
def config() -> TwoFactorConfig:
    return TwoFactorConfig()


@pytest.fixture
def coordinator(
    clock: ManualClock,
    config: TwoFactorConfig,
    enrollment_store: InMemoryEnrollmentStore,
    directory: InMemorySubjectDirectory,
    recovery_tokens: InMemoryRecoveryTokenStore,
    audit_store: InMemoryAuditStore,
    metrics: TwoFactorMetrics,
) -> TwoFactorCoordinator:
    """Coordinator wired to in-memory stores and the manual clock."""
    return TwoFactorCoordinator(
        enrollment_store=enrollment_store,
        subject_directory=directory,
        rate_limiter=RateLimiter(
            InMemoryRateLimitStore(clock=clock),
            config.rate_limit,
            clock=clock,
        ),
        recovery_tokens=recovery_tokens,
        audit_store=audit_store,
        config=config,
        clock=clock,
        metrics=metrics,
    )
