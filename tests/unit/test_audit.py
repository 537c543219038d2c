"""Tests for two-factor audit events and the in-memory audit store."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from adaptive_twofactor import ManualClock
from adaptive_twofactor.audit import (
    InMemoryAuditStore,
    TwoFactorAuditEvent,
    TwoFactorEventType,
    failed_event,
    lifecycle_event,
    rate_limited_event,
    verified_event,
)


@pytest.fixture
def store() -> InMemoryAuditStore:
    return InMemoryAuditStore()


class TestEvents:
    def test_verified_event(self) -> None:
        event = verified_event("u1", "totp")
        assert event.event_type is TwoFactorEventType.VERIFIED
        assert event.success
        assert event.error_code is None

    def test_failed_event(self) -> None:
        event = failed_event("u1", "backup_code", "INVALID_CODE")
        assert not event.success
        assert event.error_code == "INVALID_CODE"

    def test_failure_without_code_gets_unknown_error(self) -> None:
        event = TwoFactorAuditEvent(event_type=TwoFactorEventType.FAILED, subject_id="u1", success=False)
        assert event.error_code == "UNKNOWN_ERROR"

    def test_rate_limited_event(self) -> None:
        event = rate_limited_event("u1", "totp", 123.4567)
        assert event.error_code == "RATE_LIMITED"
        assert event.metadata == {"retry_after": 123.457}

    def test_lifecycle_event(self) -> None:
        at = datetime(2024, 1, 1, tzinfo=timezone.utc)
        event = lifecycle_event(TwoFactorEventType.RESET, "u1", timestamp=at, metadata={"reason": "support"})
        assert event.timestamp == at
        assert event.metadata["reason"] == "support"

    def test_dict_round_trip(self) -> None:
        event = failed_event("u1", "totp", "INVALID_TOKEN")
        assert TwoFactorAuditEvent.from_dict(event.to_dict()) == event

    def test_to_dict_uses_wire_names(self) -> None:
        data = lifecycle_event(TwoFactorEventType.BACKUP_CODE_USED, "u1").to_dict()
        assert data["event_type"] == "mfa.backup_code.used"

    @pytest.mark.parametrize(
        "data",
        [
            {"subject_id": "u1"},
            {"event_type": "mfa.verified"},
            {"event_type": "mfa.unknown", "subject_id": "u1"},
        ],
    )
    def test_from_dict_rejects_invalid(self, data: dict) -> None:
        with pytest.raises(ValueError):
            TwoFactorAuditEvent.from_dict(data)


class TestInMemoryAuditStore:
    @pytest.mark.asyncio
    async def test_events_most_recent_first(self, store: InMemoryAuditStore) -> None:
        await store.record(verified_event("u1", "totp"))
        await store.record(failed_event("u1", "totp", "INVALID_TOKEN"))
        await store.record(verified_event("u2", "totp"))

        events = await store.get_events("u1")

        assert [e.event_type for e in events] == [TwoFactorEventType.FAILED, TwoFactorEventType.VERIFIED]
        assert store.count() == 3

    @pytest.mark.asyncio
    async def test_filter_and_limit(self, store: InMemoryAuditStore) -> None:
        for _ in range(3):
            await store.record(failed_event("u1", "totp", "INVALID_TOKEN"))
        await store.record(verified_event("u1", "totp"))

        failed = await store.get_events("u1", event_types=[TwoFactorEventType.FAILED], limit=2)
        assert len(failed) == 2
        assert all(e.event_type is TwoFactorEventType.FAILED for e in failed)

    @pytest.mark.asyncio
    async def test_recent_failures(self, store: InMemoryAuditStore) -> None:
        old = datetime.now(timezone.utc) - timedelta(hours=1)
        await store.record(failed_event("u1", "totp", "INVALID_TOKEN", timestamp=old))
        await store.record(failed_event("u1", "totp", "INVALID_TOKEN"))
        await store.record(verified_event("u1", "totp"))

        assert len(await store.get_recent_failures("u1", minutes=15)) == 1

    @pytest.mark.asyncio
    async def test_recent_failures_follow_injected_clock(self, clock: ManualClock) -> None:
        store = InMemoryAuditStore(clock=clock)
        await store.record(failed_event("u1", "totp", "INVALID_TOKEN", timestamp=clock.now()))

        assert len(await store.get_recent_failures("u1", minutes=15)) == 1

        clock.advance(16 * 60)
        assert await store.get_recent_failures("u1", minutes=15) == []

    @pytest.mark.asyncio
    async def test_clear(self, store: InMemoryAuditStore) -> None:
        await store.record(verified_event("u1", "totp"))
        store.clear()
        assert store.count() == 0
        assert await store.get_events("u1") == []
