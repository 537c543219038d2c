"""Audit events and stores for two-factor activity."""

from __future__ import annotations

from .events import (
    TwoFactorAuditEvent,
    TwoFactorEventType,
    failed_event,
    lifecycle_event,
    rate_limited_event,
    verified_event,
)
from .memory import InMemoryAuditStore

__all__: list[str] = [
    "TwoFactorEventType",
    "TwoFactorAuditEvent",
    "verified_event",
    "failed_event",
    "rate_limited_event",
    "lifecycle_event",
    "InMemoryAuditStore",
]
