"""Prometheus metrics for two-factor verification.

Metrics are created lazily on first use. When prometheus_client is not
installed every recording call is a no-op.

Usage:
    ```python
    from adaptive_twofactor.observability import TwoFactorMetrics

    metrics = TwoFactorMetrics()
    metrics.record_verification("totp", "success")
    metrics.record_rate_limited("totp")
    ```
"""

from __future__ import annotations

import logging
from typing import Any

_logger = logging.getLogger(__name__)


class TwoFactorMetrics:
    """Counters for verification outcomes and throttled attempts.

    Args:
        registry: Prometheus CollectorRegistry to register into. Defaults
            to the global registry; pass a fresh one in tests.
        namespace: Metric name prefix.
    """

    def __init__(self, registry: Any = None, *, namespace: str = "twofactor") -> None:
        self._registry = registry
        self._namespace = namespace
        self._verifications: Any = None
        self._rate_limited: Any = None
        self._initialized = False

    def _ensure_initialized(self) -> None:
        if self._initialized:
            return
        self._initialized = True

        try:
            from prometheus_client import REGISTRY, Counter
        except ImportError:
            _logger.debug("prometheus_client not available, metrics disabled")
            return

        registry = self._registry if self._registry is not None else REGISTRY
        self._verifications = Counter(
            f"{self._namespace}_verifications_total",
            "Two-factor verification attempts by method and result",
            ["method", "result"],
            registry=registry,
        )
        self._rate_limited = Counter(
            f"{self._namespace}_rate_limited_total",
            "Verification attempts refused by the rate limiter",
            ["kind"],
            registry=registry,
        )

    @property
    def enabled(self) -> bool:
        self._ensure_initialized()
        return self._verifications is not None

    def record_verification(self, method: str, result: str) -> None:
        """Count a verification outcome (result: success, invalid, used...)."""
        self._ensure_initialized()
        if self._verifications is None:
            return
        try:
            self._verifications.labels(method=method, result=result).inc()
        except Exception:
            _logger.debug("Failed to record verification metric")

    def record_rate_limited(self, kind: str) -> None:
        """Count an attempt the rate limiter refused."""
        self._ensure_initialized()
        if self._rate_limited is None:
            return
        try:
            self._rate_limited.labels(kind=kind).inc()
        except Exception:
            _logger.debug("Failed to record rate limit metric")


_default_metrics: TwoFactorMetrics | None = None


def get_default_metrics() -> TwoFactorMetrics:
    """Return the process-wide metrics instance (global registry)."""
    global _default_metrics
    if _default_metrics is None:
        _default_metrics = TwoFactorMetrics()
    return _default_metrics


__all__: list[str] = ["TwoFactorMetrics", "get_default_metrics"]
