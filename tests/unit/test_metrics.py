"""Unit tests for two-factor metrics."""

from __future__ import annotations

import builtins
from unittest.mock import patch

from prometheus_client import CollectorRegistry

from adaptive_twofactor.observability import TwoFactorMetrics, get_default_metrics


class TestTwoFactorMetrics:
    def test_records_verifications(self) -> None:
        registry = CollectorRegistry()
        metrics = TwoFactorMetrics(registry)

        metrics.record_verification("totp", "success")
        metrics.record_verification("totp", "success")
        metrics.record_verification("backup_code", "invalid_code")

        sample = registry.get_sample_value
        assert sample("twofactor_verifications_total", {"method": "totp", "result": "success"}) == 2.0
        assert sample("twofactor_verifications_total", {"method": "backup_code", "result": "invalid_code"}) == 1.0

    def test_records_rate_limited(self) -> None:
        registry = CollectorRegistry()
        metrics = TwoFactorMetrics(registry, namespace="auth")

        metrics.record_rate_limited("totp")

        assert registry.get_sample_value("auth_rate_limited_total", {"kind": "totp"}) == 1.0

    def test_without_prometheus(self) -> None:
        """Recording is a no-op when prometheus_client is unavailable."""
        real_import = builtins.__import__

        def raise_for_prometheus(name, *args, **kwargs):
            if name == "prometheus_client":
                raise ImportError("No module named 'prometheus_client'")
            return real_import(name, *args, **kwargs)

        metrics = TwoFactorMetrics(CollectorRegistry())
        with patch("builtins.__import__", side_effect=raise_for_prometheus):
            assert not metrics.enabled
            metrics.record_verification("totp", "success")
            metrics.record_rate_limited("totp")

    def test_default_metrics_is_shared(self) -> None:
        assert get_default_metrics() is get_default_metrics()
