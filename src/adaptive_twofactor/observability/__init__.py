"""Observability helpers for the two-factor core."""

from .metrics import TwoFactorMetrics, get_default_metrics

__all__: list[str] = ["TwoFactorMetrics", "get_default_metrics"]
