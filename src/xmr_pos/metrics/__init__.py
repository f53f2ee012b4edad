"""Prometheus metrics for the settlement engine."""

from xmr_pos.metrics.collector import EngineMetrics
from xmr_pos.metrics.middleware import PrometheusMiddleware

__all__ = ["EngineMetrics", "PrometheusMiddleware"]
