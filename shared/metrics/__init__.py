"""Metrics module using Prometheus."""

from .prometheus_metrics import (
    StorefrontMetrics,
    get_metrics,
    get_metrics_handler,
)

__all__ = [
    "StorefrontMetrics",
    "get_metrics",
    "get_metrics_handler",
]
