"""Prometheus metrics definitions and helpers.

Provides the metric definitions for the storefront API: HTTP traffic,
response cache, orders, payments, webhooks and dependency health.
"""

from functools import lru_cache
from typing import Callable

from prometheus_client import (
    Counter,
    Gauge,
    Histogram,
    generate_latest,
    REGISTRY,
    CollectorRegistry,
)


class StorefrontMetrics:
    """Storefront API metrics."""

    def __init__(self, registry: CollectorRegistry = REGISTRY) -> None:
        """Initialize storefront metrics.

        Args:
            registry: Prometheus registry to use
        """
        # HTTP traffic
        self.http_requests = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status"],
            registry=registry,
        )

        self.http_request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=registry,
        )

        self.http_requests_in_progress = Gauge(
            "http_requests_in_progress",
            "HTTP requests currently in progress",
            ["method"],
            registry=registry,
        )

        # Database pool
        self.db_connections_active = Gauge(
            "database_connections_active",
            "Connections currently held by the pool",
            registry=registry,
        )

        self.db_connections_idle = Gauge(
            "database_connections_idle",
            "Idle database connections in pool",
            registry=registry,
        )

        # Response cache
        self.cache_lookups = Counter(
            "api_cache_lookups_total",
            "Response cache lookups",
            ["result"],
            registry=registry,
        )

        # Orders
        self.orders_created = Counter(
            "storefront_orders_created_total",
            "Orders created from carts",
            registry=registry,
        )

        self.order_status_changes = Counter(
            "storefront_order_status_changes_total",
            "Order status transitions",
            ["status"],
            registry=registry,
        )

        # Payments
        self.payment_operations = Counter(
            "storefront_payment_operations_total",
            "Payment provider operations",
            ["operation", "outcome"],
            registry=registry,
        )

        self.webhook_events = Counter(
            "storefront_webhook_events_total",
            "Payment webhook events received",
            ["event_type", "outcome"],
            registry=registry,
        )

        # Dependency health
        self.health_check_duration = Histogram(
            "storefront_health_check_duration_seconds",
            "Time spent probing a dependency",
            ["service"],
            buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0],
            registry=registry,
        )

        self.health_check_status = Gauge(
            "storefront_health_check_up",
            "Last check result per dependency (1=ok, 0=failing)",
            ["service"],
            registry=registry,
        )


@lru_cache()
def get_metrics() -> StorefrontMetrics:
    """Return the process-wide metrics registered on the default registry."""
    return StorefrontMetrics()


def get_metrics_handler(registry: CollectorRegistry = REGISTRY) -> Callable[[], bytes]:
    """Get metrics handler for HTTP endpoint.

    Returns:
        Function that generates Prometheus metrics output
    """

    def metrics_handler() -> bytes:
        return generate_latest(registry)

    return metrics_handler
