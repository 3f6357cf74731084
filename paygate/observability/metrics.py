"""
Metrics Collection with Prometheus.

Exposes HTTP and payment provider metrics for monitoring.
"""

import time
from enum import Enum

from prometheus_client import Counter, Gauge, Histogram, Info

from paygate.config import settings


class MetricLabels(str, Enum):
    """Standard metric label names."""

    ENDPOINT = "endpoint"
    METHOD = "method"
    STATUS_CODE = "status_code"
    PROVIDER = "provider"
    OPERATION = "operation"
    OUTCOME = "outcome"
    ERROR_TYPE = "error_type"


class PaymentMetrics:
    """
    Centralized metrics for the payment gateway.

    Covers:
    - HTTP requests (rate, duration, in flight)
    - Provider operations (rate by outcome, latency)
    - Zoho token refreshes
    - Refund amounts
    """

    def __init__(self) -> None:
        """Initialize all Prometheus metrics."""

        # ====================================================================
        # Service Info
        # ====================================================================
        self.service_info = Info(
            "paygate_service",
            "Service information",
        )
        self.service_info.info(
            {
                "version": settings.api_version,
                "service_name": settings.service_name,
            }
        )

        # ====================================================================
        # HTTP Metrics
        # ====================================================================
        self.http_requests_total = Counter(
            "paygate_http_requests_total",
            "Total HTTP requests",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD, MetricLabels.STATUS_CODE],
        )

        self.http_request_duration_seconds = Histogram(
            "paygate_http_request_duration_seconds",
            "HTTP request duration in seconds",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
        )

        self.http_requests_in_progress = Gauge(
            "paygate_http_requests_in_progress",
            "Number of HTTP requests currently being processed",
            [MetricLabels.ENDPOINT, MetricLabels.METHOD],
        )

        # ====================================================================
        # Provider Metrics
        # ====================================================================
        self.provider_operations_total = Counter(
            "paygate_provider_operations_total",
            "Payment provider operations by outcome",
            [MetricLabels.PROVIDER, MetricLabels.OPERATION, MetricLabels.OUTCOME],
        )

        self.provider_operation_duration_seconds = Histogram(
            "paygate_provider_operation_duration_seconds",
            "Payment provider operation duration in seconds",
            [MetricLabels.PROVIDER, MetricLabels.OPERATION],
            buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
        )

        self.token_refreshes_total = Counter(
            "paygate_zoho_token_refreshes_total",
            "Zoho access token refreshes",
            [MetricLabels.OUTCOME],
        )

        self.refund_amount_minor = Histogram(
            "paygate_refund_amount_minor",
            "Refund amounts in minor units (paise)",
            [MetricLabels.PROVIDER],
            buckets=(1000, 5000, 10000, 25000, 50000, 100000, 250000, 500000),
        )

        # ====================================================================
        # Error Metrics
        # ====================================================================
        self.errors_total = Counter(
            "paygate_errors_total",
            "Total errors by type",
            [MetricLabels.ERROR_TYPE, MetricLabels.OPERATION],
        )

    # ========================================================================
    # Helper Methods
    # ========================================================================

    def record_http_request(
        self, endpoint: str, method: str, status_code: int, duration: float
    ) -> None:
        """Record HTTP request metrics."""
        self.http_requests_total.labels(
            endpoint=endpoint, method=method, status_code=status_code
        ).inc()
        self.http_request_duration_seconds.labels(endpoint=endpoint, method=method).observe(
            duration
        )

    def record_provider_operation(
        self, provider: str, operation: str, success: bool, duration: float
    ) -> None:
        """Record one dispatched provider operation."""
        self.provider_operations_total.labels(
            provider=provider, operation=operation, outcome="success" if success else "failure"
        ).inc()
        self.provider_operation_duration_seconds.labels(
            provider=provider, operation=operation
        ).observe(duration)

    def record_token_refresh(self, success: bool) -> None:
        """Record a Zoho token refresh attempt."""
        self.token_refreshes_total.labels(outcome="success" if success else "failure").inc()

    def record_refund(self, provider: str, amount_minor: int) -> None:
        """Record a processed refund amount."""
        self.refund_amount_minor.labels(provider=provider).observe(amount_minor)

    def record_error(self, error_type: str, operation: str) -> None:
        """Record error occurrence."""
        self.errors_total.labels(error_type=error_type, operation=operation).inc()


# Global metrics instance
metrics = PaymentMetrics()


class track_provider_operation:
    """
    Context manager for tracking dispatched provider operations.

    Usage:
        with track_provider_operation("razorpay", "refund_payment"):
            # ... call the provider
    """

    def __init__(self, provider: str, operation: str) -> None:
        self.provider = provider
        self.operation = operation
        self.start_time: float = 0.0

    def __enter__(self) -> "track_provider_operation":
        """Start tracking."""
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: type, exc_val: Exception, exc_tb: object) -> None:
        """Record outcome and latency."""
        duration = time.perf_counter() - self.start_time
        metrics.record_provider_operation(
            self.provider, self.operation, exc_type is None, duration
        )
        if exc_type is not None:
            metrics.record_error(exc_type.__name__, self.operation)
