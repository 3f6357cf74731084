"""
Gateway observability: structlog logging, Prometheus metrics, OpenTelemetry spans.
"""

from paygate.observability.logging import get_logger, log_context, setup_logging
from paygate.observability.metrics import metrics, track_provider_operation
from paygate.observability.tracing import payment_span, setup_tracing

__all__ = [
    "get_logger",
    "log_context",
    "metrics",
    "payment_span",
    "setup_logging",
    "setup_tracing",
    "track_provider_operation",
]
