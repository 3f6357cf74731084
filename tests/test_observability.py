"""
Tests for logging processors, provider metrics and payment spans.
"""

import pytest
import structlog
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter
from opentelemetry.trace import StatusCode
from prometheus_client import REGISTRY

from paygate.exceptions import PaymentProviderError
from paygate.models.api import PaymentStatus
from paygate.observability.logging import add_app_context, log_context, redact_secrets
from paygate.observability.metrics import metrics, track_provider_operation
from paygate.observability.tracing import add_span_attributes, payment_span


def sample(name: str, **labels: str) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


class TestLoggingProcessors:
    """Tests for structlog processors."""

    def test_redacts_credentials(self):
        """Token and secret values never reach the renderer."""
        event = redact_secrets(
            None,
            "info",
            {
                "event": "zoho_token_refreshed",
                "access_token": "1000.abc",
                "ZOHO_CLIENT_SECRET": "shh",
                "expires_at": 123,
            },
        )

        assert event["access_token"] == "***"
        assert event["ZOHO_CLIENT_SECRET"] == "***"
        assert event["expires_at"] == 123

    def test_redacts_nested_bundles(self):
        """A logged credential dict is masked key by key."""
        event = redact_secrets(
            None,
            "info",
            {"event": "x", "bundle": {"ZOHO_REFRESH_TOKEN": "r", "ZOHO_CLIENT_ID": "id"}},
        )

        assert event["bundle"] == {"ZOHO_REFRESH_TOKEN": "***", "ZOHO_CLIENT_ID": "id"}

    def test_log_context_binds_and_unbinds(self):
        """Context is visible inside the block only."""
        with log_context(request_id="req-1"):
            assert structlog.contextvars.get_contextvars()["request_id"] == "req-1"

        assert "request_id" not in structlog.contextvars.get_contextvars()

    def test_adds_service_context(self):
        """Service name and version are attached."""
        event = add_app_context(None, "info", {"event": "x"})
        assert event["service"] == "paygate-api"
        assert "version" in event


class TestTrackProviderOperation:
    """Tests for the provider operation context manager."""

    def test_success_counted(self):
        """A clean exit counts as success."""
        labels = {"provider": "razorpay", "operation": "metrics_check_ok", "outcome": "success"}
        before = sample("paygate_provider_operations_total", **labels)

        with track_provider_operation("razorpay", "metrics_check_ok"):
            pass

        assert sample("paygate_provider_operations_total", **labels) == before + 1

    def test_failure_counted_and_reraised(self):
        """Exceptions are recorded by type and not swallowed."""
        labels = {"provider": "zoho", "operation": "metrics_check_fail", "outcome": "failure"}
        error_labels = {"error_type": "RuntimeError", "operation": "metrics_check_fail"}
        before = sample("paygate_provider_operations_total", **labels)
        errors_before = sample("paygate_errors_total", **error_labels)

        with pytest.raises(RuntimeError):
            with track_provider_operation("zoho", "metrics_check_fail"):
                raise RuntimeError("boom")

        assert sample("paygate_provider_operations_total", **labels) == before + 1
        assert sample("paygate_errors_total", **error_labels) == errors_before + 1

    def test_token_refresh_counter(self):
        """Refresh outcomes are counted separately."""
        before = sample("paygate_zoho_token_refreshes_total", outcome="failure")

        metrics.record_token_refresh(False)

        assert sample("paygate_zoho_token_refreshes_total", outcome="failure") == before + 1


@pytest.fixture
def span_exporter():
    exporter = InMemorySpanExporter()
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(exporter))
    return exporter, provider.get_tracer("tests")


class TestPaymentSpan:
    """Tests for payment_span."""

    def test_records_namespaced_attributes(self, span_exporter):
        """Attributes land under payment.* and None is skipped."""
        exporter, tracer = span_exporter

        with payment_span(
            "refund", "razorpay", tracer=tracer, transaction_id="pay_1", reason=None
        ) as span:
            add_span_attributes(span, status=PaymentStatus.SUCCEEDED)

        (finished,) = exporter.get_finished_spans()
        assert finished.name == "payment.refund"
        assert finished.attributes["payment.method"] == "razorpay"
        assert finished.attributes["payment.transaction_id"] == "pay_1"
        assert finished.attributes["payment.status"] == PaymentStatus.SUCCEEDED.value
        assert "payment.reason" not in finished.attributes

    def test_failure_marks_error_and_reraises(self, span_exporter):
        """Provider errors mark the span and propagate."""
        exporter, tracer = span_exporter

        with pytest.raises(PaymentProviderError):
            with payment_span("create", "zoho", tracer=tracer):
                raise PaymentProviderError("zoho", "down")

        (finished,) = exporter.get_finished_spans()
        assert finished.status.status_code is StatusCode.ERROR
        assert finished.status.description == "PaymentProviderError"
        assert finished.events[0].name == "exception"
