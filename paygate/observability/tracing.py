"""
Distributed Tracing with OpenTelemetry.

Every gateway operation opens a `payment.<operation>` span carrying the
payment method and provider reference IDs. FastAPI and the credential
store engine are auto-instrumented when tracing is enabled.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Span, Status, StatusCode, Tracer

from paygate.config import settings

# Probe endpoints are polled constantly and carry no payment traffic
UNTRACED_URLS = "health,metrics"

SPAN_PREFIX = "payment"


def setup_tracing() -> None:
    """Install the global tracer provider with an OTLP batch exporter."""
    if not settings.tracing_enabled:
        return

    resource = Resource.create(
        {
            "service.name": settings.service_name,
            "service.version": settings.api_version,
            "deployment.environment": settings.environment,
        }
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(endpoint=settings.otlp_endpoint, insecure=settings.otlp_insecure)
        )
    )
    trace.set_tracer_provider(provider)


def instrument_fastapi(app: Any) -> None:
    """Trace payment routes. Call once, after the app is created."""
    if not settings.tracing_enabled:
        return

    FastAPIInstrumentor.instrument_app(app, excluded_urls=UNTRACED_URLS)


def instrument_sqlalchemy(engine: Any) -> None:
    """Trace credential store queries on an async engine."""
    if not settings.tracing_enabled:
        return

    SQLAlchemyInstrumentor().instrument(engine=engine.sync_engine)


def get_tracer(name: str) -> Tracer:
    return trace.get_tracer(name)


def add_span_attributes(span: Span, **attributes: Any) -> None:
    """
    Attach payment attributes under the `payment.` namespace.

    None values are skipped (a Zoho create has no phone, a Razorpay
    verify has no session). Enums and other objects are stringified.
    """
    for key, value in attributes.items():
        if value is None:
            continue
        if hasattr(value, "value") and isinstance(value.value, str):
            value = value.value
        if not isinstance(value, (str, int, float, bool)):
            value = str(value)
        span.set_attribute(f"{SPAN_PREFIX}.{key}", value)


@contextmanager
def payment_span(
    operation: str,
    payment_method: str,
    tracer: Tracer | None = None,
    **attributes: Any,
) -> Iterator[Span]:
    """
    Open a span around one provider call.

    Failures mark the span as errored with the exception type and are
    re-raised unchanged.

    Usage:
        with payment_span("refund", "razorpay", transaction_id="pay_1") as span:
            refund = await provider.refund_payment(...)
            add_span_attributes(span, refund_id=refund.refund_id)
    """
    active_tracer = tracer or get_tracer("paygate.payments")
    with active_tracer.start_as_current_span(
        f"{SPAN_PREFIX}.{operation}", record_exception=False, set_status_on_exception=False
    ) as span:
        add_span_attributes(span, method=payment_method, **attributes)
        try:
            yield span
        except Exception as exc:
            span.record_exception(exc)
            span.set_status(Status(StatusCode.ERROR, type(exc).__name__))
            raise
