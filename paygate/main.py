"""
Main Application - FastAPI application setup.
"""

import json
import time
import traceback
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import generate_latest

from paygate.api.dependencies import close_providers
from paygate.api.payment_routes import router as payment_router
from paygate.api.status_routes import router as status_router
from paygate.api.zoho_routes import router as zoho_router
from paygate.config import settings
from paygate.db.session import close_engine
from paygate.exceptions import (
    CredentialStoreError,
    InvalidSignatureError,
    PaymentGatewayError,
    PaymentProviderError,
    PaymentValidationError,
    ProviderNotConfiguredError,
    TokenRefreshError,
    VerificationFailedError,
)
from paygate.models.api import ErrorResponse
from paygate.observability import get_logger, log_context, metrics, setup_logging, setup_tracing
from paygate.observability.tracing import instrument_fastapi

# Setup logging before anything else
setup_logging()
logger = get_logger(__name__)

# Most specific first; None keeps the exception's own message
ERROR_RESPONSES: list[tuple[type[PaymentGatewayError], int, str | None]] = [
    (PaymentValidationError, 400, None),
    (InvalidSignatureError, 400, "Payment signature verification failed"),
    (ProviderNotConfiguredError, 503, "Payment provider is not configured"),
    (VerificationFailedError, 502, "Payment verification failed"),
    (TokenRefreshError, 502, "Failed to refresh Zoho access token"),
    (PaymentProviderError, 502, "Payment provider request failed"),
    (CredentialStoreError, 500, "Credential store unavailable"),
]


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    Application lifespan manager.

    Handles startup and shutdown events.
    """
    # Startup
    logger.info(
        "application_starting",
        service=settings.api_title,
        version=settings.api_version,
        environment=settings.environment,
        credential_store=settings.credential_store_backend,
        tracing_enabled=settings.tracing_enabled,
        metrics_enabled=settings.metrics_enabled,
    )

    yield

    # Shutdown
    logger.info("application_shutting_down")
    await close_providers()
    await close_engine()
    logger.info("provider_clients_closed")


app = FastAPI(
    title=settings.api_title,
    version=settings.api_version,
    description=settings.api_description,
    lifespan=lifespan,
)


def error_status(exc: PaymentGatewayError) -> tuple[int, str]:
    """HTTP status and client-facing message for a gateway exception."""
    for error_type, status_code, message in ERROR_RESPONSES:
        if isinstance(exc, error_type):
            return status_code, message or str(exc)
    return 500, "Internal server error"


def error_details(exc: Exception) -> dict[str, str]:
    """Debug details exposed only in development."""
    details = {
        "type": type(exc).__name__,
        "traceback": "".join(traceback.format_exception(exc)),
    }
    payload = getattr(exc, "payload", None)
    if payload is not None:
        details["payload"] = json.dumps(payload, default=str)
    return details


@app.exception_handler(PaymentGatewayError)
async def payment_gateway_exception_handler(
    request: Request, exc: PaymentGatewayError
) -> JSONResponse:
    """Map the gateway exception hierarchy to JSON error responses."""
    status_code, message = error_status(exc)

    log = logger.warning if status_code < 500 else logger.error
    log(
        "payment_request_failed",
        path=request.url.path,
        method=request.method,
        status_code=status_code,
        error_type=type(exc).__name__,
        error=str(exc),
    )

    body = ErrorResponse(
        message=message,
        error=str(exc) if settings.is_development else None,
        details=error_details(exc) if settings.is_development else None,
    )
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Log detailed validation errors and answer 400."""
    errors = exc.errors()

    # ctx may contain non-serializable objects
    sanitized_errors = []
    for error in errors:
        sanitized = {
            "type": error.get("type"),
            "loc": error.get("loc"),
            "msg": error.get("msg"),
        }
        if "ctx" in error:
            sanitized["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        sanitized_errors.append(sanitized)

    logger.warning(
        "validation_error",
        path=request.url.path,
        method=request.method,
        errors=sanitized_errors,
    )

    fields = ", ".join(
        ".".join(str(part) for part in error["loc"] if part != "body")
        for error in sanitized_errors
        if error.get("loc")
    )
    message = "Missing or invalid payment parameters"
    if fields:
        message = f"{message}: {fields}"

    body = ErrorResponse(
        message=message,
        details=(
            {"errors": json.dumps(sanitized_errors, default=str)}
            if settings.is_development
            else None
        ),
    )
    return JSONResponse(
        status_code=400,
        content=body.model_dump(by_alias=True, exclude_none=True),
    )


# Setup tracing
setup_tracing()
instrument_fastapi(app)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Request logging middleware
@app.middleware("http")
async def logging_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    """Log all HTTP requests with timing; provider logs inherit the request ID."""
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID") or uuid4().hex
    endpoint = request.url.path
    method = request.method

    with log_context(request_id=request_id):
        logger.info("request_started", method=method, path=endpoint)
        metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).inc()

        try:
            response = await call_next(request)
            duration = time.time() - start_time

            metrics.record_http_request(endpoint, method, response.status_code, duration)
            logger.info(
                "request_completed",
                method=method,
                path=endpoint,
                status_code=response.status_code,
                duration_seconds=duration,
            )

            response.headers["X-Request-ID"] = request_id
            return response
        except Exception as e:
            duration = time.time() - start_time
            metrics.record_http_request(endpoint, method, 500, duration)
            metrics.record_error(type(e).__name__, "http_request")

            logger.error(
                "request_failed",
                method=method,
                path=endpoint,
                error=str(e),
                duration_seconds=duration,
                exc_info=True,
            )
            raise
        finally:
            metrics.http_requests_in_progress.labels(endpoint=endpoint, method=method).dec()


# Register routes
app.include_router(payment_router)  # Storefront payment API
app.include_router(zoho_router)  # Zoho token and connection admin
app.include_router(status_router)  # /v1/status and /health


@app.get("/metrics")
async def metrics_endpoint() -> Response:
    """
    Prometheus metrics endpoint.

    Returns metrics in Prometheus text format.
    """
    return PlainTextResponse(generate_latest())
