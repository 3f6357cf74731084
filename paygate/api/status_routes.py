"""
Status API routes - Reachability of the payment providers and credential store.

Public endpoint (no auth). Results are cached for 10 seconds so the status
page cannot be used to hammer the providers.
"""

import asyncio
import time
from datetime import UTC, datetime
from enum import Enum

import httpx
from fastapi import APIRouter
from pydantic import BaseModel, Field
from structlog import get_logger

from paygate.api.dependencies import get_credential_store
from paygate.config import settings
from paygate.exceptions import CredentialStoreError
from paygate.models.api import HealthResponse
from paygate.services.zoho_token import missing_credential_fields

logger = get_logger(__name__)
router = APIRouter(tags=["status"])

CHECK_TIMEOUT = 5.0  # seconds
DEGRADED_LATENCY_THRESHOLD = 1000  # ms

_status_cache: dict[str, tuple[datetime, "ServiceStatusResponse"]] = {}
_CACHE_TTL_SECONDS = 10


class StatusLevel(str, Enum):
    """Status levels for health checks."""

    OPERATIONAL = "operational"
    DEGRADED = "degraded"
    OUTAGE = "outage"


class ProviderStatus(BaseModel):
    """Status of a single dependency."""

    status: StatusLevel
    latency_ms: int | None = None
    last_check: str = Field(..., description="ISO 8601 timestamp")
    message: str | None = None


class ServiceStatusResponse(BaseModel):
    """Response for /v1/status endpoint."""

    service: str
    status: StatusLevel
    timestamp: str = Field(..., description="ISO 8601 timestamp")
    version: str
    providers: dict[str, ProviderStatus]


def _latency_status(latency_ms: int, timestamp: str) -> ProviderStatus:
    status = (
        StatusLevel.DEGRADED if latency_ms > DEGRADED_LATENCY_THRESHOLD else StatusLevel.OPERATIONAL
    )
    return ProviderStatus(
        status=status,
        latency_ms=latency_ms,
        last_check=timestamp,
        message="High latency" if status == StatusLevel.DEGRADED else None,
    )


async def check_endpoint(name: str, url: str) -> ProviderStatus:
    """
    Check that a provider endpoint answers.

    Any status below 500 counts as reachable: unauthenticated probes are
    expected to be rejected with 4xx.
    """
    start = time.perf_counter()
    timestamp = datetime.now(UTC).isoformat()

    try:
        async with httpx.AsyncClient(timeout=CHECK_TIMEOUT) as client:
            response = await client.get(url)
            latency_ms = int((time.perf_counter() - start) * 1000)
    except httpx.TimeoutException:
        return ProviderStatus(
            status=StatusLevel.OUTAGE,
            latency_ms=int(CHECK_TIMEOUT * 1000),
            last_check=timestamp,
            message="Timeout",
        )
    except httpx.HTTPError as e:
        logger.warning(f"{name}_health_check_failed", error=str(e))
        return ProviderStatus(
            status=StatusLevel.OUTAGE,
            latency_ms=None,
            last_check=timestamp,
            message="Connection failed",
        )

    if response.status_code >= 500:
        return ProviderStatus(
            status=StatusLevel.DEGRADED,
            latency_ms=latency_ms,
            last_check=timestamp,
            message=f"Unexpected status: {response.status_code}",
        )
    return _latency_status(latency_ms, timestamp)


async def check_razorpay() -> ProviderStatus:
    """Check Razorpay API reachability."""
    if not (settings.razorpay_key_id and settings.razorpay_key_secret):
        return ProviderStatus(
            status=StatusLevel.OPERATIONAL,
            latency_ms=0,
            last_check=datetime.now(UTC).isoformat(),
            message="Not configured",
        )
    return await check_endpoint("razorpay", f"{settings.razorpay_api_url.rstrip('/')}/payments")


async def check_zoho() -> ProviderStatus:
    """Check Zoho accounts (OAuth) endpoint reachability."""
    return await check_endpoint("zoho", settings.zoho_token_url)


async def check_credential_store() -> ProviderStatus:
    """Check that the Zoho credential bundle can be read and is complete."""
    start = time.perf_counter()
    timestamp = datetime.now(UTC).isoformat()

    try:
        data = await get_credential_store().get_credentials()
    except CredentialStoreError as e:
        logger.warning("credential_store_health_check_failed", error=str(e))
        return ProviderStatus(
            status=StatusLevel.OUTAGE,
            latency_ms=None,
            last_check=timestamp,
            message="Credentials unavailable",
        )

    latency_ms = int((time.perf_counter() - start) * 1000)
    missing = missing_credential_fields(data)
    if missing:
        return ProviderStatus(
            status=StatusLevel.DEGRADED,
            latency_ms=latency_ms,
            last_check=timestamp,
            message=f"Missing: {', '.join(missing)}",
        )
    return _latency_status(latency_ms, timestamp)


def calculate_overall_status(providers: dict[str, ProviderStatus]) -> StatusLevel:
    """Calculate overall service status from provider statuses."""
    statuses = [p.status for p in providers.values()]

    if StatusLevel.OUTAGE in statuses:
        return StatusLevel.OUTAGE
    if StatusLevel.DEGRADED in statuses:
        return StatusLevel.DEGRADED
    return StatusLevel.OPERATIONAL


@router.get("/v1/status", response_model=ServiceStatusResponse)
async def get_status() -> ServiceStatusResponse:
    """
    Get payment gateway status.

    Checks Razorpay, the Zoho accounts endpoint and the credential store
    concurrently.
    """
    cache_key = "status"
    now = datetime.now(UTC)

    if cache_key in _status_cache:
        cached_time, cached_response = _status_cache[cache_key]
        age_seconds = (now - cached_time).total_seconds()
        if age_seconds < _CACHE_TTL_SECONDS:
            logger.debug("status_cache_hit", age_seconds=age_seconds)
            return cached_response

    razorpay_status, zoho_status, store_status = await asyncio.gather(
        check_razorpay(), check_zoho(), check_credential_store()
    )

    providers = {
        "razorpay": razorpay_status,
        "zoho": zoho_status,
        "credential_store": store_status,
    }

    response = ServiceStatusResponse(
        service=settings.service_name,
        status=calculate_overall_status(providers),
        timestamp=now.isoformat(),
        version=settings.api_version,
        providers=providers,
    )

    _status_cache[cache_key] = (now, response)

    return response


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Liveness probe. Does not touch providers."""
    return HealthResponse(
        status="healthy",
        service=settings.service_name,
        version=settings.api_version,
    )
