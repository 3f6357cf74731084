"""
Zoho Administration Routes - Token refresh and connection diagnostics.
"""

from fastapi import APIRouter, Depends
from structlog import get_logger

from paygate.api.dependencies import get_token_manager, get_zoho_provider
from paygate.models.api import ConnectionTestResponse, TokenRefreshResponse
from paygate.services.zoho_provider import ZohoPaymentsProvider
from paygate.services.zoho_token import ZohoTokenManager

logger = get_logger(__name__)

router = APIRouter(prefix="/api/zoho", tags=["zoho"])


@router.post("/refresh-token", response_model=TokenRefreshResponse)
async def refresh_token(
    token_manager: ZohoTokenManager = Depends(get_token_manager),
) -> TokenRefreshResponse:
    """
    Force a Zoho access token refresh.

    Reports the new expiry; the token itself is never returned.
    """
    token = await token_manager.refresh()
    logger.info("zoho_token_refreshed_on_request", expires_at=token.expires_at)
    return TokenRefreshResponse(
        message="Zoho access token refreshed successfully",
        token_expires_at=token.expires_at,
    )


@router.get("/test-connection", response_model=ConnectionTestResponse)
async def test_connection(
    provider: ZohoPaymentsProvider = Depends(get_zoho_provider),
) -> ConnectionTestResponse:
    """Probe Zoho Payments with the stored credentials. Failures are reported, not raised."""
    report = await provider.test_connection()
    return ConnectionTestResponse(
        success=report.success,
        message=report.message,
        payments_status=report.payments_status,
        payments_account_id=report.payments_account_id,
        successful_approach=report.successful_approach,
        error="; ".join(report.errors) or None,
    )
