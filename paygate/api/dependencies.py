"""
FastAPI Dependencies - Shared provider adapters and the payment gateway.

One HTTP client, one credential store and one token manager are shared by
every request so the Zoho token refreshed by one call is seen by the next.
"""

import httpx
from structlog import get_logger

from paygate.config import settings
from paygate.db.session import get_session_factory
from paygate.models.api import PaymentMethod
from paygate.services.credential_store import (
    CredentialStore,
    DatabaseCredentialStore,
    InMemoryCredentialStore,
)
from paygate.services.payment_gateway import PaymentGateway
from paygate.services.razorpay_provider import RazorpayProvider
from paygate.services.zoho_provider import ZohoPaymentsProvider
from paygate.services.zoho_token import ZohoTokenManager

logger = get_logger(__name__)

_http_client: httpx.AsyncClient | None = None
_credential_store: CredentialStore | None = None
_token_manager: ZohoTokenManager | None = None
_razorpay_provider: RazorpayProvider | None = None
_zoho_provider: ZohoPaymentsProvider | None = None
_payment_gateway: PaymentGateway | None = None


def get_http_client() -> httpx.AsyncClient:
    """Get or create the shared outbound HTTP client."""
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(timeout=settings.provider_timeout_seconds)
    return _http_client


def get_credential_store() -> CredentialStore:
    """Get or create the credential store selected by CREDENTIAL_STORE_BACKEND."""
    global _credential_store
    if _credential_store is None:
        if settings.credential_store_backend == "memory":
            _credential_store = InMemoryCredentialStore(settings.zoho_seed_credentials())
        else:
            _credential_store = DatabaseCredentialStore(get_session_factory())
        logger.info("credential_store_ready", backend=settings.credential_store_backend)
    return _credential_store


def get_token_manager() -> ZohoTokenManager:
    """Get or create the Zoho access token manager."""
    global _token_manager
    if _token_manager is None:
        _token_manager = ZohoTokenManager(
            store=get_credential_store(),
            token_url=settings.zoho_token_url,
            http_client=get_http_client(),
            timeout=settings.provider_timeout_seconds,
        )
    return _token_manager


def get_razorpay_provider() -> RazorpayProvider:
    """Get or create the Razorpay adapter. Missing keys surface on first use."""
    global _razorpay_provider
    if _razorpay_provider is None:
        _razorpay_provider = RazorpayProvider(
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            http_client=get_http_client(),
            api_url=settings.razorpay_api_url,
            timeout=settings.provider_timeout_seconds,
            currency=settings.payment_currency,
        )
    return _razorpay_provider


def get_zoho_provider() -> ZohoPaymentsProvider:
    """Get or create the Zoho Payments adapter."""
    global _zoho_provider
    if _zoho_provider is None:
        _zoho_provider = ZohoPaymentsProvider(
            store=get_credential_store(),
            token_manager=get_token_manager(),
            http_client=get_http_client(),
            payments_url=settings.zoho_payments_url,
            timeout=settings.provider_timeout_seconds,
            currency=settings.payment_currency,
        )
    return _zoho_provider


def get_payment_gateway() -> PaymentGateway:
    """Get or create the payment gateway with both providers registered."""
    global _payment_gateway
    if _payment_gateway is None:
        _payment_gateway = PaymentGateway(
            providers={
                PaymentMethod.RAZORPAY: get_razorpay_provider(),
                PaymentMethod.ZOHO: get_zoho_provider(),
            },
            currency=settings.payment_currency,
            default_product_info=settings.default_product_info,
        )
    return _payment_gateway


async def close_providers() -> None:
    """Close the shared HTTP client and drop cached adapters (for graceful shutdown)."""
    global _http_client, _credential_store, _token_manager
    global _razorpay_provider, _zoho_provider, _payment_gateway

    if _http_client is not None:
        await _http_client.aclose()

    _http_client = None
    _credential_store = None
    _token_manager = None
    _razorpay_provider = None
    _zoho_provider = None
    _payment_gateway = None
