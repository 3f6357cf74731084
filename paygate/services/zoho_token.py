"""
Zoho OAuth access token lifecycle.

Token states: ABSENT -> VALID -> EXPIRING (< 3 minutes left) -> EXPIRED.
Anything but VALID is refreshed synchronously before the caller proceeds.

Concurrent refreshes are not de-duplicated: two callers holding an expired
token both refresh and both write back, last write wins. That is safe only
because Zoho does not rotate the refresh token.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from typing import Any

import httpx
from structlog import get_logger

from paygate.exceptions import ProviderNotConfiguredError, TokenRefreshError
from paygate.models.domain import ZohoCredentials
from paygate.observability.metrics import metrics
from paygate.services.credential_store import CredentialStore
from paygate.services.payment_provider import response_json

logger = get_logger(__name__)

PROVIDER = "zoho"

TOKEN_EXPIRY_MARGIN_MS = 3 * 60 * 1000
DEFAULT_TOKEN_LIFETIME_SECONDS = 3600

ACCESS_TOKEN_KEY = "ZOHO_ACCESS_TOKEN"
EXPIRES_AT_KEY = "token_expires_at"

# Fields that must be present before any Zoho Payments call
REQUIRED_CREDENTIAL_FIELDS = (
    "ZOHO_CLIENT_ID",
    "ZOHO_CLIENT_SECRET",
    "ZOHO_REFRESH_TOKEN",
    "ZOHO_ORGANIZATION_ID",
    "ZOHO_PAYMENTS_ACCOUNT_ID",
    "ZOHO_PAY_API_KEY",
    "ZOHO_PAY_SIGNING_KEY",
)

REFRESH_CREDENTIAL_FIELDS = ("ZOHO_REFRESH_TOKEN", "ZOHO_CLIENT_ID", "ZOHO_CLIENT_SECRET")


class TokenState(str, Enum):
    """Validity of the stored access token."""

    ABSENT = "absent"
    VALID = "valid"
    EXPIRING = "expiring"
    EXPIRED = "expired"


@dataclass(frozen=True)
class AccessToken:
    """A freshly issued Zoho access token."""

    value: str
    expires_at: int  # epoch milliseconds


def missing_credential_fields(
    data: dict[str, Any], fields: tuple[str, ...] = REQUIRED_CREDENTIAL_FIELDS
) -> list[str]:
    """All required fields that are absent or empty, in declaration order."""
    return [name for name in fields if not data.get(name)]


def parse_expiry(data: dict[str, Any]) -> int | None:
    """Read token_expires_at as epoch milliseconds, tolerating string values."""
    raw = data.get(EXPIRES_AT_KEY)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning("zoho_token_expiry_unparseable", value=str(raw))
        return None


def parse_credentials(data: dict[str, Any]) -> ZohoCredentials:
    """
    Validate and convert a raw credential bundle.

    Raises:
        ProviderNotConfiguredError: Listing every missing required field
    """
    missing = missing_credential_fields(data)
    if missing:
        logger.error("zoho_credentials_incomplete", missing=missing)
        raise ProviderNotConfiguredError(PROVIDER, missing)

    return ZohoCredentials(
        client_id=str(data["ZOHO_CLIENT_ID"]),
        client_secret=str(data["ZOHO_CLIENT_SECRET"]),
        refresh_token=str(data["ZOHO_REFRESH_TOKEN"]),
        organization_id=str(data["ZOHO_ORGANIZATION_ID"]),
        payments_account_id=str(data["ZOHO_PAYMENTS_ACCOUNT_ID"]),
        pay_api_key=str(data["ZOHO_PAY_API_KEY"]),
        pay_signing_key=str(data["ZOHO_PAY_SIGNING_KEY"]),
        access_token=data.get(ACCESS_TOKEN_KEY) or None,
        token_expires_at=parse_expiry(data),
    )


def token_state(access_token: str | None, expires_at: int | None, now_ms: int) -> TokenState:
    """Classify a token against the 3 minute safety margin."""
    if not access_token or expires_at is None:
        return TokenState.ABSENT

    remaining = expires_at - now_ms
    if remaining <= 0:
        return TokenState.EXPIRED
    if remaining < TOKEN_EXPIRY_MARGIN_MS:
        return TokenState.EXPIRING
    return TokenState.VALID


class ZohoTokenManager:
    """Resolves a usable Zoho access token, refreshing through the OAuth endpoint."""

    def __init__(
        self,
        store: CredentialStore,
        token_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Initialize the token manager.

        Args:
            store: Credential store holding the refresh token and current access token
            token_url: Zoho accounts OAuth token endpoint
            http_client: Shared HTTP client (created lazily if omitted)
            timeout: Outbound request timeout in seconds
            clock: Epoch-seconds clock, injectable for tests
        """
        self.store = store
        self.token_url = token_url
        self.timeout = timeout
        self._http_client = http_client
        self._clock = clock

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient()
        return self._http_client

    def now_ms(self) -> int:
        return int(self._clock() * 1000)

    async def get_access_token(self) -> str:
        """
        Return a token that stays valid for at least the safety margin.

        Raises:
            TokenRefreshError: If a needed refresh fails
            ProviderNotConfiguredError: If refresh credentials are missing
            CredentialStoreError: If the store cannot be read or written
        """
        data = await self.store.get_credentials()
        access_token = data.get(ACCESS_TOKEN_KEY) or None
        state = token_state(access_token, parse_expiry(data), self.now_ms())

        if state is TokenState.VALID and access_token:
            return str(access_token)

        logger.info("zoho_token_refresh_required", token_state=state.value)
        token = await self.refresh(data)
        return token.value

    async def refresh(self, credentials: dict[str, Any] | None = None) -> AccessToken:
        """
        Exchange the refresh token for a new access token and persist it.

        The new token, its expiry and the unchanged refresh token are written
        to the store before the token is returned.

        Raises:
            TokenRefreshError: If Zoho rejects the exchange or does not answer
            ProviderNotConfiguredError: If refresh credentials are missing
        """
        if credentials is None:
            credentials = await self.store.get_credentials()

        missing = missing_credential_fields(credentials, REFRESH_CREDENTIAL_FIELDS)
        if missing:
            raise ProviderNotConfiguredError(PROVIDER, missing)

        form = {
            "refresh_token": credentials["ZOHO_REFRESH_TOKEN"],
            "client_id": credentials["ZOHO_CLIENT_ID"],
            "client_secret": credentials["ZOHO_CLIENT_SECRET"],
            "grant_type": "refresh_token",
        }

        logger.info("refreshing_zoho_token")
        try:
            response = await self.http_client.post(
                self.token_url, data=form, timeout=self.timeout
            )
        except httpx.HTTPError as exc:
            metrics.record_token_refresh(False)
            logger.error("zoho_token_refresh_no_response", error=str(exc))
            raise TokenRefreshError(
                PROVIDER, "No response received from Zoho API. Check your internet connection."
            ) from exc

        body = response_json(response)
        if response.is_error:
            metrics.record_token_refresh(False)
            logger.error(
                "zoho_token_refresh_failed", status=response.status_code, error=body.get("error")
            )
            raise TokenRefreshError(
                PROVIDER,
                self._refresh_error_message(response.status_code, body),
                status_code=response.status_code,
                code=body.get("error"),
                payload=body,
            )

        # Zoho answers some failures (e.g. invalid_code) with 200 and an error field
        access_token = body.get("access_token")
        if not access_token:
            metrics.record_token_refresh(False)
            logger.error("zoho_token_refresh_rejected", error=body.get("error"))
            raise TokenRefreshError(
                PROVIDER,
                body.get("error") or "Token response did not include an access token",
                status_code=response.status_code,
                code=body.get("error"),
                payload=body,
            )

        expires_in = int(body.get("expires_in") or DEFAULT_TOKEN_LIFETIME_SECONDS)
        token = AccessToken(value=access_token, expires_at=self.now_ms() + expires_in * 1000)

        await self.store.update_credentials(
            {
                ACCESS_TOKEN_KEY: token.value,
                EXPIRES_AT_KEY: token.expires_at,
                "ZOHO_REFRESH_TOKEN": credentials["ZOHO_REFRESH_TOKEN"],
                "updatedAt": datetime.now(UTC).isoformat(),
            }
        )

        metrics.record_token_refresh(True)
        logger.info("zoho_token_refreshed", expires_at=token.expires_at)
        return token

    @staticmethod
    def _refresh_error_message(status_code: int, body: dict[str, Any]) -> str:
        if status_code == 400:
            return f"Zoho API Error: {body.get('error') or 'Invalid request parameters'}"
        if status_code == 401:
            return "Zoho API Error: Unauthorized - Check your client credentials and refresh token"
        if status_code == 403:
            return "Zoho API Error: Forbidden - Check your API permissions"
        return f"Zoho API Error ({status_code}): {body.get('error') or 'Unknown error'}"
