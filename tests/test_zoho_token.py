"""
Tests for the Zoho access token lifecycle.

The token endpoint is stubbed with httpx.MockTransport and time is driven
by a fake clock.
"""

from urllib.parse import parse_qs

import httpx
import pytest

from paygate.exceptions import ProviderNotConfiguredError, TokenRefreshError
from paygate.services.credential_store import InMemoryCredentialStore
from paygate.services.zoho_token import (
    TokenState,
    ZohoTokenManager,
    missing_credential_fields,
    parse_credentials,
    token_state,
)
from tests.helpers import NOW_MS, TOKEN_URL, unexpected_request, zoho_bundle

MINUTE_MS = 60 * 1000


def token_response(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        200, json={"access_token": "fresh-token", "expires_in": 3600, "token_type": "Bearer"}
    )


class TestTokenState:
    """Tests for token_state classification."""

    def test_absent_without_token(self):
        """No token means ABSENT."""
        assert token_state(None, NOW_MS + 10 * MINUTE_MS, NOW_MS) is TokenState.ABSENT

    def test_absent_without_expiry(self):
        """A token without expiry is treated as ABSENT."""
        assert token_state("token", None, NOW_MS) is TokenState.ABSENT

    def test_expired(self):
        """Past expiry means EXPIRED."""
        assert token_state("token", NOW_MS - 1, NOW_MS) is TokenState.EXPIRED
        assert token_state("token", NOW_MS, NOW_MS) is TokenState.EXPIRED

    def test_two_minutes_left_is_expiring(self):
        """Less than three minutes left means EXPIRING."""
        assert token_state("token", NOW_MS + 2 * MINUTE_MS, NOW_MS) is TokenState.EXPIRING

    def test_five_minutes_left_is_valid(self):
        """Five minutes left is VALID."""
        assert token_state("token", NOW_MS + 5 * MINUTE_MS, NOW_MS) is TokenState.VALID

    def test_exactly_three_minutes_is_valid(self):
        """The margin is exclusive."""
        assert token_state("token", NOW_MS + 3 * MINUTE_MS, NOW_MS) is TokenState.VALID


class TestParseCredentials:
    """Tests for credential bundle validation."""

    def test_complete_bundle(self):
        """A complete bundle converts to ZohoCredentials."""
        credentials = parse_credentials(zoho_bundle())
        assert credentials.payments_account_id == "60012345678"
        assert credentials.access_token == "valid-token"
        assert credentials.token_expires_at == NOW_MS + 60 * MINUTE_MS

    def test_lists_all_missing_fields(self):
        """Every missing field is reported in one error."""
        bundle = zoho_bundle(ZOHO_PAY_API_KEY="", ZOHO_ORGANIZATION_ID=None)
        del bundle["ZOHO_PAY_SIGNING_KEY"]

        with pytest.raises(ProviderNotConfiguredError) as exc_info:
            parse_credentials(bundle)

        assert exc_info.value.missing_fields == [
            "ZOHO_ORGANIZATION_ID",
            "ZOHO_PAY_API_KEY",
            "ZOHO_PAY_SIGNING_KEY",
        ]

    def test_string_expiry_is_accepted(self):
        """Stores that serialize numbers as strings still parse."""
        credentials = parse_credentials(zoho_bundle(token_expires_at=str(NOW_MS)))
        assert credentials.token_expires_at == NOW_MS

    def test_missing_fields_in_declaration_order(self):
        """missing_credential_fields keeps field order."""
        assert missing_credential_fields({})[0] == "ZOHO_CLIENT_ID"


class TestGetAccessToken:
    """Tests for ZohoTokenManager.get_access_token."""

    @pytest.mark.asyncio
    async def test_five_minutes_left_does_not_refresh(self, clock, mock_http):
        """A token with five minutes left is returned as is."""
        client, requests = mock_http(unexpected_request)
        store = InMemoryCredentialStore(
            zoho_bundle(token_expires_at=NOW_MS + 5 * MINUTE_MS)
        )
        manager = ZohoTokenManager(store, TOKEN_URL, http_client=client, clock=clock)

        token = await manager.get_access_token()

        assert token == "valid-token"
        assert requests == []

    @pytest.mark.asyncio
    async def test_two_minutes_left_refreshes(self, clock, mock_http):
        """A token with two minutes left is refreshed before use."""
        client, requests = mock_http(token_response)
        store = InMemoryCredentialStore(
            zoho_bundle(token_expires_at=NOW_MS + 2 * MINUTE_MS)
        )
        manager = ZohoTokenManager(store, TOKEN_URL, http_client=client, clock=clock)

        token = await manager.get_access_token()

        assert token == "fresh-token"
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_absent_token_refreshes(self, clock, mock_http):
        """A bundle without an access token triggers a refresh."""
        client, requests = mock_http(token_response)
        bundle = zoho_bundle()
        del bundle["ZOHO_ACCESS_TOKEN"]
        del bundle["token_expires_at"]
        manager = ZohoTokenManager(
            InMemoryCredentialStore(bundle), TOKEN_URL, http_client=client, clock=clock
        )

        assert await manager.get_access_token() == "fresh-token"
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_token_refreshes_again_once_clock_passes_margin(self, clock, mock_http):
        """The same token is reused until the clock moves into the margin."""
        client, requests = mock_http(token_response)
        store = InMemoryCredentialStore(zoho_bundle(token_expires_at=NOW_MS + 10 * MINUTE_MS))
        manager = ZohoTokenManager(store, TOKEN_URL, http_client=client, clock=clock)

        assert await manager.get_access_token() == "valid-token"
        clock.advance(8 * 60)
        assert await manager.get_access_token() == "fresh-token"
        assert len(requests) == 1


class TestRefresh:
    """Tests for ZohoTokenManager.refresh."""

    @pytest.mark.asyncio
    async def test_posts_refresh_token_form(self, clock, mock_http):
        """The refresh grant is posted as a form to the token endpoint."""
        client, requests = mock_http(token_response)
        manager = ZohoTokenManager(
            InMemoryCredentialStore(zoho_bundle()), TOKEN_URL, http_client=client, clock=clock
        )

        await manager.refresh()

        request = requests[0]
        assert request.method == "POST"
        assert str(request.url) == TOKEN_URL
        form = parse_qs(request.content.decode())
        assert form == {
            "refresh_token": ["1000.refresh-token"],
            "client_id": ["1000.CLIENTID"],
            "client_secret": ["client-secret"],
            "grant_type": ["refresh_token"],
        }

    @pytest.mark.asyncio
    async def test_writes_token_back_before_returning(self, clock, mock_http):
        """New token, expiry and unchanged refresh token are persisted."""
        client, _ = mock_http(token_response)
        store = InMemoryCredentialStore(zoho_bundle())
        manager = ZohoTokenManager(store, TOKEN_URL, http_client=client, clock=clock)

        token = await manager.refresh()

        data = await store.get_credentials()
        assert token.value == "fresh-token"
        assert token.expires_at == NOW_MS + 3600 * 1000
        assert data["ZOHO_ACCESS_TOKEN"] == "fresh-token"
        assert data["token_expires_at"] == NOW_MS + 3600 * 1000
        assert data["ZOHO_REFRESH_TOKEN"] == "1000.refresh-token"
        assert "updatedAt" in data
        assert data["ZOHO_PAY_SIGNING_KEY"] == "pay-signing-key"

    @pytest.mark.asyncio
    async def test_missing_refresh_credentials_fail_without_network(self, clock, mock_http):
        """Refresh token, client ID and secret are required up front."""
        client, requests = mock_http(unexpected_request)
        bundle = zoho_bundle(ZOHO_REFRESH_TOKEN="", ZOHO_CLIENT_SECRET="")
        manager = ZohoTokenManager(
            InMemoryCredentialStore(bundle), TOKEN_URL, http_client=client, clock=clock
        )

        with pytest.raises(ProviderNotConfiguredError) as exc_info:
            await manager.refresh()

        assert exc_info.value.missing_fields == ["ZOHO_REFRESH_TOKEN", "ZOHO_CLIENT_SECRET"]
        assert requests == []

    @pytest.mark.asyncio
    async def test_400_reports_provider_error_field(self, clock, mock_http):
        """HTTP 400 surfaces Zoho's error code."""
        client, _ = mock_http(lambda request: httpx.Response(400, json={"error": "invalid_code"}))
        manager = ZohoTokenManager(
            InMemoryCredentialStore(zoho_bundle()), TOKEN_URL, http_client=client, clock=clock
        )

        with pytest.raises(TokenRefreshError) as exc_info:
            await manager.refresh()

        assert "invalid_code" in exc_info.value.message
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_401_message(self, clock, mock_http):
        """HTTP 401 points at client credentials."""
        client, _ = mock_http(lambda request: httpx.Response(401, json={}))
        manager = ZohoTokenManager(
            InMemoryCredentialStore(zoho_bundle()), TOKEN_URL, http_client=client, clock=clock
        )

        with pytest.raises(TokenRefreshError, match="Unauthorized"):
            await manager.refresh()

    @pytest.mark.asyncio
    async def test_200_without_token_is_error(self, clock, mock_http):
        """Zoho reports some failures with 200 and an error field."""
        client, _ = mock_http(lambda request: httpx.Response(200, json={"error": "invalid_client"}))
        store = InMemoryCredentialStore(zoho_bundle())
        manager = ZohoTokenManager(store, TOKEN_URL, http_client=client, clock=clock)

        with pytest.raises(TokenRefreshError, match="invalid_client"):
            await manager.refresh()

        assert (await store.get_credentials())["ZOHO_ACCESS_TOKEN"] == "valid-token"

    @pytest.mark.asyncio
    async def test_no_response(self, clock, mock_http):
        """Transport failures become TokenRefreshError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client, _ = mock_http(handler)
        manager = ZohoTokenManager(
            InMemoryCredentialStore(zoho_bundle()), TOKEN_URL, http_client=client, clock=clock
        )

        with pytest.raises(TokenRefreshError, match="No response received"):
            await manager.refresh()
