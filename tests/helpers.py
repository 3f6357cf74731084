"""
Shared test constants and builders.

Kept free of paygate imports so conftest can set the environment first.
"""

from collections.abc import Callable
from typing import Any

import httpx

NOW_SECONDS = 1_760_000_000.0
NOW_MS = int(NOW_SECONDS * 1000)

TOKEN_URL = "https://accounts.zoho.in/oauth/v2/token"
PAYMENTS_URL = "https://payments.zoho.in/api/v1"
RAZORPAY_URL = "https://api.razorpay.com/v1"

ACCOUNT_ID = "60012345678"

Handler = Callable[[httpx.Request], httpx.Response]


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, now: float = NOW_SECONDS) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def zoho_bundle(**overrides: Any) -> dict[str, Any]:
    """Complete Zoho credential bundle whose access token has an hour left."""
    bundle: dict[str, Any] = {
        "ZOHO_CLIENT_ID": "1000.CLIENTID",
        "ZOHO_CLIENT_SECRET": "client-secret",
        "ZOHO_REFRESH_TOKEN": "1000.refresh-token",
        "ZOHO_ACCESS_TOKEN": "valid-token",
        "token_expires_at": NOW_MS + 60 * 60 * 1000,
        "ZOHO_ORGANIZATION_ID": "60000000001",
        "ZOHO_PAYMENTS_ACCOUNT_ID": ACCOUNT_ID,
        "ZOHO_PAY_API_KEY": "pay-api-key",
        "ZOHO_PAY_SIGNING_KEY": "pay-signing-key",
    }
    bundle.update(overrides)
    return bundle


def recording_client(handler: Handler) -> tuple[httpx.AsyncClient, list[httpx.Request]]:
    """AsyncClient backed by a MockTransport; every request is appended to the list."""
    requests: list[httpx.Request] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return handler(request)

    return httpx.AsyncClient(transport=httpx.MockTransport(_handler)), requests


def unexpected_request(request: httpx.Request) -> httpx.Response:
    """Handler for tests that must not touch the network."""
    raise AssertionError(f"Unexpected request: {request.method} {request.url}")
