"""
Pytest Configuration and Centralized Fixtures.

Provides reusable fixtures for testing:
- Environment defaults (memory credential store, tracing off)
- A fake clock for Zoho token expiry
- Zoho credential bundles
- httpx MockTransport clients that record outbound requests
"""

import os
from collections.abc import Callable
from typing import Any

import httpx
import pytest

# Set required environment variables BEFORE importing paygate modules
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("CREDENTIAL_STORE_BACKEND", "memory")
os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "rzp_test_secret")

from tests.helpers import FakeClock, Handler, recording_client, zoho_bundle


@pytest.fixture
def clock() -> FakeClock:
    """Fake clock pinned at NOW_SECONDS."""
    return FakeClock()


@pytest.fixture
def zoho_credentials() -> dict[str, Any]:
    """Complete Zoho credential bundle with a valid access token."""
    return zoho_bundle()


@pytest.fixture
def mock_http() -> Callable[[Handler], tuple[httpx.AsyncClient, list[httpx.Request]]]:
    """Factory for recording MockTransport clients."""
    return recording_client
