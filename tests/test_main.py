"""
Tests for Main Application utilities.

Tests the exception-to-response mapping independently of any route.
"""

import json

import pytest

from paygate.exceptions import (
    CredentialStoreError,
    InvalidRefundAmountError,
    InvalidSignatureError,
    PaymentGatewayError,
    PaymentProviderError,
    ProviderNotConfiguredError,
    TokenRefreshError,
    VerificationFailedError,
)
from paygate.main import error_details, error_status


class TestErrorStatus:
    """Tests for error_status."""

    @pytest.mark.parametrize(
        "exc,status_code",
        [
            (InvalidRefundAmountError(0), 400),
            (InvalidSignatureError("order_1", "pay_1"), 400),
            (ProviderNotConfiguredError("zoho", ["ZOHO_PAY_API_KEY"]), 503),
            (VerificationFailedError("PS1", "both lookups failed"), 502),
            (TokenRefreshError("zoho", "invalid_code"), 502),
            (PaymentProviderError("razorpay", "down"), 502),
            (CredentialStoreError("down"), 500),
            (PaymentGatewayError("unexpected"), 500),
        ],
    )
    def test_status_codes(self, exc, status_code):
        """Each error family maps to its HTTP status."""
        assert error_status(exc)[0] == status_code

    def test_validation_errors_keep_their_message(self):
        """Caller errors tell the caller what was wrong."""
        _, message = error_status(InvalidRefundAmountError(-5))
        assert "-5" in message

    def test_token_refresh_beats_generic_provider_message(self):
        """The more specific mapping wins."""
        _, message = error_status(TokenRefreshError("zoho", "invalid_code"))
        assert message == "Failed to refresh Zoho access token"


class TestErrorDetails:
    """Tests for error_details."""

    def test_includes_payload(self):
        """Provider payloads are serialized for debugging."""
        try:
            raise PaymentProviderError("zoho", "down", payload={"code": 7001})
        except PaymentProviderError as exc:
            details = error_details(exc)

        assert details["type"] == "PaymentProviderError"
        assert json.loads(details["payload"]) == {"code": 7001}
        assert "Traceback" in details["traceback"]

    def test_no_payload(self):
        """Errors without a payload omit the key."""
        details = error_details(CredentialStoreError("down"))
        assert "payload" not in details
