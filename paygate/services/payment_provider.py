"""
Payment Provider Protocol - Provider-agnostic interface.

NO DICTIONARIES - Results are the shared dataclasses in paygate.models.domain;
failures are raised from the paygate.exceptions hierarchy.
"""

from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any, Protocol

import httpx

from paygate.models.domain import (
    CheckoutResult,
    PaymentIntent,
    PaymentRecord,
    PaymentVerification,
    RefundResult,
)


class PaymentProvider(Protocol):
    """
    Payment provider protocol.

    Razorpay and Zoho Payments both implement this interface so the gateway
    can dispatch on payment method without inspecting provider payloads.
    Implementations must not touch the network at construction time.
    """

    name: str

    async def create_payment(self, intent: PaymentIntent) -> CheckoutResult:
        """
        Create a checkout with the provider.

        Args:
            intent: Payment intent details (amount in minor units)

        Returns:
            Checkout result with the provider reference ID

        Raises:
            ProviderNotConfiguredError: If credentials are missing
            InvalidPaymentDataError: If the intent fails provider requirements
            PaymentProviderError: If the provider call fails
        """
        ...

    async def verify_payment(self, response_data: Mapping[str, Any]) -> PaymentVerification:
        """
        Verify the data the checkout widget handed back to the storefront.

        Args:
            response_data: Raw provider callback body

        Returns:
            Verification result

        Raises:
            PaymentValidationError: If required callback fields are missing
            InvalidSignatureError: If the callback signature does not match
            VerificationFailedError: If the payment cannot be resolved
        """
        ...

    async def refund_payment(
        self, payment_id: str, amount_minor: int, reason: str | None = None
    ) -> RefundResult:
        """
        Refund a payment. This is an irreversible call against the live provider.

        Args:
            payment_id: Provider payment ID
            amount_minor: Amount to refund in minor units
            reason: Free-text reason passed to the provider

        Raises:
            PaymentProviderError: If refund fails
        """
        ...

    async def get_payment_status(self, payment_id: str) -> PaymentRecord:
        """
        Fetch the current state of a payment.

        Raises:
            PaymentProviderError: If the lookup fails
        """
        ...

    async def list_payments(self) -> list[PaymentRecord]:
        """
        List recent payments. Malformed entries are dropped, not raised.

        Raises:
            PaymentProviderError: If the list call fails
        """
        ...


def response_json(response: httpx.Response) -> dict[str, Any]:
    """Decode a provider response body, treating non-object or non-JSON bodies as empty."""
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def timestamp_to_datetime(value: Any) -> datetime | None:
    """Convert a provider epoch-seconds timestamp to an aware datetime."""
    if value in (None, ""):
        return None
    try:
        return datetime.fromtimestamp(int(value), UTC)
    except (TypeError, ValueError, OverflowError, OSError):
        return None
