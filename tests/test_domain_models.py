"""
Tests for domain and API models.
"""

from dataclasses import FrozenInstanceError
from decimal import Decimal

import pytest
from pydantic import ValidationError

from paygate.models.api import CreatePaymentRequest, PaymentMethod, RefundRequest
from paygate.models.domain import PaymentIntent, ZohoCredentials


class TestPaymentIntent:
    """Tests for PaymentIntent."""

    def test_rejects_bad_currency(self):
        """Currency codes are three letters."""
        with pytest.raises(ValueError, match="Invalid currency code"):
            PaymentIntent(
                order_id="ORD-1",
                amount_minor=100,
                currency="RUPEE",
                customer_name="Asha Reader",
                customer_email="reader@example.com",
                customer_phone=None,
                product_info="Collected Essays",
                payment_method=PaymentMethod.ZOHO,
            )

    def test_is_frozen(self):
        """Domain objects are immutable."""
        credentials = ZohoCredentials(
            client_id="id",
            client_secret="secret",
            refresh_token="refresh",
            organization_id="org",
            payments_account_id="60012345678",
            pay_api_key="key",
            pay_signing_key="signing",
        )
        with pytest.raises(FrozenInstanceError):
            credentials.access_token = "tampered"  # type: ignore[misc]


class TestCreatePaymentRequest:
    """Tests for the create-payment body."""

    def test_accepts_camel_case(self):
        """Storefront JSON uses camelCase."""
        request = CreatePaymentRequest.model_validate(
            {
                "orderId": "ORD-1",
                "amount": "299.50",
                "customerName": "Asha Reader",
                "customerEmail": "reader@example.com",
                "paymentMethod": "zoho",
            }
        )
        assert request.order_id == "ORD-1"
        assert request.amount == Decimal("299.50")
        assert request.customer_phone is None

    @pytest.mark.parametrize("amount", [0, -1])
    def test_amount_must_be_positive(self, amount):
        """Non-positive amounts fail schema validation."""
        with pytest.raises(ValidationError):
            CreatePaymentRequest(
                order_id="ORD-1",
                amount=amount,
                customer_name="Asha Reader",
                customer_email="reader@example.com",
                payment_method="zoho",
            )


class TestRefundRequest:
    """Tests for the refund body."""

    def test_everything_optional(self):
        """Missing fields are left to the gateway to report."""
        request = RefundRequest.model_validate({})
        assert request.transaction_id is None
        assert request.refund_amount is None

    def test_refund_amount_alias(self):
        """refundAmount is read from camelCase."""
        request = RefundRequest.model_validate({"transactionId": "pay_1", "refundAmount": 100})
        assert request.refund_amount == Decimal("100")
