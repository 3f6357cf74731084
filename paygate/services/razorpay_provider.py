"""
Razorpay Payment Provider Implementation.

NO DICTIONARIES - All results use the typed domain dataclasses.

Razorpay speaks minor units (paise) on the wire, so amounts pass through
unchanged. Checkout completion is proven by an HMAC-SHA256 signature over
"<order_id>|<payment_id>" keyed with the API secret.
"""

import hashlib
import hmac
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import httpx
from structlog import get_logger

from paygate.exceptions import (
    InvalidPaymentDataError,
    InvalidSignatureError,
    PaymentProviderError,
    PaymentValidationError,
    ProviderNotConfiguredError,
)
from paygate.models.api import PaymentMethod, PaymentStatus
from paygate.models.domain import (
    CheckoutResult,
    PaymentIntent,
    PaymentRecord,
    PaymentVerification,
    RefundResult,
)
from paygate.services.payment_provider import response_json, timestamp_to_datetime

logger = get_logger(__name__)

PROVIDER = "razorpay"

DEFAULT_API_URL = "https://api.razorpay.com/v1"

# Razorpay rejects receipts longer than 40 characters
MAX_RECEIPT_LENGTH = 40

VERIFY_FIELDS = ("razorpay_order_id", "razorpay_payment_id", "razorpay_signature")

RAZORPAY_STATUS_MAP = {
    "created": PaymentStatus.CREATED,
    "authorized": PaymentStatus.PENDING,
    "captured": PaymentStatus.SUCCEEDED,
    "refunded": PaymentStatus.REFUNDED,
    "failed": PaymentStatus.FAILED,
}


def normalize_status(status: str | None) -> PaymentStatus:
    """Map a Razorpay payment status onto the shared vocabulary."""
    return RAZORPAY_STATUS_MAP.get((status or "").lower(), PaymentStatus.PENDING)


def compute_signature(key_secret: str, order_id: str, payment_id: str) -> str:
    """Hex HMAC-SHA256 of "<order_id>|<payment_id>" keyed with the API secret."""
    message = f"{order_id}|{payment_id}".encode()
    return hmac.new(key_secret.encode(), message, hashlib.sha256).hexdigest()


class RazorpayProvider:
    """
    Razorpay payment provider implementation.

    Implements the PaymentProvider protocol for Razorpay orders and payments.
    Credentials are checked on each call, not at construction, so an
    unconfigured deployment can still serve Zoho traffic.
    """

    name = PROVIDER

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        http_client: httpx.AsyncClient | None = None,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 30.0,
        currency: str = "INR",
    ) -> None:
        """
        Initialize Razorpay provider.

        Args:
            key_id: Razorpay key ID (public, handed to the checkout widget)
            key_secret: Razorpay key secret (API auth and signature key)
            http_client: Shared HTTP client (created lazily if omitted)
            api_url: Razorpay REST base URL including /v1
            timeout: Outbound request timeout in seconds
            currency: Currency assumed when a response omits one
        """
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.currency = currency
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient()
        return self._http_client

    def _ensure_configured(self) -> None:
        missing = [
            name
            for name, value in (
                ("RAZORPAY_KEY_ID", self.key_id),
                ("RAZORPAY_KEY_SECRET", self.key_secret),
            )
            if not value
        ]
        if missing:
            raise ProviderNotConfiguredError(PROVIDER, missing)

    async def _request(
        self,
        method: str,
        path: str,
        operation: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Perform an authenticated Razorpay API call.

        Raises:
            ProviderNotConfiguredError: If key ID or secret is missing
            PaymentProviderError: On transport failure or an error status
        """
        self._ensure_configured()

        try:
            response = await self.http_client.request(
                method,
                f"{self.api_url}{path}",
                json=json,
                params=params,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            logger.error("razorpay_request_no_response", operation=operation, error=str(exc))
            raise PaymentProviderError(
                PROVIDER, "No response received from Razorpay API"
            ) from exc

        body = response_json(response)
        if response.is_error:
            error = body.get("error") if isinstance(body.get("error"), dict) else {}
            description = error.get("description")

            if response.status_code == 400:
                message = description or "Invalid request parameters"
            elif response.status_code == 404:
                message = "Payment not found"
            else:
                message = description or f"Razorpay API error ({response.status_code})"

            logger.error(
                f"razorpay_{operation}_failed",
                status=response.status_code,
                code=error.get("code"),
                error=message,
            )
            raise PaymentProviderError(
                PROVIDER,
                message,
                status_code=response.status_code,
                code=error.get("code"),
                payload=body,
            )

        return body

    async def create_payment(self, intent: PaymentIntent) -> CheckoutResult:
        """
        Create a Razorpay order for the checkout widget.

        Args:
            intent: Payment intent details

        Returns:
            Checkout result carrying the Razorpay order ID and public key ID

        Raises:
            ProviderNotConfiguredError: If credentials are missing
            InvalidPaymentDataError: If the amount is not positive
            PaymentProviderError: If Razorpay API call fails
        """
        if intent.amount_minor <= 0:
            raise InvalidPaymentDataError("Invalid payment amount")

        notes = {
            "order_id": intent.order_id,
            "customer_name": intent.customer_name,
            "customer_email": intent.customer_email,
            "product_info": intent.product_info,
        }
        if intent.customer_phone:
            notes["customer_phone"] = intent.customer_phone

        logger.info(
            "creating_razorpay_order",
            order_id=intent.order_id,
            amount_minor=intent.amount_minor,
            currency=intent.currency,
        )

        body = await self._request(
            "POST",
            "/orders",
            "create_order",
            json={
                "amount": intent.amount_minor,
                "currency": intent.currency,
                "receipt": intent.order_id[:MAX_RECEIPT_LENGTH],
                "notes": notes,
            },
        )

        order_id = body.get("id")
        if not order_id:
            raise PaymentProviderError(
                PROVIDER, "Order response did not include an order ID", payload=body
            )

        logger.info("razorpay_order_created", razorpay_order_id=order_id)

        return CheckoutResult(
            payment_method=PaymentMethod.RAZORPAY,
            reference_id=order_id,
            amount_minor=int(body.get("amount", intent.amount_minor)),
            currency=body.get("currency", intent.currency),
            status=PaymentStatus.CREATED,
            description=intent.product_info,
            key_id=self.key_id,
            created_at=timestamp_to_datetime(body.get("created_at")),
        )

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """
        Check a checkout signature in constant time.

        Raises:
            ProviderNotConfiguredError: If the key secret is missing
        """
        self._ensure_configured()
        expected = compute_signature(self.key_secret, order_id, payment_id)
        return hmac.compare_digest(expected.encode(), signature.encode())

    async def verify_payment(self, response_data: Mapping[str, Any]) -> PaymentVerification:
        """
        Verify the checkout callback and fetch the captured payment.

        Args:
            response_data: Body handed back by the checkout widget

        Returns:
            Verification with the payment's amount, currency and status

        Raises:
            PaymentValidationError: If a callback field is missing
            InvalidSignatureError: If the signature does not match
            PaymentProviderError: If the payment lookup fails
        """
        missing = [name for name in VERIFY_FIELDS if not response_data.get(name)]
        if missing:
            raise PaymentValidationError(
                f"Missing Razorpay verification fields: {', '.join(missing)}"
            )

        order_id = str(response_data["razorpay_order_id"])
        payment_id = str(response_data["razorpay_payment_id"])
        signature = str(response_data["razorpay_signature"])

        if not self.verify_signature(order_id, payment_id, signature):
            logger.warning(
                "razorpay_signature_mismatch", order_id=order_id, payment_id=payment_id
            )
            raise InvalidSignatureError(order_id, payment_id)

        record = await self.get_payment_status(payment_id)

        logger.info(
            "razorpay_payment_verified",
            payment_id=payment_id,
            status=record.provider_status,
        )

        return PaymentVerification(
            payment_method=PaymentMethod.RAZORPAY,
            verified=True,
            succeeded=record.status is not PaymentStatus.FAILED,
            transaction_id=record.payment_id,
            order_id=record.order_id or order_id,
            amount_minor=record.amount_minor,
            currency=record.currency,
            status=record.status,
            method=record.method,
            created_at=record.created_at,
        )

    async def refund_payment(
        self, payment_id: str, amount_minor: int, reason: str | None = None
    ) -> RefundResult:
        """
        Refund a captured payment.

        Args:
            payment_id: Razorpay payment ID (pay_...)
            amount_minor: Amount to refund in paise
            reason: Stored in the refund notes

        Returns:
            Refund result

        Raises:
            PaymentProviderError: If refund fails
        """
        payload: dict[str, Any] = {"amount": amount_minor}
        if reason:
            payload["notes"] = {"reason": reason}

        logger.info("creating_razorpay_refund", payment_id=payment_id, amount_minor=amount_minor)

        body = await self._request("POST", f"/payments/{payment_id}/refund", "refund", json=payload)

        refund_id = body.get("id")
        if not refund_id:
            raise PaymentProviderError(
                PROVIDER, "Refund response did not include a refund ID", payload=body
            )

        logger.info("razorpay_refund_created", refund_id=refund_id, status=body.get("status"))

        return RefundResult(
            refund_id=refund_id,
            transaction_id=body.get("payment_id") or payment_id,
            amount_minor=int(body.get("amount", amount_minor)),
            currency=body.get("currency") or self.currency,
            status=body.get("status") or "pending",
            reason=reason,
            processed_at=timestamp_to_datetime(body.get("created_at")) or datetime.now(UTC),
        )

    async def get_payment_status(self, payment_id: str) -> PaymentRecord:
        """
        Fetch a single payment.

        Raises:
            PaymentProviderError: If the lookup fails or the payment is malformed
        """
        body = await self._request("GET", f"/payments/{payment_id}", "fetch_payment")
        try:
            return self._to_record(body)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise PaymentProviderError(
                PROVIDER, "Malformed payment in Razorpay response", payload=body
            ) from exc

    async def list_payments(self, count: int = 50, skip: int = 0) -> list[PaymentRecord]:
        """List recent payments, newest first, dropping malformed entries."""
        body = await self._request(
            "GET", "/payments", "list_payments", params={"count": count, "skip": skip}
        )

        records = []
        for item in body.get("items") or []:
            try:
                records.append(self._to_record(item))
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning("razorpay_payment_skipped", error=str(exc))
        return records

    def _to_record(self, item: dict[str, Any]) -> PaymentRecord:
        # notes is an empty list, not an object, when no notes were set
        notes = item.get("notes")
        if not isinstance(notes, dict):
            notes = {}

        provider_status = str(item.get("status") or "created")
        return PaymentRecord(
            payment_id=item["id"],
            amount_minor=int(item["amount"]),
            currency=item.get("currency") or self.currency,
            status=normalize_status(provider_status),
            provider_status=provider_status,
            order_id=notes.get("order_id") or item.get("order_id"),
            method=item.get("method"),
            email=item.get("email"),
            created_at=timestamp_to_datetime(item.get("created_at")),
        )
