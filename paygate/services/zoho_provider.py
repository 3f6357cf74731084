"""
Zoho Payments Provider Implementation.

NO DICTIONARIES - All results use the typed domain dataclasses.

Zoho Payments speaks major units (rupees) on the wire and signals failure
with a non-zero "code" field even on HTTP 200. Checkout goes through a
payment session whose ID initializes the Zoho checkout widget; there is no
redirect URL.
"""

import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import httpx
from structlog import get_logger

from paygate.exceptions import (
    InvalidPaymentDataError,
    PaymentGatewayError,
    PaymentProviderError,
    PaymentValidationError,
    TokenRefreshError,
    VerificationFailedError,
)
from paygate.models.api import PaymentMethod, PaymentStatus
from paygate.models.domain import (
    CheckoutResult,
    ConnectionReport,
    PaymentIntent,
    PaymentRecord,
    PaymentVerification,
    RefundResult,
    ZohoCredentials,
)
from paygate.services.credential_store import CredentialStore
from paygate.services.currency import to_major_decimal, to_minor_units
from paygate.services.payment_provider import response_json, timestamp_to_datetime
from paygate.services.zoho_token import ZohoTokenManager, parse_credentials

logger = get_logger(__name__)

PROVIDER = "zoho"

DEFAULT_PAYMENTS_URL = "https://payments.zoho.in/api/v1"

DEFAULT_REFUND_REASON = "requested_by_customer"
REFUND_TYPE = "initiated_by_merchant"

ACCOUNT_ID_HEADER = "X-Zoho-Account-Id"
ACCOUNT_ID_PATTERN = re.compile(r"^\d{8,12}$")

# Keys the storefront may use for the Zoho identifier in a verify callback
VERIFY_ID_KEYS = ("paymentId", "payment_id", "sessionId", "session_id")

ZOHO_STATUS_MAP = {
    "succeeded": PaymentStatus.SUCCEEDED,
    "failed": PaymentStatus.FAILED,
    "refunded": PaymentStatus.REFUNDED,
    "partially_refunded": PaymentStatus.REFUNDED,
}


def normalize_status(status: str | None) -> PaymentStatus:
    """Map a Zoho payment status onto the shared vocabulary; unknown means pending."""
    return ZOHO_STATUS_MAP.get((status or "").lower(), PaymentStatus.PENDING)


def meta_value(meta_data: Any, key: str) -> str | None:
    """Look up a key in Zoho's [{key, value}, ...] metadata list."""
    if not isinstance(meta_data, list):
        return None
    for entry in meta_data:
        if isinstance(entry, dict) and entry.get("key") == key:
            value = entry.get("value")
            return str(value) if value is not None else None
    return None


def http_error_message(status_code: int, body: dict[str, Any]) -> str:
    """Human-readable message for a Zoho Payments HTTP error."""
    if body.get("message"):
        return str(body["message"])
    if status_code == 400:
        return "Invalid request parameters"
    if status_code == 401:
        return "Unauthorized - Check your access token"
    if status_code == 403:
        return "Forbidden - Check your account permissions"
    return f"({status_code}) Unknown error"


class ZohoPaymentsProvider:
    """
    Zoho Payments provider implementation.

    Implements the PaymentProvider protocol. Credentials come from the
    credential store on every call; the access token is resolved (and
    refreshed when close to expiry) through the token manager.
    """

    name = PROVIDER

    def __init__(
        self,
        store: CredentialStore,
        token_manager: ZohoTokenManager,
        http_client: httpx.AsyncClient | None = None,
        payments_url: str = DEFAULT_PAYMENTS_URL,
        timeout: float = 30.0,
        currency: str = "INR",
    ) -> None:
        """
        Initialize Zoho Payments provider.

        Args:
            store: Credential store holding the Zoho bundle
            token_manager: Access token resolver sharing the same store
            http_client: Shared HTTP client (created lazily if omitted)
            payments_url: Zoho Payments REST base URL
            timeout: Outbound request timeout in seconds
            currency: Currency for sessions and responses that omit one
        """
        self.store = store
        self.token_manager = token_manager
        self.payments_url = payments_url.rstrip("/")
        self.timeout = timeout
        self.currency = currency
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Get HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient()
        return self._http_client

    async def load_credentials(self) -> ZohoCredentials:
        """
        Read and validate the Zoho credential bundle.

        Raises:
            CredentialStoreError: If the bundle cannot be read
            ProviderNotConfiguredError: Listing every missing required field
        """
        return parse_credentials(await self.store.get_credentials())

    async def _request(
        self,
        method: str,
        path: str,
        credentials: ZohoCredentials,
        operation: str,
        json: dict[str, Any] | None = None,
        scoped: bool = True,
        headers: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """
        Perform an authenticated Zoho Payments call.

        Args:
            scoped: Send the payments account ID as the account_id query parameter

        Raises:
            TokenRefreshError: If a needed token refresh fails
            PaymentProviderError: On transport failure, error status or non-zero code
        """
        access_token = await self.token_manager.get_access_token()

        request_headers = {"Authorization": f"Bearer {access_token}"}
        if headers:
            request_headers.update(headers)
        params = {"account_id": credentials.payments_account_id} if scoped else None

        try:
            response = await self.http_client.request(
                method,
                f"{self.payments_url}{path}",
                json=json,
                params=params,
                headers=request_headers,
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            logger.error("zoho_request_no_response", operation=operation, error=str(exc))
            raise PaymentProviderError(
                PROVIDER,
                "No response received from Zoho Payments API. Check your internet connection.",
            ) from exc

        body = response_json(response)
        if response.is_error:
            message = http_error_message(response.status_code, body)
            logger.error(
                f"zoho_{operation}_failed",
                status=response.status_code,
                code=body.get("code"),
                error=message,
            )
            raise PaymentProviderError(
                PROVIDER,
                message,
                status_code=response.status_code,
                code=str(body["code"]) if body.get("code") is not None else None,
                payload=body,
            )

        code = body.get("code")
        if code not in (0, "0"):
            message = str(body.get("message") or f"Unexpected response code: {code}")
            logger.error(f"zoho_{operation}_rejected", code=code, error=message)
            raise PaymentProviderError(
                PROVIDER,
                message,
                status_code=response.status_code,
                code=str(code) if code is not None else None,
                payload=body,
            )

        return body

    async def create_payment(self, intent: PaymentIntent) -> CheckoutResult:
        """
        Create a Zoho payment session for the checkout widget.

        Args:
            intent: Payment intent details

        Returns:
            Checkout result whose reference ID is the payment session ID

        Raises:
            InvalidPaymentDataError: If amount, email, name or order ID is missing
            ProviderNotConfiguredError: If credentials are missing
            PaymentProviderError: If Zoho API call fails
        """
        if intent.amount_minor <= 0:
            raise InvalidPaymentDataError("Invalid payment amount")
        if not intent.customer_email:
            raise InvalidPaymentDataError("Customer email is required")
        if not intent.customer_name:
            raise InvalidPaymentDataError("Customer name is required")
        if not intent.order_id:
            raise InvalidPaymentDataError("Order ID is required")

        credentials = await self.load_credentials()

        meta_data = [
            {"key": "order_id", "value": intent.order_id},
            {"key": "customer_name", "value": intent.customer_name},
            {"key": "customer_email", "value": intent.customer_email},
        ]
        if intent.customer_phone:
            meta_data.append({"key": "customer_phone", "value": intent.customer_phone})

        invoice_number = f"INV-{intent.order_id}"
        payload = {
            "amount": float(to_major_decimal(intent.amount_minor)),
            "currency": intent.currency,
            "description": intent.product_info,
            "invoice_number": invoice_number,
            "meta_data": meta_data,
        }

        logger.info(
            "creating_zoho_payment_session",
            order_id=intent.order_id,
            amount_minor=intent.amount_minor,
            currency=intent.currency,
        )

        body = await self._request(
            "POST", "/paymentsessions", credentials, "create_session", json=payload
        )

        session = body.get("payments_session")
        session_id = session.get("payments_session_id") if isinstance(session, dict) else None
        if not session_id:
            raise PaymentProviderError(
                PROVIDER, "Session response did not include a session ID", payload=body
            )

        logger.info("zoho_payment_session_created", session_id=session_id)

        return CheckoutResult(
            payment_method=PaymentMethod.ZOHO,
            reference_id=str(session_id),
            amount_minor=self._amount_minor(session.get("amount"), intent.amount_minor),
            currency=session.get("currency") or intent.currency,
            status=PaymentStatus.CREATED,
            description=session.get("description") or intent.product_info,
            invoice_number=session.get("invoice_number") or invoice_number,
            created_at=timestamp_to_datetime(session.get("created_time")),
        )

    async def verify_payment(self, response_data: Mapping[str, Any]) -> PaymentVerification:
        """
        Verify a Zoho payment from the storefront callback.

        The callback may carry either a payment ID or a session ID.

        Raises:
            PaymentValidationError: If no identifier is present
            VerificationFailedError: If neither lookup resolves the identifier
            TokenRefreshError: If a needed token refresh fails
        """
        payment_id = next(
            (str(response_data[key]) for key in VERIFY_ID_KEYS if response_data.get(key)), None
        )
        if not payment_id:
            raise PaymentValidationError("Payment ID is required for verification")

        return await self.verify_payment_id(payment_id)

    async def verify_payment_id(self, payment_id: str) -> PaymentVerification:
        """
        Resolve an identifier as a payment, falling back to a payment session.

        Args:
            payment_id: Zoho payment ID or payment session ID

        Returns:
            Verification; a session with no payment attached yields a pending,
            unsucceeded result

        Raises:
            VerificationFailedError: If both lookups fail
            TokenRefreshError: If a needed token refresh fails
        """
        credentials = await self.load_credentials()

        try:
            body = await self._request(
                "GET", f"/payments/{payment_id}", credentials, "verify_payment"
            )
            return self._verification_from_payment(body["payment"])
        except TokenRefreshError:
            raise
        except (PaymentProviderError, AttributeError, KeyError, TypeError, ValueError) as exc:
            payment_error = exc
            logger.info(
                "zoho_payment_lookup_failed_trying_session",
                payment_id=payment_id,
                error=str(exc),
            )

        try:
            body = await self._request(
                "GET", f"/paymentsessions/{payment_id}", credentials, "verify_session"
            )
            return self._verification_from_session(body["payments_session"])
        except TokenRefreshError:
            raise
        except (PaymentProviderError, AttributeError, KeyError, TypeError, ValueError) as exc:
            logger.error(
                "zoho_payment_verification_failed",
                payment_id=payment_id,
                payment_error=str(payment_error),
                session_error=str(exc),
            )
            raise VerificationFailedError(
                payment_id, f"payment lookup: {payment_error}; session lookup: {exc}"
            ) from exc

    def _verification_from_payment(self, payment: dict[str, Any]) -> PaymentVerification:
        record = self._to_record(payment)
        return PaymentVerification(
            payment_method=PaymentMethod.ZOHO,
            verified=True,
            succeeded=record.status is PaymentStatus.SUCCEEDED,
            transaction_id=record.payment_id,
            order_id=record.order_id,
            amount_minor=record.amount_minor,
            currency=record.currency,
            status=record.status,
            session_id=payment.get("payments_session_id"),
            method=record.method,
            created_at=record.created_at,
        )

    def _verification_from_session(self, session: dict[str, Any]) -> PaymentVerification:
        amount_minor = to_minor_units(session["amount"])
        currency = session.get("currency") or self.currency
        session_id = session.get("payments_session_id")
        order_id = meta_value(session.get("meta_data"), "order_id")

        payments = session.get("payments") or []
        if not payments:
            return PaymentVerification(
                payment_method=PaymentMethod.ZOHO,
                verified=True,
                succeeded=False,
                transaction_id=None,
                order_id=order_id,
                amount_minor=amount_minor,
                currency=currency,
                status=PaymentStatus.PENDING,
                session_id=session_id,
                created_at=timestamp_to_datetime(session.get("created_time")),
            )

        payment = payments[0]
        status = normalize_status(payment.get("status"))
        return PaymentVerification(
            payment_method=PaymentMethod.ZOHO,
            verified=True,
            succeeded=status is PaymentStatus.SUCCEEDED,
            transaction_id=payment["payment_id"],
            order_id=order_id,
            amount_minor=amount_minor,
            currency=currency,
            status=status,
            session_id=session_id,
            created_at=timestamp_to_datetime(payment.get("created_time")),
        )

    async def refund_payment(
        self, payment_id: str, amount_minor: int, reason: str | None = None
    ) -> RefundResult:
        """
        Refund a Zoho payment.

        Args:
            payment_id: Zoho payment ID
            amount_minor: Amount to refund in paise (sent as rupees)
            reason: Refund reason; defaults to requested_by_customer

        Returns:
            Refund result

        Raises:
            PaymentProviderError: If refund fails
        """
        credentials = await self.load_credentials()
        reason = reason or DEFAULT_REFUND_REASON

        payload = {
            "amount": float(to_major_decimal(amount_minor)),
            "reason": reason,
            "type": REFUND_TYPE,
        }

        logger.info("creating_zoho_refund", payment_id=payment_id, amount_minor=amount_minor)

        body = await self._request(
            "POST", f"/payments/{payment_id}/refunds", credentials, "refund", json=payload
        )

        refund = body.get("refund")
        refund_id = refund.get("refund_id") if isinstance(refund, dict) else None
        if not refund_id:
            raise PaymentProviderError(
                PROVIDER, "Refund response did not include a refund ID", payload=body
            )

        logger.info("zoho_refund_created", refund_id=refund_id, status=refund.get("status"))

        return RefundResult(
            refund_id=str(refund_id),
            transaction_id=refund.get("payment_id") or payment_id,
            amount_minor=self._amount_minor(refund.get("amount"), amount_minor),
            currency=refund.get("currency") or self.currency,
            status=refund.get("status") or "initiated",
            reason=refund.get("reason") or reason,
            processed_at=timestamp_to_datetime(refund.get("date") or refund.get("created_time"))
            or datetime.now(UTC),
        )

    async def get_payment_status(self, payment_id: str) -> PaymentRecord:
        """
        Fetch a single payment.

        Raises:
            PaymentProviderError: If the lookup fails or the payment is malformed
        """
        credentials = await self.load_credentials()
        body = await self._request("GET", f"/payments/{payment_id}", credentials, "fetch_payment")
        try:
            return self._to_record(body["payment"])
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise PaymentProviderError(
                PROVIDER, "Malformed payment in Zoho response", payload=body
            ) from exc

    async def list_payments(self) -> list[PaymentRecord]:
        """List recent payments, dropping malformed entries."""
        credentials = await self.load_credentials()

        # Some Zoho Payments accounts reject account_id on the list endpoint
        # while others require it: unscoped first, then one scoped retry.
        try:
            body = await self._request(
                "GET", "/payments", credentials, "list_payments", scoped=False
            )
        except TokenRefreshError:
            raise
        except PaymentProviderError as exc:
            logger.warning("zoho_list_payments_retrying_with_account_id", error=exc.message)
            body = await self._request("GET", "/payments", credentials, "list_payments")

        records = []
        for item in body.get("payments") or []:
            try:
                records.append(self._to_record(item))
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning("zoho_payment_skipped", error=str(exc))
        return records

    async def test_connection(self) -> ConnectionReport:
        """
        Probe the Zoho Payments API with the stored credentials.

        Tries the account ID as query parameter, then as header, then the
        accounts endpoint, then an unscoped payments list. Never raises.
        """
        try:
            credentials = await self.load_credentials()
            await self.token_manager.get_access_token()
        except PaymentGatewayError as exc:
            logger.error("zoho_connection_test_failed", error=str(exc))
            return ConnectionReport(
                success=False,
                message=str(exc),
                payments_status="failed",
                errors=(str(exc),),
            )

        account_id = credentials.payments_account_id
        if not ACCOUNT_ID_PATTERN.match(account_id):
            message = f"Invalid account ID format. Expected 8-12 digits, got: {account_id}"
            logger.error("zoho_connection_test_failed", error=message)
            return ConnectionReport(
                success=False,
                message=message,
                payments_status="failed",
                payments_account_id=account_id,
                errors=(message,),
            )

        approaches: list[tuple[str, str, bool, dict[str, str] | None]] = [
            ("query_params", "/payments", True, None),
            ("header", "/payments", False, {ACCOUNT_ID_HEADER: account_id}),
            ("accounts_endpoint", "/accounts", False, None),
            ("no_account_id", "/payments", False, None),
        ]

        errors: list[str] = []
        for approach, path, scoped, headers in approaches:
            try:
                await self._request(
                    "GET", path, credentials, "test_connection", scoped=scoped, headers=headers
                )
            except PaymentProviderError as exc:
                logger.info("zoho_connection_approach_failed", approach=approach, error=exc.message)
                errors.append(f"{approach}: {exc.message}")
                continue

            logger.info("zoho_connection_test_succeeded", approach=approach)
            return ConnectionReport(
                success=True,
                message="Zoho Payments connected",
                payments_status="connected",
                payments_account_id=account_id,
                successful_approach=approach,
                errors=tuple(errors),
            )

        return ConnectionReport(
            success=False,
            message="Zoho Payments connection failed - check permissions and subscription",
            payments_status="failed",
            payments_account_id=account_id,
            errors=tuple(errors),
        )

    def _amount_minor(self, value: Any, default: int) -> int:
        if value in (None, ""):
            return default
        try:
            return to_minor_units(value)
        except ValueError:
            return default

    def _to_record(self, payment: dict[str, Any]) -> PaymentRecord:
        meta_data = payment.get("meta_data")
        payment_method = payment.get("payment_method")
        provider_status = str(payment.get("status") or "pending")

        return PaymentRecord(
            payment_id=str(payment["payment_id"]),
            amount_minor=to_minor_units(payment["amount"]),
            currency=payment.get("currency") or self.currency,
            status=normalize_status(provider_status),
            provider_status=provider_status,
            order_id=meta_value(meta_data, "order_id") or payment.get("reference_number"),
            method=payment_method.get("type") if isinstance(payment_method, dict) else None,
            email=payment.get("email") or meta_value(meta_data, "customer_email"),
            created_at=timestamp_to_datetime(payment.get("date") or payment.get("created_time")),
        )
