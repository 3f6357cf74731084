"""
Payment Gateway - Dispatches storefront operations to the chosen provider.

NO DICTIONARIES - Provider results are typed dataclasses; responses are the
Pydantic API models.

Amounts arrive in major units, are held as integer minor units and are
reported back as whole major units. Input validation happens here, before
any provider (and therefore any network call) is touched.
"""

import asyncio
from collections.abc import Mapping
from typing import Any

from structlog import get_logger

from paygate.exceptions import (
    InvalidPaymentDataError,
    InvalidRefundAmountError,
    MissingPaymentMethodError,
    MissingTransactionIdError,
    UnsupportedPaymentMethodError,
)
from paygate.models.api import (
    AllTransactionsResponse,
    CreatePaymentRequest,
    CreatePaymentResponse,
    PaymentMethod,
    ProviderTransactions,
    RefundRequest,
    RefundResponse,
    SessionData,
    TransactionItem,
    TransactionStatusResponse,
    VerifyPaymentResponse,
)
from paygate.models.domain import PaymentIntent, PaymentRecord
from paygate.observability.metrics import metrics, track_provider_operation
from paygate.observability.tracing import add_span_attributes, payment_span
from paygate.services.currency import to_major_decimal, to_major_units, to_minor_units
from paygate.services.payment_provider import PaymentProvider

logger = get_logger(__name__)


class PaymentGateway:
    """
    Provider-agnostic payment facade.

    Holds a dispatch table from payment method to provider adapter. Adapters
    are injected so tests can substitute fakes.
    """

    def __init__(
        self,
        providers: Mapping[PaymentMethod, PaymentProvider],
        currency: str = "INR",
        default_product_info: str = "DNA Publications Books",
    ) -> None:
        """
        Initialize the gateway.

        Args:
            providers: Adapter per payment method
            currency: Currency for new payments
            default_product_info: Description used when a request has none
        """
        self.providers = dict(providers)
        self.currency = currency
        self.default_product_info = default_product_info

    def resolve_method(self, payment_method: str | PaymentMethod | None) -> PaymentMethod:
        """
        Parse a payment method name.

        Raises:
            MissingPaymentMethodError: If no method is given
            UnsupportedPaymentMethodError: If the method is unknown or has no adapter
        """
        if payment_method is None or not str(payment_method).strip():
            raise MissingPaymentMethodError()

        if isinstance(payment_method, PaymentMethod):
            method = payment_method
        elif not isinstance(payment_method, str):
            # Callback bodies are untyped JSON
            raise UnsupportedPaymentMethodError(str(payment_method))
        else:
            try:
                method = PaymentMethod(payment_method.strip().lower())
            except ValueError:
                raise UnsupportedPaymentMethodError(payment_method) from None

        if method not in self.providers:
            raise UnsupportedPaymentMethodError(method.value)
        return method

    async def create_payment(self, request: CreatePaymentRequest) -> CreatePaymentResponse:
        """
        Create a checkout with the requested provider.

        Razorpay responses report the amount in paise, since that is what the
        Razorpay checkout widget consumes; Zoho responses report rupees.

        Raises:
            UnsupportedPaymentMethodError: If the method is unknown
            ProviderNotConfiguredError: If the provider lacks credentials
            InvalidPaymentDataError: If the amount is unusable or the provider rejects it
            PaymentProviderError: If the provider call fails
        """
        method = self.resolve_method(request.payment_method)
        try:
            amount_minor = to_minor_units(request.amount)
        except ValueError:
            raise InvalidPaymentDataError("Invalid payment amount") from None
        intent = PaymentIntent(
            order_id=request.order_id,
            amount_minor=amount_minor,
            currency=self.currency,
            customer_name=request.customer_name,
            customer_email=request.customer_email,
            customer_phone=request.customer_phone,
            product_info=request.product_info or self.default_product_info,
            payment_method=method,
        )

        logger.info(
            "creating_payment",
            payment_method=method.value,
            order_id=intent.order_id,
            amount_minor=intent.amount_minor,
        )

        with (
            payment_span(
                "create", method.value, order_id=intent.order_id, amount_minor=intent.amount_minor
            ) as span,
            track_provider_operation(method.value, "create_payment"),
        ):
            checkout = await self.providers[method].create_payment(intent)
            add_span_attributes(span, reference_id=checkout.reference_id)

        response = CreatePaymentResponse(
            payment_method=method,
            amount=checkout.amount_minor,
            currency=checkout.currency,
            customer_name=intent.customer_name,
            customer_email=intent.customer_email,
            customer_phone=intent.customer_phone,
            product_info=intent.product_info,
        )

        if method is PaymentMethod.RAZORPAY:
            response.razorpay_order_id = checkout.reference_id
            response.key_id = checkout.key_id
        else:
            response.amount = float(to_major_decimal(intent.amount_minor))
            response.payment_id = checkout.reference_id
            response.session_id = checkout.reference_id
            response.session_data = SessionData(
                session_id=checkout.reference_id,
                amount=float(to_major_decimal(checkout.amount_minor)),
                currency=checkout.currency,
                description=checkout.description,
                invoice_number=checkout.invoice_number,
            )

        logger.info(
            "payment_created",
            payment_method=method.value,
            order_id=intent.order_id,
            reference_id=checkout.reference_id,
        )
        return response

    async def verify_payment(
        self, response_data: Mapping[str, Any], payment_method: str | PaymentMethod | None
    ) -> VerifyPaymentResponse:
        """
        Verify a completed checkout.

        Raises:
            MissingPaymentMethodError: If no method is given
            UnsupportedPaymentMethodError: If the method is unknown
            PaymentValidationError: If the callback lacks required fields
            InvalidSignatureError: If a Razorpay signature does not match
            VerificationFailedError: If a Zoho payment cannot be resolved
        """
        method = self.resolve_method(payment_method)

        with (
            payment_span("verify", method.value) as span,
            track_provider_operation(method.value, "verify_payment"),
        ):
            verification = await self.providers[method].verify_payment(response_data)
            add_span_attributes(
                span, transaction_id=verification.transaction_id, status=verification.status
            )

        logger.info(
            "payment_verified",
            payment_method=method.value,
            transaction_id=verification.transaction_id,
            status=verification.status.value,
        )

        return VerifyPaymentResponse(
            success=verification.succeeded,
            payment_method=method,
            transaction_id=verification.transaction_id,
            order_id=verification.order_id,
            amount=to_major_units(verification.amount_minor),
            currency=verification.currency,
            verified=verification.verified,
            status=verification.status,
            session_id=verification.session_id,
        )

    async def process_refund(self, request: RefundRequest) -> RefundResponse:
        """
        Refund a payment.

        The effective amount is refund_amount when present, otherwise amount.
        Inputs are checked in order (transaction ID, amount, method) and every
        failure is raised before the provider is called.

        Raises:
            MissingTransactionIdError: If the transaction ID is empty
            InvalidRefundAmountError: If the effective amount is absent or not positive
            MissingPaymentMethodError: If no method is given
            UnsupportedPaymentMethodError: If the method is unknown
            PaymentProviderError: If the refund call fails
        """
        transaction_id = (request.transaction_id or "").strip()
        if not transaction_id:
            raise MissingTransactionIdError()

        amount = request.refund_amount if request.refund_amount is not None else request.amount
        if amount is None:
            raise InvalidRefundAmountError(amount)
        try:
            amount_minor = to_minor_units(amount)
        except ValueError:
            raise InvalidRefundAmountError(amount) from None
        if amount_minor <= 0:
            raise InvalidRefundAmountError(amount)

        method = self.resolve_method(request.payment_method)

        logger.info(
            "processing_refund",
            payment_method=method.value,
            transaction_id=transaction_id,
            amount_minor=amount_minor,
        )

        with (
            payment_span(
                "refund", method.value, transaction_id=transaction_id, amount_minor=amount_minor
            ) as span,
            track_provider_operation(method.value, "refund_payment"),
        ):
            refund = await self.providers[method].refund_payment(
                transaction_id, amount_minor, request.reason
            )
            add_span_attributes(span, refund_id=refund.refund_id)

        metrics.record_refund(method.value, refund.amount_minor)
        logger.info(
            "refund_processed",
            payment_method=method.value,
            refund_id=refund.refund_id,
            status=refund.status,
        )

        return RefundResponse(
            refund_id=refund.refund_id,
            refund_amount=to_major_units(refund.amount_minor),
            status=refund.status,
            transaction_id=refund.transaction_id,
            processed_at=refund.processed_at,
            reason=refund.reason,
        )

    async def get_transaction_status(
        self, transaction_id: str, payment_method: str | PaymentMethod | None
    ) -> TransactionStatusResponse:
        """Look up a single payment with its provider."""
        if not transaction_id or not transaction_id.strip():
            raise MissingTransactionIdError()
        method = self.resolve_method(payment_method)

        with (
            payment_span("status", method.value, transaction_id=transaction_id),
            track_provider_operation(method.value, "get_payment_status"),
        ):
            record = await self.providers[method].get_payment_status(transaction_id.strip())

        return TransactionStatusResponse(
            payment_id=record.payment_id,
            status=record.status,
            amount=to_major_units(record.amount_minor),
            currency=record.currency,
        )

    async def get_all_transactions(self) -> AllTransactionsResponse:
        """
        List transactions from both providers concurrently.

        A failing provider is reported in its own branch; the call as a
        whole still succeeds.
        """
        razorpay, zoho = await asyncio.gather(
            self._collect_transactions(PaymentMethod.RAZORPAY),
            self._collect_transactions(PaymentMethod.ZOHO),
        )
        return AllTransactionsResponse(razorpay=razorpay, zoho=zoho)

    async def _collect_transactions(self, method: PaymentMethod) -> ProviderTransactions:
        provider = self.providers.get(method)
        if provider is None:
            return ProviderTransactions(success=False, error=f"{method.value} is not available")

        try:
            with track_provider_operation(method.value, "list_payments"):
                records = await provider.list_payments()
        except Exception as exc:
            logger.warning(
                "provider_transactions_failed",
                payment_method=method.value,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return ProviderTransactions(success=False, transactions=[], error=str(exc))

        return ProviderTransactions(
            success=True, transactions=[self._to_item(record) for record in records]
        )

    @staticmethod
    def _to_item(record: PaymentRecord) -> TransactionItem:
        return TransactionItem(
            payment_id=record.payment_id,
            order_id=record.order_id,
            amount=to_major_units(record.amount_minor),
            currency=record.currency,
            status=record.status,
            method=record.method,
            email=record.email,
            created_at=record.created_at,
        )
