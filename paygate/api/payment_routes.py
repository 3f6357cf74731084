"""
Payment Routes - Storefront checkout, verification, refund and listing.

NO DICTIONARIES - Requests/responses use Pydantic models. The one exception
is verify-payment, whose body is the provider's raw checkout callback.

Gateway exceptions propagate to the handlers registered in paygate.main.
"""

from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from paygate.api.dependencies import get_payment_gateway
from paygate.models.api import (
    AllTransactionsResponse,
    CreatePaymentRequest,
    CreatePaymentResponse,
    RefundRequest,
    RefundResponse,
    TransactionStatusResponse,
    VerifyPaymentResponse,
)
from paygate.services.payment_gateway import PaymentGateway

router = APIRouter(prefix="/api/payment", tags=["payment"])


@router.post(
    "/create-payment",
    response_model=CreatePaymentResponse,
    response_model_exclude_none=True,
)
async def create_payment(
    request: CreatePaymentRequest,
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> CreatePaymentResponse:
    """
    Create a checkout with Razorpay or Zoho Payments.

    Razorpay: returns razorpayOrderId and keyId for the checkout widget.
    Zoho: returns sessionId and sessionData for the checkout widget.
    """
    return await gateway.create_payment(request)


@router.post(
    "/verify-payment",
    response_model=VerifyPaymentResponse,
    response_model_exclude_none=True,
)
async def verify_payment(
    payload: dict[str, Any] = Body(...),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> VerifyPaymentResponse:
    """
    Verify the callback the checkout widget handed to the storefront.

    Body: the provider callback fields plus paymentMethod.
    """
    payment_method = payload.get("paymentMethod") or payload.get("payment_method")
    return await gateway.verify_payment(payload, payment_method)


@router.post("/process-refund", response_model=RefundResponse)
async def process_refund(
    request: RefundRequest,
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> RefundResponse:
    """Refund a payment. refundAmount takes precedence over amount."""
    return await gateway.process_refund(request)


@router.get("/transaction-status/{transaction_id}", response_model=TransactionStatusResponse)
async def get_transaction_status(
    transaction_id: str,
    payment_method: str | None = Query(None, alias="paymentMethod"),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> TransactionStatusResponse:
    """Look up one payment with its provider."""
    return await gateway.get_transaction_status(transaction_id, payment_method)


@router.get("/transactions", response_model=AllTransactionsResponse)
async def get_all_transactions(
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> AllTransactionsResponse:
    """
    Recent transactions from both providers.

    Always succeeds; a failing provider is reported in its own section.
    """
    return await gateway.get_all_transactions()
