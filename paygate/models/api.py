"""
API Models - Pydantic models for request/response validation.

NO DICTIONARIES - All data structures are strongly typed.
JSON field names are camelCase to match the storefront checkout contract.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

# Upper bound for any amount in major units; keeps minor-unit math exact
MAX_AMOUNT = Decimal("1000000000")


class PaymentMethod(str, Enum):
    """Supported payment providers."""

    RAZORPAY = "razorpay"
    ZOHO = "zoho"


class PaymentStatus(str, Enum):
    """Provider-neutral payment status."""

    CREATED = "created"
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"


class CamelModel(BaseModel):
    """Base model serialized with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================================
# Create Payment Models
# ============================================================================


class CreatePaymentRequest(CamelModel):
    """POST /api/payment/create-payment request body."""

    order_id: str = Field(..., min_length=1, max_length=255)
    amount: Decimal = Field(
        ..., gt=0, le=MAX_AMOUNT, description="Amount in major currency units"
    )
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: str = Field(..., min_length=3, max_length=255)
    customer_phone: str | None = Field(None, max_length=32)
    product_info: str | None = Field(None, max_length=500)
    # Free-form so the gateway can report unsupported methods itself
    payment_method: str = Field(..., min_length=1, max_length=50)


class SessionData(CamelModel):
    """Zoho checkout widget initialization data."""

    session_id: str
    amount: float
    currency: str
    description: str | None = None
    invoice_number: str | None = None


class CreatePaymentResponse(CamelModel):
    """
    POST /api/payment/create-payment response.

    Razorpay responses carry amount in paise (the checkout widget's unit);
    Zoho responses carry the requested amount in rupees.
    """

    success: bool = True
    payment_method: PaymentMethod
    amount: int | float
    currency: str
    customer_name: str
    customer_email: str
    customer_phone: str | None = None
    product_info: str | None = None

    # Razorpay
    razorpay_order_id: str | None = None
    key_id: str | None = None

    # Zoho
    payment_id: str | None = None
    session_id: str | None = None
    session_data: SessionData | None = None


# ============================================================================
# Verify Payment Models
# ============================================================================


class VerifyPaymentResponse(CamelModel):
    """POST /api/payment/verify-payment response."""

    success: bool
    payment_method: PaymentMethod
    transaction_id: str | None
    order_id: str | None = None
    amount: int = Field(..., description="Amount in major currency units")
    currency: str
    verified: bool
    status: PaymentStatus
    session_id: str | None = None


# ============================================================================
# Refund Models
# ============================================================================


class RefundRequest(CamelModel):
    """
    POST /api/payment/process-refund request body.

    Every field is optional here; the gateway reports which one is missing.
    """

    transaction_id: str | None = None
    amount: Decimal | None = Field(None, le=MAX_AMOUNT)
    refund_amount: Decimal | None = Field(None, le=MAX_AMOUNT)
    reason: str | None = Field(None, max_length=255)
    payment_method: str | None = None


class RefundResponse(CamelModel):
    """POST /api/payment/process-refund response."""

    success: bool = True
    refund_id: str
    refund_amount: int = Field(..., description="Amount in major currency units")
    status: str
    transaction_id: str
    processed_at: datetime
    reason: str | None = None


# ============================================================================
# Transaction Models
# ============================================================================


class TransactionStatusResponse(CamelModel):
    """GET /api/payment/transaction-status/{id} response."""

    success: bool = True
    payment_id: str
    status: PaymentStatus
    amount: int
    currency: str


class TransactionItem(CamelModel):
    """Single transaction in a provider listing."""

    payment_id: str
    order_id: str | None = None
    amount: int
    currency: str
    status: PaymentStatus
    method: str | None = None
    email: str | None = None
    created_at: datetime | None = None


class ProviderTransactions(CamelModel):
    """Transactions from one provider; failures are reported, not raised."""

    success: bool
    transactions: list[TransactionItem] = Field(default_factory=list)
    error: str | None = None


class AllTransactionsResponse(CamelModel):
    """GET /api/payment/transactions response."""

    success: bool = True
    razorpay: ProviderTransactions
    zoho: ProviderTransactions


# ============================================================================
# Zoho Administration Models
# ============================================================================


class TokenRefreshResponse(CamelModel):
    """POST /api/zoho/refresh-token response. The token itself is never echoed."""

    success: bool = True
    message: str
    token_expires_at: int


class ConnectionTestResponse(CamelModel):
    """GET /api/zoho/test-connection response."""

    success: bool
    message: str
    payments_status: str
    payments_account_id: str | None = None
    successful_approach: str | None = None
    error: str | None = None


# ============================================================================
# Error / Health Models
# ============================================================================


class ErrorResponse(CamelModel):
    """Error body returned by every exception handler."""

    success: bool = False
    message: str
    error: str | None = None
    details: dict[str, str] | None = None


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str
    service: str
    version: str
