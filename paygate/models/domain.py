"""
Domain Models - Internal payment models using dataclasses.

NO DICTIONARIES - All data structures are strongly typed immutable dataclasses.
All amounts are integer minor units (paise); adapters convert at their edge.
"""

from dataclasses import dataclass
from datetime import datetime

from paygate.models.api import PaymentMethod, PaymentStatus


@dataclass(frozen=True)
class PaymentIntent:
    """Provider-agnostic request to collect a payment."""

    order_id: str
    amount_minor: int
    currency: str
    customer_name: str
    customer_email: str
    customer_phone: str | None
    product_info: str
    payment_method: PaymentMethod

    def __post_init__(self) -> None:
        """Validate intent constraints."""
        if len(self.currency) != 3:
            raise ValueError(f"Invalid currency code: {self.currency}")


@dataclass(frozen=True)
class CheckoutResult:
    """
    Result of creating a payment with a provider.

    reference_id is the Razorpay order ID or the Zoho payment session ID.
    """

    payment_method: PaymentMethod
    reference_id: str
    amount_minor: int
    currency: str
    status: PaymentStatus
    description: str | None = None
    key_id: str | None = None  # Razorpay public key for checkout
    invoice_number: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class PaymentVerification:
    """Result of verifying a completed checkout."""

    payment_method: PaymentMethod
    verified: bool
    succeeded: bool
    transaction_id: str | None
    order_id: str | None
    amount_minor: int
    currency: str
    status: PaymentStatus
    session_id: str | None = None
    method: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class RefundResult:
    """Result of a single refund call. Partial-refund history is not tracked."""

    refund_id: str
    transaction_id: str
    amount_minor: int
    currency: str
    status: str
    reason: str | None
    processed_at: datetime


@dataclass(frozen=True)
class PaymentRecord:
    """Provider payment as returned by status and list calls."""

    payment_id: str
    amount_minor: int
    currency: str
    status: PaymentStatus
    provider_status: str
    order_id: str | None = None
    method: str | None = None
    email: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class ZohoCredentials:
    """Snapshot of the Zoho credential bundle held in the credential store."""

    client_id: str
    client_secret: str
    refresh_token: str
    organization_id: str
    payments_account_id: str
    pay_api_key: str
    pay_signing_key: str
    access_token: str | None = None
    token_expires_at: int | None = None  # epoch milliseconds


@dataclass(frozen=True)
class ConnectionReport:
    """Outcome of probing the Zoho Payments API with the stored credentials."""

    success: bool
    message: str
    payments_status: str
    payments_account_id: str | None = None
    successful_approach: str | None = None
    errors: tuple[str, ...] = ()
