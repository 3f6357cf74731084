"""
Exception Classes - Strongly typed exception hierarchy.

NO DICTIONARIES - All exceptions have typed attributes.
"""

from typing import Any


class PaymentGatewayError(Exception):
    """Base exception for all payment gateway errors."""

    pass


# ============================================================================
# Caller input errors - raised before any network call
# ============================================================================


class PaymentValidationError(PaymentGatewayError):
    """Raised when caller input is missing or malformed."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class InvalidPaymentDataError(PaymentValidationError):
    """Raised when payment creation data fails provider-side requirements."""

    pass


class UnsupportedPaymentMethodError(PaymentValidationError):
    """Raised when the payment method is not one of the known providers."""

    def __init__(self, payment_method: str | None) -> None:
        self.payment_method = payment_method
        super().__init__(f"Unsupported payment method: {payment_method}")


class MissingTransactionIdError(PaymentValidationError):
    """Raised when a refund or status lookup has no transaction ID."""

    def __init__(self) -> None:
        super().__init__("Transaction ID is required")


class InvalidRefundAmountError(PaymentValidationError):
    """Raised when the effective refund amount is absent or not positive."""

    def __init__(self, amount: Any) -> None:
        self.amount = amount
        super().__init__(f"Refund amount must be greater than zero, got: {amount}")


class MissingPaymentMethodError(PaymentValidationError):
    """Raised when an operation needs a payment method and none was given."""

    def __init__(self) -> None:
        super().__init__("Payment method is required")


# ============================================================================
# Provider errors
# ============================================================================


class ProviderNotConfiguredError(PaymentGatewayError):
    """Raised when required provider credentials are absent."""

    def __init__(self, provider: str, missing_fields: list[str]) -> None:
        self.provider = provider
        self.missing_fields = missing_fields
        super().__init__(
            f"{provider} is not configured. Missing: {', '.join(missing_fields)}"
        )


class PaymentProviderError(PaymentGatewayError):
    """Raised when a provider API call fails or returns a failure code."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        payload: Any = None,
    ) -> None:
        self.provider = provider
        self.message = message
        self.status_code = status_code
        self.code = code
        self.payload = payload
        super().__init__(f"{provider} error: {message}")


class TokenRefreshError(PaymentProviderError):
    """Raised when the Zoho OAuth access token cannot be refreshed."""

    pass


class InvalidSignatureError(PaymentGatewayError):
    """Raised when a Razorpay checkout signature does not match."""

    def __init__(self, order_id: str, payment_id: str) -> None:
        self.order_id = order_id
        self.payment_id = payment_id
        super().__init__(f"Invalid payment signature for order {order_id}")


class VerificationFailedError(PaymentGatewayError):
    """Raised when no lookup strategy could resolve a Zoho payment."""

    def __init__(self, payment_id: str, reason: str) -> None:
        self.payment_id = payment_id
        self.reason = reason
        super().__init__(f"Payment verification failed for {payment_id}: {reason}")


class CredentialStoreError(PaymentGatewayError):
    """Raised when the credential store cannot be read or written."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(f"Credential store error: {message}")
