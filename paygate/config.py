"""
Application Configuration - Pydantic Settings for type-safe config.

Provider secrets are checked lazily by each adapter; only settings the
service cannot start without are validated here.
FAIL FAST - Critical config is validated at startup.
"""

import sys
from typing import Any

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when critical configuration is missing or invalid."""

    pass


CREDENTIAL_STORE_BACKENDS = ("database", "memory")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Service
    api_title: str = "Publishing Payment Gateway"
    api_version: str = "0.1.0"
    api_description: str = "Razorpay and Zoho Payments behind one contract"
    environment: str = "production"  # "development" exposes error details

    # Razorpay (card/UPI gateway)
    razorpay_key_id: str = ""  # rzp_test_... or rzp_live_...
    razorpay_key_secret: str = ""
    razorpay_api_url: str = "https://api.razorpay.com/v1"

    # Zoho Payments (session gateway)
    zoho_payments_url: str = "https://payments.zoho.in/api/v1"
    zoho_token_url: str = "https://accounts.zoho.in/oauth/v2/token"

    # Seed values for the in-memory credential store
    zoho_client_id: str = ""
    zoho_client_secret: str = ""
    zoho_refresh_token: str = ""
    zoho_organization_id: str = ""
    zoho_payments_account_id: str = ""
    zoho_pay_api_key: str = ""
    zoho_pay_signing_key: str = ""

    # Payments
    payment_currency: str = "INR"
    default_product_info: str = "DNA Publications Books"
    provider_timeout_seconds: float = 30.0

    # Credential store
    credential_store_backend: str = "database"
    database_url: str = ""
    database_pool_size: int = 5
    database_max_overflow: int = 5
    database_pool_timeout: int = 30
    database_pool_recycle: int = 3600

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json or console

    # Observability - Metrics
    metrics_enabled: bool = True

    # Observability - Tracing
    tracing_enabled: bool = True
    otlp_endpoint: str = "http://otel-collector:4317"
    otlp_insecure: bool = True
    service_name: str = "paygate-api"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_critical_config(self) -> "Settings":
        """
        FAIL FAST: Validate critical configuration at startup.

        The credential store must be reachable for Zoho token refresh to
        persist; a missing database URL would only surface on the first
        Zoho call otherwise.
        """
        errors: list[str] = []

        if self.credential_store_backend not in CREDENTIAL_STORE_BACKENDS:
            errors.append(
                f"CREDENTIAL_STORE_BACKEND must be one of {CREDENTIAL_STORE_BACKENDS}, "
                f"got: {self.credential_store_backend}"
            )
        elif self.credential_store_backend == "database":
            if not self.database_url:
                errors.append("DATABASE_URL is required for the database credential store")
            elif not self.database_url.startswith(("postgresql", "postgres")):
                errors.append(
                    f"DATABASE_URL must be a PostgreSQL URL, got: {self.database_url[:20]}..."
                )

        if self.provider_timeout_seconds <= 0:
            errors.append("PROVIDER_TIMEOUT_SECONDS must be positive")

        if errors:
            error_msg = "\n".join(
                [
                    "",
                    "=" * 60,
                    "CRITICAL CONFIGURATION ERROR - APPLICATION CANNOT START",
                    "=" * 60,
                    *[f"  ✗ {e}" for e in errors],
                    "=" * 60,
                    "",
                ]
            )
            print(error_msg, file=sys.stderr)
            raise ConfigurationError(error_msg)

        return self

    @property
    def is_development(self) -> bool:
        """Error details (messages, tracebacks, provider payloads) are exposed."""
        return self.environment.lower() == "development"

    def zoho_seed_credentials(self) -> dict[str, Any]:
        """Credential bundle for the in-memory store, using the store's key names."""
        seed = {
            "ZOHO_CLIENT_ID": self.zoho_client_id,
            "ZOHO_CLIENT_SECRET": self.zoho_client_secret,
            "ZOHO_REFRESH_TOKEN": self.zoho_refresh_token,
            "ZOHO_ORGANIZATION_ID": self.zoho_organization_id,
            "ZOHO_PAYMENTS_ACCOUNT_ID": self.zoho_payments_account_id,
            "ZOHO_PAY_API_KEY": self.zoho_pay_api_key,
            "ZOHO_PAY_SIGNING_KEY": self.zoho_pay_signing_key,
        }
        return {key: value for key, value in seed.items() if value}


# Global settings instance - validates at import time
settings = Settings()


def get_settings() -> Settings:
    """Get application settings instance."""
    return settings
