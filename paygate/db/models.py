"""
Database Models - credential store table.

The gateway persists exactly one thing: a JSONB credential bundle per
payment provider, keyed by provider type.
"""

from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def utc_now() -> datetime:
    return datetime.now(UTC)


class ProviderConfig(Base):
    """
    One provider's credential bundle.

    For Zoho the bundle also holds the short-lived access token and its
    expiry, rewritten on every refresh.
    """

    __tablename__ = "provider_configs"

    id: Mapped[UUID] = mapped_column(PG_UUID(as_uuid=True), primary_key=True, default=uuid4)
    provider_type: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    config_data: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint(
            "provider_type IN ('zoho', 'razorpay')", name="ck_provider_configs_type"
        ),
        Index("idx_provider_configs_active", "provider_type", "is_active"),
    )

    def merge_credentials(self, partial: dict[str, Any]) -> None:
        """Overlay partial onto the bundle, keeping keys it does not name."""
        # Reassign so the JSONB column is flagged dirty
        self.config_data = {**(self.config_data or {}), **partial}

    def __repr__(self) -> str:
        # Key names only; values are secrets
        return (
            f"<ProviderConfig(type={self.provider_type}, active={self.is_active}, "
            f"keys={sorted(self.config_data or {})})>"
        )
