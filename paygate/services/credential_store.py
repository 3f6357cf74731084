"""
Credential Store - Persistent provider secrets and Zoho token state.

The store is the only persisted state the gateway depends on. Updates merge
into the existing bundle; fields not named in an update are kept.
"""

import asyncio
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from paygate.db.models import ProviderConfig
from paygate.exceptions import CredentialStoreError

logger = get_logger(__name__)

ZOHO_PROVIDER_TYPE = "zoho"


class CredentialStore(Protocol):
    """Read/merge access to one provider's credential bundle."""

    async def get_credentials(self) -> dict[str, Any]:
        """
        Load the credential bundle, empty when none has been stored.

        Raises:
            CredentialStoreError: If the store is unreachable
        """
        ...

    async def update_credentials(self, partial: dict[str, Any]) -> None:
        """
        Merge fields into the stored bundle.

        Raises:
            CredentialStoreError: If the write fails
        """
        ...


class InMemoryCredentialStore:
    """Process-local credential store, seeded from settings."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})
        self._lock = asyncio.Lock()

    async def get_credentials(self) -> dict[str, Any]:
        return dict(self._data)

    async def update_credentials(self, partial: dict[str, Any]) -> None:
        async with self._lock:
            self._data.update(partial)
        logger.info("credentials_updated", store="memory", fields=sorted(partial))


class DatabaseCredentialStore:
    """
    Credential store backed by the provider_configs table.

    One row per provider; the bundle lives in the JSONB config_data column.
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
        provider_type: str = ZOHO_PROVIDER_TYPE,
    ) -> None:
        self._session_factory = session_factory
        self.provider_type = provider_type

    async def get_credentials(self) -> dict[str, Any]:
        try:
            async with self._session_factory() as session:
                stmt = select(ProviderConfig).where(
                    ProviderConfig.provider_type == self.provider_type,
                    ProviderConfig.is_active == True,  # noqa: E712
                )
                result = await session.execute(stmt)
                config = result.scalar_one_or_none()
        except SQLAlchemyError as exc:
            logger.error(
                "credential_store_read_failed", provider=self.provider_type, error=str(exc)
            )
            raise CredentialStoreError(f"Failed to read {self.provider_type} credentials") from exc

        if config is None:
            # No row is an empty bundle; parse_credentials names the missing fields
            logger.warning("credentials_not_found", provider=self.provider_type)
            return {}

        return dict(config.config_data)

    async def update_credentials(self, partial: dict[str, Any]) -> None:
        try:
            async with self._session_factory() as session:
                stmt = (
                    select(ProviderConfig)
                    .where(ProviderConfig.provider_type == self.provider_type)
                    .with_for_update()
                )
                result = await session.execute(stmt)
                config = result.scalar_one_or_none()

                if config is None:
                    session.add(
                        ProviderConfig(
                            provider_type=self.provider_type,
                            is_active=True,
                            config_data=dict(partial),
                        )
                    )
                else:
                    config.merge_credentials(partial)

                await session.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "credential_store_write_failed", provider=self.provider_type, error=str(exc)
            )
            raise CredentialStoreError(
                f"Failed to update {self.provider_type} credentials"
            ) from exc

        logger.info(
            "credentials_updated",
            store="database",
            provider=self.provider_type,
            fields=sorted(partial),
        )
