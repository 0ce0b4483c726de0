"""
Abstract account-config store interface.

The webhook router and the hook administration routes depend only on this
interface. Implementations are read-through: every call goes to the backing
storage, nothing is cached in process.
"""

from abc import ABC, abstractmethod
from typing import Optional

from store.types import AccountWebhookConfig


class StoreError(Exception):
    """Backing storage could not be read or written."""
    pass


class AccountConfigStore(ABC):
    """
    Key-value store of AccountWebhookConfig records keyed by account id.

    Failures of the backing storage raise StoreError. Callers on the
    webhook path treat that as "account unknown".
    """

    @abstractmethod
    async def get(self, account_id: str) -> Optional[AccountWebhookConfig]:
        """Return the account's config, or None when the account is unknown."""
        raise NotImplementedError

    @abstractmethod
    async def upsert(self, config: AccountWebhookConfig) -> AccountWebhookConfig:
        """Create or replace the config for ``config.account_id``."""
        raise NotImplementedError

    @abstractmethod
    async def delete(self, account_id: str) -> bool:
        """Remove the account. Returns False when it did not exist."""
        raise NotImplementedError

    @abstractmethod
    async def list_all(self) -> dict[str, AccountWebhookConfig]:
        """All configs keyed by account id."""
        raise NotImplementedError

    async def count(self) -> int:
        return len(await self.list_all())
