"""
In-memory account-config store for testing and local runs.

Deterministic, no external dependencies.
"""

from typing import Optional

from store.base import AccountConfigStore
from store.types import AccountWebhookConfig


class InMemoryAccountConfigStore(AccountConfigStore):
    """Dict-backed store. Returns copies so callers cannot mutate stored records."""

    def __init__(self, configs: Optional[list[AccountWebhookConfig]] = None):
        self.storage: dict[str, AccountWebhookConfig] = {}
        for config in configs or []:
            self.storage[config.account_id] = config

    async def get(self, account_id: str) -> Optional[AccountWebhookConfig]:
        config = self.storage.get(account_id)
        return config.model_copy() if config is not None else None

    async def upsert(self, config: AccountWebhookConfig) -> AccountWebhookConfig:
        self.storage[config.account_id] = config.model_copy()
        return config

    async def delete(self, account_id: str) -> bool:
        return self.storage.pop(account_id, None) is not None

    async def list_all(self) -> dict[str, AccountWebhookConfig]:
        return {key: value.model_copy() for key, value in self.storage.items()}
