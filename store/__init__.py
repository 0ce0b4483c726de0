"""
Account-config store exports.
"""

from store.base import AccountConfigStore, StoreError
from store.json_file import JsonFileAccountConfigStore
from store.stub import InMemoryAccountConfigStore
from store.types import AccountWebhookConfig

__all__ = [
    "AccountConfigStore",
    "AccountWebhookConfig",
    "InMemoryAccountConfigStore",
    "JsonFileAccountConfigStore",
    "StoreError",
]
