"""
Gateway bootstrap.

Builds the collaborators every route depends on (account-config store,
provider client, chat backend client, webhook fan-out) from one
GatewayConfig. Singleton per process; routes reach it through the
get_bootstrap dependency so tests can override it.
"""

from typing import Optional

from config import GatewayConfig, get_config
from provider.chat import ChatBackendClient
from provider.client import ProviderClient
from store.base import AccountConfigStore
from store.json_file import JsonFileAccountConfigStore
from transport.whatsapp.fanout import WebhookFanout


class GatewayBootstrap:
    """
    Holds the configured collaborators.

    Any collaborator can be passed in explicitly; the rest are built from
    the configuration.
    """

    _instance: Optional["GatewayBootstrap"] = None

    def __init__(
        self,
        config: Optional[GatewayConfig] = None,
        store: Optional[AccountConfigStore] = None,
        provider: Optional[ProviderClient] = None,
        chat: Optional[ChatBackendClient] = None,
        fanout: Optional[WebhookFanout] = None,
    ):
        self.config = config or get_config()
        self.store = store or JsonFileAccountConfigStore(self.config.hooks_data_path)
        self.provider = provider or ProviderClient(
            self.config.provider_api_url,
            api_key=self.config.provider_api_key,
        )
        self.chat = chat or ChatBackendClient(self.config.chat_api_url)
        self.fanout = fanout or WebhookFanout(timeout=self.config.forward_timeout)

    @classmethod
    def get_instance(cls, config: Optional[GatewayConfig] = None) -> "GatewayBootstrap":
        """
        Get singleton instance.

        Args:
            config: Optional custom configuration (only used first time)
        """
        if cls._instance is None:
            cls._instance = cls(config)
        return cls._instance

    @classmethod
    def reset(cls):
        """Reset singleton (for testing)."""
        cls._instance = None

    def __repr__(self) -> str:
        return (
            f"GatewayBootstrap(provider={self.config.provider_api_url}, "
            f"store={type(self.store).__name__}, "
            f"environment={self.config.environment})"
        )


def get_bootstrap() -> GatewayBootstrap:
    """FastAPI dependency returning the process-wide bootstrap."""
    return GatewayBootstrap.get_instance()
