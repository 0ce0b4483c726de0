"""
Configuration management for the WhatsApp Device Gateway.

Loads environment variables from .env file and provides a typed, immutable
configuration object. Components receive this object at construction time;
nothing reads the environment inside a request handler.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
env_path = Path(__file__).parent / ".env"
load_dotenv(env_path)

logger = logging.getLogger(__name__)

DEFAULT_CHAT_API_URL = "https://app.gowa.com.br/api/v1"


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or value.strip() == "":
        return None
    return float(value)


@dataclass(frozen=True)
class GatewayConfig:
    """Gateway configuration from environment."""

    # Provider API (device sessions)
    provider_api_url: str = "http://localhost:8080"
    provider_api_key: str = ""

    # Request authentication
    auth_key: str = ""
    gateway_user: str = ""

    # Webhook relay
    verify_token: str = ""
    chat_api_url: str = DEFAULT_CHAT_API_URL
    chat_send_post_url: str = ""
    send_post_url: str = ""
    forward_timeout: Optional[float] = None

    # Hook administration
    hooks_data_path: str = "./data.json"
    max_webhooks: int = 100

    # Server
    port: int = 8000
    environment: str = "development"

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        """
        Load configuration from environment variables.

        Empty strings mean "not configured": an empty PROVIDER_API_KEY
        disables the global key check and an empty AUTH_KEY switches
        request authentication to the derived key.
        """
        return cls(
            provider_api_url=os.getenv("PROVIDER_API_URL", "http://localhost:8080").rstrip("/"),
            provider_api_key=os.getenv("PROVIDER_API_KEY", ""),
            auth_key=os.getenv("AUTH_KEY", ""),
            gateway_user=os.getenv("GATEWAY_USER", ""),
            verify_token=os.getenv("VERIFY_TOKEN", ""),
            chat_api_url=os.getenv("CHAT_API_URL", DEFAULT_CHAT_API_URL).rstrip("/"),
            chat_send_post_url=os.getenv("CHAT_SEND_POST_URL", ""),
            send_post_url=os.getenv("SEND_POST_URL", ""),
            forward_timeout=_optional_float(os.getenv("FORWARD_TIMEOUT")),
            hooks_data_path=os.getenv("HOOKS_DATA_PATH", "./data.json"),
            max_webhooks=int(os.getenv("MAX_WEBHOOKS", "100")),
            port=int(os.getenv("GATEWAY_PORT", "8000")),
            environment=os.getenv("ENVIRONMENT", "development"),
        )

    def validate(self) -> bool:
        """Check that the recommended settings are present."""
        recommended = {
            "PROVIDER_API_KEY": self.provider_api_key,
            "VERIFY_TOKEN": self.verify_token,
        }
        missing = [name for name, value in recommended.items() if not value]

        if missing:
            logger.warning(
                f"Missing recommended environment variables: {', '.join(missing)}",
                extra={"missing": missing},
            )
            return False

        return True


def get_config() -> GatewayConfig:
    """Get gateway configuration from the current environment."""
    return GatewayConfig.from_env()
