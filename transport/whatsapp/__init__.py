"""
Gateway Transport Layer - Module Exports

Routers are imported from their modules directly (see main.py).
"""

from .errors import ApiError, api_error_handler
from .fanout import DeliveryTarget, WebhookFanout, account_targets, url_targets
from .schemas import ProxySettings, ServiceInfo, WebhookDescriptor
from .security import (
    AuthenticationError,
    derive_auth_key,
    require_api_key,
    require_auth_key,
    verify_webhook_challenge,
)

__all__ = [
    # Errors
    "ApiError",
    "api_error_handler",
    # Fan-out
    "DeliveryTarget",
    "WebhookFanout",
    "account_targets",
    "url_targets",
    # Schemas
    "ProxySettings",
    "ServiceInfo",
    "WebhookDescriptor",
    # Security
    "AuthenticationError",
    "derive_auth_key",
    "require_api_key",
    "require_auth_key",
    "verify_webhook_challenge",
]
