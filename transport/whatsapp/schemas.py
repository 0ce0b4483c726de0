"""
Gateway Transport Layer - Pydantic Schemas

PURE DATA MODELS - NO I/O
Request and response contracts of the gateway routes.
"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

GATEWAY_NAME = "Gowa Plataforma Webhook API"
GATEWAY_CLIENT_NAME = "gowa_plataforma_api"
GATEWAY_VERSION = "2.3.5"


# ============================================================================
# WEBHOOK
# ============================================================================

class WebhookDescriptor(BaseModel):
    """Returned by the verification endpoint when no hub.mode is given."""

    status: int = 200
    message: str = GATEWAY_NAME
    version: str = GATEWAY_VERSION
    clientName: str = GATEWAY_CLIENT_NAME
    accountId: Optional[str] = None


# ============================================================================
# DEVICE ROUTES
# ============================================================================

ProxyProtocol = Literal["http", "https", "socks4", "socks5"]
PROXY_PROTOCOLS = ("http", "https", "socks4", "socks5")


class ProxySettings(BaseModel):
    """Proxy configuration for one instance, already validated."""

    enabled: bool
    host: Optional[str] = None
    port: Optional[int] = None
    protocol: Optional[ProxyProtocol] = None
    username: Optional[str] = None
    password: Optional[str] = None

    def to_provider_payload(self) -> dict:
        """Provider expects the port as a string and omits fields when disabled."""
        if not self.enabled:
            return {"enabled": False}

        payload = {
            "enabled": True,
            "host": self.host,
            "port": str(self.port),
            "protocol": self.protocol,
        }
        if self.username:
            payload["username"] = self.username
        if self.password:
            payload["password"] = self.password
        return payload


class LoginRequest(BaseModel):
    """Dashboard login credentials."""

    user: str = ""
    apiKey: str = Field("", description="Global provider API key")


# ============================================================================
# SERVICE INFO
# ============================================================================

class ServiceInfo(BaseModel):
    """Root endpoint descriptor."""

    status: int = 200
    message: str = "Gowa Devices API Success"
    version: str = GATEWAY_VERSION
    clientName: str = GATEWAY_CLIENT_NAME
