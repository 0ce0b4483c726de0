"""
Provider API result types.

Client operations never raise to callers: every outcome comes back as a
ProviderResult with success=False and an error message on failure.
"""

from dataclasses import dataclass
from typing import Any, Dict, Literal, Optional

InstanceStatus = Literal["connected", "disconnected", "connecting"]


@dataclass
class Instance:
    """A WhatsApp device session as reported by the provider."""

    instanceName: str
    instanceId: str
    status: InstanceStatus
    number: Optional[str] = None
    ownerJid: Optional[str] = None
    profileName: Optional[str] = None
    profilePicUrl: Optional[str] = None
    token: Optional[str] = None
    disconnectionReasonCode: Optional[Any] = None
    disconnectionObject: Optional[Any] = None
    disconnectionAt: Optional[str] = None
    createdAt: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {key: value for key, value in self.__dict__.items() if value is not None}


@dataclass
class ProviderResult:
    """Outcome of a provider operation, shaped like the gateway's JSON envelope."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    message: Optional[str] = None
    version: Optional[str] = None
    steps: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"success": self.success}
        for key in ("message", "version", "steps", "data", "error"):
            value = getattr(self, key)
            if value is not None:
                payload[key] = _plain(value)
        return payload


@dataclass
class InstanceLookup:
    """Result of finding an instance by name or number."""

    exists: bool
    instanceName: Optional[str] = None
    status: Optional[InstanceStatus] = None
    number: Optional[str] = None
    instance: Optional[Instance] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"exists": self.exists}
        if self.instance is not None:
            payload["instance"] = self.instance.to_dict()
            payload["number"] = self.number
        elif self.instanceName is not None:
            payload["instanceName"] = self.instanceName
        if self.status is not None:
            payload["status"] = self.status
        return payload


@dataclass
class CreateInstanceOptions:
    """Optional settings forwarded on instance creation."""

    rejectCall: Optional[bool] = None
    msgCall: Optional[str] = None
    groupsIgnore: Optional[bool] = None
    alwaysOnline: Optional[bool] = None
    readMessages: Optional[bool] = None
    readStatus: Optional[bool] = None
    syncFullHistory: Optional[bool] = None
    proxyHost: Optional[str] = None
    proxyPort: Optional[str] = None
    proxyProtocol: Optional[str] = None
    proxyUsername: Optional[str] = None
    proxyPassword: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        payload = {}
        for key, value in self.__dict__.items():
            # Proxy strings are only sent when non-empty; flags whenever set.
            if key.startswith("proxy"):
                if value:
                    payload[key] = value
            elif value is not None:
                payload[key] = value
        return payload


def _plain(value: Any) -> Any:
    if hasattr(value, "to_dict"):
        return value.to_dict()
    if isinstance(value, list):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    return value
