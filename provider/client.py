"""
Provider API client.

Async wrapper over the WhatsApp automation API that owns the device
sessions (Evolution-API compatible). Each operation calls one or two
provider endpoints and reshapes the JSON into the gateway's format.

Operations never raise: failures come back as ProviderResult(success=False)
or InstanceLookup(exists=False), with the provider's message when it sent one.
"""

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from .types import CreateInstanceOptions, Instance, InstanceLookup, InstanceStatus, ProviderResult

logger = logging.getLogger(__name__)

API_VERSION = "2.3.5"

PAIRING_CODE_UNAVAILABLE = (
    "To use the pairingCode, disconnect from the API and request the connection "
    "via Phone number or Pairing Code on the main WhatsApp device"
)
CONNECT_STEPS = (
    "Send the QR Code or Pairing Code to the customer and ask them to read it within 30 seconds"
)

_URL_IN_TEXT = re.compile(r"(https?://|www\.)[^\s]+", re.IGNORECASE)
_NON_DIGITS = re.compile(r"\D")

_MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "mp4": "video/mp4",
    "pdf": "application/pdf",
    "gif": "image/gif",
    "webp": "image/webp",
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
}


class ProviderError(Exception):
    """Provider API call failed (transport error or non-2xx response)."""
    pass


# ============================================================================
# PURE HELPERS
# ============================================================================

def map_status(raw: Any) -> InstanceStatus:
    """Collapse the provider's many connection states into three."""
    if not raw:
        return "disconnected"

    value = str(raw).lower()
    if value in ("connected", "online", "active", "open", "true"):
        return "connected"
    if value in ("connecting", "loading", "syncing", "starting"):
        return "connecting"
    return "disconnected"


def contains_url(text: str) -> bool:
    return bool(_URL_IN_TEXT.search(text or ""))


def digits_only(number: Any) -> str:
    return _NON_DIGITS.sub("", str(number or ""))


def file_name_from_url(url: str) -> str:
    try:
        path = urlparse(url).path
    except ValueError:
        return "file"
    return path.rsplit("/", 1)[-1] or "file"


def mime_type_from_url(url: str) -> str:
    name = file_name_from_url(url).lower()
    extension = name.rsplit(".", 1)[-1] if "." in name else ""
    return _MIME_TYPES.get(extension, "application/octet-stream")


def media_type_from_mime(mime_type: str) -> str:
    for prefix in ("image", "video", "audio"):
        if mime_type.startswith(prefix + "/"):
            return prefix
    return "document"


def _first(item: dict, *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value:
            return value
    return None


def _text(value: Any) -> Optional[str]:
    # Providers occasionally send numbers where strings are expected.
    return str(value) if value not in (None, "") else None


def instance_from_item(item: dict, key: Optional[str] = None) -> Instance:
    """Map one provider instance record onto Instance, tolerating field-name drift."""
    name = _text(_first(item, "instanceName", "name")) or key or "unknown"
    return Instance(
        instanceName=name,
        instanceId=_text(_first(item, "instanceId", "id", "instanceName", "name")) or key or "unknown",
        status=map_status(_first(item, "status", "connectionStatus") or "disconnected"),
        number=_text(item.get("number")),
        ownerJid=_first(item, "owner", "ownerJid"),
        profileName=item.get("profileName") or None,
        profilePicUrl=_first(item, "profilePictureUrl", "profilePicUrl"),
        token=_first(item, "token", "apikey"),
        disconnectionReasonCode=_first(item, "disconnectionReason", "disconnectionReasonCode"),
        disconnectionObject=item.get("disconnectionObject") or None,
        disconnectionAt=_first(item, "disconnectedAt", "disconnectionAt"),
        createdAt=item.get("createdAt") or None,
    )


def parse_instances(response: Any) -> list[Instance]:
    """
    Normalise the fetchInstances response.

    Accepted shapes:
    - [{"instance": {...}}, ...]
    - [{...}, ...]
    - {"instance": {...}}
    - {"<name>": {...}, ...}
    """
    if isinstance(response, list):
        instances = []
        for item in response:
            if not isinstance(item, dict):
                continue
            wrapped = item.get("instance")
            instances.append(instance_from_item(wrapped if isinstance(wrapped, dict) else item))
        return instances

    if isinstance(response, dict):
        if isinstance(response.get("instance"), dict):
            return [instance_from_item(response["instance"])]
        return [
            instance_from_item(value, key)
            for key, value in response.items()
            if isinstance(value, dict)
        ]

    return []


def _error_message(response: httpx.Response) -> str:
    text = response.text
    try:
        body = json.loads(text)
    except json.JSONDecodeError:
        return f"Error {response.status_code}: {text}"

    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, list):
            message = "; ".join(str(part) for part in message)
        if message:
            return str(message)
    return f"Error {response.status_code}"


# ============================================================================
# CLIENT
# ============================================================================

class ProviderClient:
    """
    Client for the provider API.

    The ``apikey`` header defaults to the configured global key and can be
    overridden per call with the caller's own key.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    async def _request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[dict] = None,
        api_key: Optional[str] = None,
    ) -> Any:
        url = f"{self.base_url}{endpoint}"
        headers = {
            "Content-Type": "application/json",
            "apikey": api_key or self.api_key,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.request(method, url, json=payload, headers=headers)
        except httpx.RequestError as e:
            logger.error(
                f"Provider request failed: {e}",
                extra={"method": method, "endpoint": endpoint},
            )
            raise ProviderError(f"Provider request failed: {e}") from e

        if not response.is_success:
            message = _error_message(response)
            logger.warning(
                f"Provider API error: {response.status_code}",
                extra={"endpoint": endpoint, "status_code": response.status_code, "error": message},
            )
            raise ProviderError(message)

        if not response.content:
            return {}
        try:
            return response.json()
        except json.JSONDecodeError as e:
            raise ProviderError(f"Invalid JSON from provider: {e}") from e

    # ------------------------------------------------------------------
    # Instances
    # ------------------------------------------------------------------

    async def list_instances(self, api_key: Optional[str] = None) -> ProviderResult:
        try:
            response = await self._request("GET", "/instance/fetchInstances", api_key=api_key)
        except ProviderError as e:
            return ProviderResult(success=False, error=str(e))
        return ProviderResult(success=True, data=parse_instances(response))

    async def instance_exists(self, instance_name: str, api_key: Optional[str] = None) -> bool:
        result = await self.list_instances(api_key)
        if not result.success:
            return False
        wanted = instance_name.lower()
        return any(instance.instanceName.lower() == wanted for instance in result.data)

    async def get_instance_details(self, instance_name: str, api_key: Optional[str] = None) -> InstanceLookup:
        result = await self.list_instances(api_key)
        if result.success:
            wanted = instance_name.lower()
            for instance in result.data:
                if instance.instanceName.lower() == wanted:
                    return InstanceLookup(
                        exists=True,
                        instance=instance,
                        instanceName=instance.instanceName,
                        number=instance.number,
                        status=instance.status,
                    )
        return InstanceLookup(exists=False)

    async def get_instance_details_by_number(self, number: str, api_key: Optional[str] = None) -> InstanceLookup:
        """Find an instance by phone number, comparing digits only."""
        result = await self.list_instances(api_key)
        if result.success:
            wanted = digits_only(number)
            for instance in result.data:
                if instance.number and digits_only(instance.number) == wanted:
                    return InstanceLookup(
                        exists=True,
                        instanceName=instance.instanceName,
                        status=instance.status,
                    )
        return InstanceLookup(exists=False)

    async def create_instance(
        self,
        instance_name: str,
        number: Optional[str] = None,
        options: Optional[CreateInstanceOptions] = None,
        api_key: Optional[str] = None,
    ) -> ProviderResult:
        """Create a device session. Refuses a duplicate name or number."""
        if await self.instance_exists(instance_name, api_key):
            return ProviderResult(success=False, error="An instance with this name already exists")

        if number:
            existing = await self.get_instance_details_by_number(number, api_key)
            if existing.exists:
                return ProviderResult(
                    success=False,
                    error=(
                        f"An instance with the number {number} already exists "
                        f"(Instance Name: {existing.instanceName})"
                    ),
                )

        payload = {
            "instanceName": instance_name,
            "name": instance_name,
            "integration": "WHATSAPP-BAILEYS",
            "qrcode": True,
        }
        if number:
            payload["number"] = number
        if options is not None:
            payload.update(options.to_payload())

        try:
            response = await self._request("POST", "/instance/create", payload, api_key)
        except ProviderError as e:
            return ProviderResult(success=False, error=str(e))

        instance = response.get("instance") if isinstance(response, dict) else None
        token = response.get("hash") if isinstance(response, dict) else None
        if not isinstance(instance, dict) or not instance.get("instanceId") or not token:
            logger.error("Invalid provider response when creating instance", extra={"instance_name": instance_name})
            return ProviderResult(success=False, error="Invalid API response when creating instance")

        logger.info("Instance created", extra={"instance_name": instance_name})
        return ProviderResult(
            success=True,
            message="Device Instance created successfully",
            version=API_VERSION,
            steps=CONNECT_STEPS,
            data={
                "instanceName": instance.get("instanceName", instance_name),
                "instanceId": instance["instanceId"],
                "number": number or None,
                "createdAt": instance.get("createdAt") or datetime.now(timezone.utc).isoformat(),
                "token": token,
                "ownerJid": instance.get("owner"),
                "status": map_status(instance.get("status") or "connecting"),
            },
        )

    async def get_qr_code(self, instance_name: str, api_key: Optional[str] = None) -> ProviderResult:
        try:
            response = await self._request("GET", f"/instance/connect/{instance_name}", api_key=api_key)
        except ProviderError as e:
            return ProviderResult(success=False, error=str(e))

        if not isinstance(response, dict):
            response = {}
        nested = response.get("data") if isinstance(response.get("data"), dict) else {}
        qrcode = (
            response.get("qrcode")
            or response.get("base64")
            or nested.get("qrcode")
            or nested.get("base64")
        )
        pairing_code = response.get("pairingCode") or nested.get("pairingCode") or PAIRING_CODE_UNAVAILABLE

        return ProviderResult(success=True, data={"qrcode": qrcode, "pairingCode": pairing_code})

    async def check_instance_status(self, instance_name: str, api_key: Optional[str] = None) -> ProviderResult:
        try:
            response = await self._request("GET", f"/instance/connectionState/{instance_name}", api_key=api_key)
        except ProviderError as e:
            return ProviderResult(success=False, error=str(e))

        if not isinstance(response, dict):
            response = {}
        # Some provider versions nest the state under "instance".
        source = response.get("instance") if isinstance(response.get("instance"), dict) else response
        raw = _first(source, "state", "status", "connectionStatus")
        return ProviderResult(success=True, data={"status": map_status(raw)})

    async def disconnect_instance(self, instance_name: str, api_key: Optional[str] = None) -> ProviderResult:
        try:
            await self._request("DELETE", f"/instance/logout/{instance_name}", api_key=api_key)
        except ProviderError as e:
            return ProviderResult(success=False, error=str(e))
        logger.info("Instance disconnected", extra={"instance_name": instance_name})
        return ProviderResult(success=True, message="Device Instance disconnected successfully")

    async def disconnect_device_by_number(self, number: str, api_key: Optional[str] = None) -> ProviderResult:
        lookup = await self.get_instance_details_by_number(number, api_key)
        if not lookup.exists or not lookup.instanceName:
            return ProviderResult(success=False, error=f"Device with number {number} not found.")
        return await self.disconnect_instance(lookup.instanceName, api_key)

    async def delete_instance(self, instance_name: str, api_key: Optional[str] = None) -> ProviderResult:
        try:
            await self._request("DELETE", f"/instance/delete/{instance_name}", api_key=api_key)
        except ProviderError as e:
            return ProviderResult(success=False, error=str(e))
        logger.info("Instance deleted", extra={"instance_name": instance_name})
        return ProviderResult(success=True, message="Device Instance deleted successfully")

    async def delete_device_by_number(self, number: str, api_key: Optional[str] = None) -> ProviderResult:
        lookup = await self.get_instance_details_by_number(number, api_key)
        if not lookup.exists or not lookup.instanceName:
            return ProviderResult(success=False, error=f"Device with number {number} not found.")
        return await self.delete_instance(lookup.instanceName, api_key)

    async def set_proxy(self, instance_name: str, proxy: dict, api_key: Optional[str] = None) -> ProviderResult:
        try:
            response = await self._request("POST", f"/proxy/set/{instance_name}", proxy, api_key)
        except ProviderError as e:
            return ProviderResult(success=False, error=str(e))
        return ProviderResult(success=True, message="Proxy updated successfully", data=response)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def send_message(
        self,
        instance_name: str,
        to: str,
        text: str,
        api_key: Optional[str] = None,
    ) -> ProviderResult:
        payload = {
            "number": to,
            "text": text,
            "linkPreview": contains_url(text),
        }
        try:
            response = await self._request("POST", f"/message/sendText/{instance_name}", payload, api_key)
        except ProviderError as e:
            return ProviderResult(success=False, error=str(e))
        return ProviderResult(success=True, message="Message sent successfully", data=response)

    async def send_file(
        self,
        instance_name: str,
        to: str,
        caption: str,
        file_url: str,
        api_key: Optional[str] = None,
    ) -> ProviderResult:
        mime_type = mime_type_from_url(file_url)
        payload = {
            "number": to,
            "mediatype": media_type_from_mime(mime_type),
            "mimetype": mime_type,
            "caption": caption,
            "media": file_url,
            "fileName": file_name_from_url(file_url),
        }
        try:
            response = await self._request("POST", f"/message/sendMedia/{instance_name}", payload, api_key)
        except ProviderError as e:
            return ProviderResult(success=False, error=str(e))
        return ProviderResult(success=True, message="File sent successfully", data=response)
