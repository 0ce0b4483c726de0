"""
Device Management Router

Validation-then-forward wrappers over the provider API. Every route is
POST-only (GET answers 405), authenticates the caller, validates a couple
of body fields, calls the provider and returns the reshaped result.
"""

import logging
import re
from typing import Any, Optional

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from infra.bootstrap import GatewayBootstrap, get_bootstrap
from provider.types import CreateInstanceOptions, ProviderResult

from .errors import ApiError, error_response, method_not_allowed, read_json_body
from .schemas import PROXY_PROTOCOLS, ProxySettings
from .security import require_api_key, require_auth_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Devices"])

INSTANCE_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9-]+$")

CREATE_FLAG_FIELDS = ("rejectCall", "groupsIgnore", "alwaysOnline", "readMessages", "readStatus", "syncFullHistory")
CREATE_TEXT_FIELDS = (
    "msgCall",
    "proxyHost",
    "proxyPort",
    "proxyProtocol",
    "proxyUsername",
    "proxyPassword",
)


async def authenticated_body(
    request: Request,
    gateway: GatewayBootstrap,
    check_auth_key: bool = True,
) -> tuple[str, dict[str, Any]]:
    """
    Authenticate the caller and parse the JSON body.

    Order matters: the apikey header is checked before the body is read,
    the authkey after.

    Returns:
        (apikey header value, parsed body)
    """
    api_key = require_api_key(gateway.config, request.headers.get("apikey"))
    body = await read_json_body(request)
    if check_auth_key:
        require_auth_key(gateway.config, api_key, body)
    return api_key, body


def require_fields(body: dict[str, Any], *names: str) -> None:
    for name in names:
        if not body.get(name):
            raise ApiError(status.HTTP_400_BAD_REQUEST, f"Missing required parameter: {name}")


def result_response(result: ProviderResult, failure_status: Optional[int] = None) -> JSONResponse:
    """Render a ProviderResult; failures keep 200 unless a status is given."""
    status_code = failure_status if (failure_status and not result.success) else status.HTTP_200_OK
    return JSONResponse(status_code=status_code, content=result.to_dict())


def parse_create_options(body: dict[str, Any]) -> Optional[CreateInstanceOptions]:
    """Optional instance settings from a createdevice body; None when none are given."""
    values: dict[str, Any] = {}
    for name in CREATE_FLAG_FIELDS:
        if name in body:
            if not isinstance(body[name], bool):
                raise ApiError(status.HTTP_400_BAD_REQUEST, f"Field '{name}' must be a boolean")
            values[name] = body[name]
    for name in CREATE_TEXT_FIELDS:
        value = body.get(name)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise ApiError(status.HTTP_400_BAD_REQUEST, f"Field '{name}' must be a string")
        values[name] = str(value)
    return CreateInstanceOptions(**values) if values else None


# ============================================================================
# INSTANCE LIFECYCLE
# ============================================================================

@router.post("/createdevice")
async def create_device(request: Request, gateway: GatewayBootstrap = Depends(get_bootstrap)):
    """
    Create a device instance and fetch its pairing QR code.

    Body: authkey, instanceName (letters, digits and dashes), optional number,
    and optional instance settings (rejectCall, msgCall, groupsIgnore,
    alwaysOnline, readMessages, readStatus, syncFullHistory, proxy*).
    """
    _, body = await authenticated_body(request, gateway)
    require_fields(body, "instanceName")

    instance_name = str(body["instanceName"])
    if not INSTANCE_NAME_PATTERN.match(instance_name):
        raise ApiError(
            status.HTTP_400_BAD_REQUEST,
            "The Instance name cannot contain spaces, special characters and accents, "
            "it can only contain letters, numbers and - (dash)",
        )

    number = body.get("number") or None
    options = parse_create_options(body)
    result = await gateway.provider.create_instance(instance_name, number, options)
    if not result.success or not result.data:
        return result_response(result)

    qr = await gateway.provider.get_qr_code(instance_name)
    qr_data = qr.data if qr.success else {}
    result.data = {
        **result.data,
        "qrcode": qr_data.get("qrcode"),
        "pairingCode": qr_data.get("pairingCode"),
    }
    logger.info("Device created", extra={"instance_name": instance_name})
    return result_response(result)


@router.post("/connectdevice")
async def connect_device(request: Request, gateway: GatewayBootstrap = Depends(get_bootstrap)):
    """Return QR/pairing code for the instance registered with ``number``."""
    _, body = await authenticated_body(request, gateway)
    require_fields(body, "number")
    number = str(body["number"])

    lookup = await gateway.provider.get_instance_details_by_number(number)
    if not lookup.exists or not lookup.instanceName:
        raise ApiError(
            status.HTTP_404_NOT_FOUND,
            f"Device with number {number} not found. Cannot connect.",
        )

    qr = await gateway.provider.get_qr_code(lookup.instanceName)
    if not qr.success:
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            qr.error or f"Failed to get data for device connection {lookup.instanceName}",
        )

    return {
        "success": True,
        "message": (
            f"Connection information for device number {number} (Instance: {lookup.instanceName}) "
            "Send the QR Code or Pairing Code to the customer and ask them to read it within 30 seconds"
        ),
        "data": qr.data,
    }


@router.post("/listdevices")
async def list_devices(request: Request, gateway: GatewayBootstrap = Depends(get_bootstrap)):
    """List the instances visible to the caller's apikey."""
    api_key, _ = await authenticated_body(request, gateway, check_auth_key=False)
    return result_response(await gateway.provider.list_instances(api_key))


@router.post("/deviceexists")
async def device_exists(request: Request, gateway: GatewayBootstrap = Depends(get_bootstrap)):
    """Look up an instance by phone number."""
    _, body = await authenticated_body(request, gateway)
    require_fields(body, "number")

    lookup = await gateway.provider.get_instance_details_by_number(str(body["number"]))
    return {"success": True, "data": lookup.to_dict()}


@router.post("/checkconnection")
async def check_connection(request: Request, gateway: GatewayBootstrap = Depends(get_bootstrap)):
    """
    Report an instance's connection state.

    By instanceName: full instance details. By number: status only.
    instanceName wins when both are given.
    """
    _, body = await authenticated_body(request, gateway)
    instance_name = body.get("instanceName")
    number = body.get("number")
    if not instance_name and not number:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Missing required parameter: instanceName or number")

    if instance_name:
        details = await gateway.provider.get_instance_details(str(instance_name))
        if not details.exists:
            raise ApiError(status.HTTP_404_NOT_FOUND, f"Instance with name {instance_name} not found.")
        return {"success": True, "data": details.to_dict()}

    lookup = await gateway.provider.get_instance_details_by_number(str(number))
    if not lookup.exists or not lookup.instanceName:
        raise ApiError(status.HTTP_404_NOT_FOUND, f"Device with number {number} not found.")

    return result_response(await gateway.provider.check_instance_status(lookup.instanceName))


@router.post("/disconnectinstance")
async def disconnect_instance(request: Request, gateway: GatewayBootstrap = Depends(get_bootstrap)):
    """Log an instance out of WhatsApp (the session record is kept)."""
    _, body = await authenticated_body(request, gateway)
    require_fields(body, "instanceName")
    return result_response(await gateway.provider.disconnect_instance(str(body["instanceName"])))


@router.post("/deletedevice")
async def delete_device(request: Request, gateway: GatewayBootstrap = Depends(get_bootstrap)):
    """Delete an instance by instanceName or number."""
    _, body = await authenticated_body(request, gateway)
    instance_name = body.get("instanceName")
    number = body.get("number")
    if not instance_name and not number:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Missing required parameter: instanceName or number")

    if instance_name:
        result = await gateway.provider.delete_instance(str(instance_name))
    else:
        result = await gateway.provider.delete_device_by_number(str(number))
    return result_response(result)


# ============================================================================
# MESSAGING
# ============================================================================

@router.post("/sendmessage")
async def send_message(request: Request, gateway: GatewayBootstrap = Depends(get_bootstrap)):
    """
    Send a text message, or a media message when ``fileUrl`` is given.

    Body: authkey, deviceid (instance name), to, message, optional fileUrl.
    The authkey must be present but is not compared.
    """
    api_key, body = await authenticated_body(request, gateway, check_auth_key=False)
    require_fields(body, "authkey", "deviceid", "to", "message")

    device_id = str(body["deviceid"])
    to = str(body["to"])
    message = str(body["message"])
    file_url = body.get("fileUrl")

    if file_url:
        result = await gateway.provider.send_file(device_id, to, message, str(file_url), api_key)
    else:
        result = await gateway.provider.send_message(device_id, to, message, api_key)
    return result_response(result)


# ============================================================================
# PROXY
# ============================================================================

def parse_proxy_settings(body: dict[str, Any]) -> ProxySettings:
    """Validate a proxy body with the gateway's error messages."""
    enabled = body.get("enabled")
    if not isinstance(enabled, bool):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Field 'enabled' must be a boolean")

    if enabled:
        host = body.get("host")
        if not host or not isinstance(host, str):
            raise ApiError(status.HTTP_400_BAD_REQUEST, "Field 'host' is required when the proxy is enabled")

        port = body.get("port")
        if not port or isinstance(port, bool) or not isinstance(port, int):
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                "Field 'port' is required and must be a number when the proxy is enabled",
            )

        if body.get("protocol") not in PROXY_PROTOCOLS:
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                "Field 'protocol' must be 'http', 'https', 'socks4' or 'socks5'",
            )

    try:
        return ProxySettings(
            enabled=enabled,
            host=body.get("host") if enabled else None,
            port=body.get("port") if enabled else None,
            protocol=body.get("protocol") if enabled else None,
            username=body.get("username") if enabled else None,
            password=body.get("password") if enabled else None,
        )
    except ValidationError as e:
        raise ApiError(status.HTTP_400_BAD_REQUEST, f"Invalid proxy settings: {e.errors()[0]['msg']}")


@router.post("/proxy/set/{instance_name}")
async def set_proxy(instance_name: str, request: Request, gateway: GatewayBootstrap = Depends(get_bootstrap)):
    """Enable, change or disable the outbound proxy of an instance."""
    _, body = await authenticated_body(request, gateway)
    settings = parse_proxy_settings(body)

    result = await gateway.provider.set_proxy(instance_name, settings.to_provider_payload())
    return result_response(result, failure_status=status.HTTP_502_BAD_GATEWAY)


# ============================================================================
# METHOD GUARDS
# ============================================================================

POST_ONLY_ROUTES = (
    "/createdevice",
    "/connectdevice",
    "/listdevices",
    "/deviceexists",
    "/checkconnection",
    "/disconnectinstance",
    "/deletedevice",
    "/sendmessage",
)


async def _post_only():
    return method_not_allowed()


for _path in POST_ONLY_ROUTES:
    router.add_api_route(_path, _post_only, methods=["GET"], include_in_schema=False)
