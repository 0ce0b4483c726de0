"""
Hook Administration Router

CRUD over the per-account webhook configuration. Every call reads the
store fresh; writes go straight back to it.
"""

import logging
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, Request, status
from pydantic import ValidationError

from infra.bootstrap import GatewayBootstrap, get_bootstrap
from store.base import StoreError
from store.types import AccountWebhookConfig

from .errors import ApiError, read_json_body
from .security import require_api_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/hook", tags=["Hook Administration"])

TARGET_URL_FIELDS = ("chat_api_url", "send_post_url_1", "send_post_url_2", "send_post_url_3")


def _is_absolute_http_url(value: str) -> bool:
    parsed = urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _store_failure(action: str, e: StoreError) -> ApiError:
    logger.error(f"Hook store {action} failed: {e}", exc_info=True)
    return ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Failed to {action} webhook configuration")


@router.get("")
async def list_hooks(request: Request, gateway: GatewayBootstrap = Depends(get_bootstrap)):
    """All account configs keyed by account id, in the persisted layout."""
    require_api_key(gateway.config, request.headers.get("apikey"))
    try:
        configs = await gateway.store.list_all()
    except StoreError as e:
        raise _store_failure("read", e)
    return {account_id: config.to_document() for account_id, config in configs.items()}


@router.post("")
async def upsert_hook(request: Request, gateway: GatewayBootstrap = Depends(get_bootstrap)):
    """
    Create or update an account config.

    Body: id, verify_token (both required), optional chat_api_url,
    chat_api_key, send_post_url_1..3 (target URLs must be absolute
    http(s) URLs). New accounts are refused once
    MAX_WEBHOOKS accounts exist.
    """
    require_api_key(gateway.config, request.headers.get("apikey"))
    body = await read_json_body(request)

    account_id = body.get("id")
    if not isinstance(account_id, str) or not account_id.strip():
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid ID")
    verify_token = body.get("verify_token")
    if not isinstance(verify_token, str) or not verify_token.strip():
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Verification token (verify_token) is required")

    for field in TARGET_URL_FIELDS:
        value = body.get(field)
        if not value or (isinstance(value, str) and not value.strip()):
            continue
        if not isinstance(value, str) or not _is_absolute_http_url(value):
            raise ApiError(status.HTTP_400_BAD_REQUEST, f"Field '{field}' must be an absolute http(s) URL")

    try:
        config = AccountWebhookConfig(
            id=account_id,
            verify_token=verify_token,
            chat_api_url=body.get("chat_api_url") or "",
            chat_api_key=body.get("chat_api_key") or "",
            send_post_url_1=body.get("send_post_url_1") or "",
            send_post_url_2=body.get("send_post_url_2") or "",
            send_post_url_3=body.get("send_post_url_3") or "",
        )
    except ValidationError as e:
        raise ApiError(status.HTTP_400_BAD_REQUEST, f"Invalid webhook configuration: {e.errors()[0]['msg']}")

    try:
        existing = await gateway.store.list_all()
        if account_id not in existing and len(existing) >= gateway.config.max_webhooks:
            raise ApiError(
                status.HTTP_400_BAD_REQUEST,
                "You are already using the maximum number of webhooks, please contact support.",
            )
        saved = await gateway.store.upsert(config)
    except StoreError as e:
        raise _store_failure("save", e)

    return {"success": True, "data": saved.to_document()}


@router.delete("")
async def delete_hook(request: Request, gateway: GatewayBootstrap = Depends(get_bootstrap)):
    """Remove an account config. Body: id."""
    require_api_key(gateway.config, request.headers.get("apikey"))
    body = await read_json_body(request)

    account_id = body.get("id")
    if not isinstance(account_id, str) or not account_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Invalid ID")

    try:
        deleted = await gateway.store.delete(account_id)
    except StoreError as e:
        raise _store_failure("delete", e)

    if not deleted:
        raise ApiError(status.HTTP_404_NOT_FOUND, "ID not found")
    return {"success": True}
