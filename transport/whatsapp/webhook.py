"""
Webhook Relay Router

Terminates the subscription handshake per account and relays inbound
provider events to the account's delivery targets.

GET  /api/webhook/{account_id}   verification handshake / descriptor
POST /api/webhook/{account_id}   fire-and-forget fan-out, always 200
GET  /api/webhook                same, process-wide token
POST /api/webhook                same, process-wide targets
"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import PlainTextResponse

from infra.bootstrap import GatewayBootstrap, get_bootstrap
from store.base import StoreError
from store.types import AccountWebhookConfig

from .fanout import account_targets, url_targets
from .schemas import WebhookDescriptor
from .security import verify_webhook_challenge

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhook", tags=["Webhook Relay"])


async def _lookup_account(gateway: GatewayBootstrap, account_id: str) -> Optional[AccountWebhookConfig]:
    """Read-through store lookup. Storage failures count as an unknown account."""
    try:
        return await gateway.store.get(account_id)
    except StoreError as e:
        logger.warning(
            f"Account config lookup failed: {e}",
            extra={"account_id": account_id},
        )
        return None


def _handshake_response(
    mode: Optional[str],
    challenge: Optional[str],
    token: Optional[str],
    expected_token: str,
    account_id: Optional[str] = None,
) -> Response:
    # No mode at all is an info request, not a failed verification.
    if not mode:
        return Response(
            content=WebhookDescriptor(accountId=account_id).model_dump_json(exclude_none=True),
            media_type="application/json",
        )

    echoed = verify_webhook_challenge(mode, challenge, token, expected_token)
    if echoed is None:
        logger.warning("Webhook verification refused", extra={"account_id": account_id})
        return Response(status_code=status.HTTP_403_FORBIDDEN)

    logger.info("Webhook verified", extra={"account_id": account_id})
    return PlainTextResponse(echoed)


async def _read_payload(request: Request) -> bytes:
    """
    Read the inbound body and require it to be JSON.

    Malformed JSON is not handled here; the decode error propagates to the
    application's error handling.
    """
    body = await request.body()
    json.loads(body)
    return body


# ============================================================================
# PER-ACCOUNT
# ============================================================================

@router.get("/{account_id}")
async def verify_account_webhook(
    account_id: str,
    mode: Optional[str] = Query(None, alias="hub.mode"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    gateway: GatewayBootstrap = Depends(get_bootstrap),
) -> Response:
    """
    Verify a webhook subscription for one account.

    The expected token is the account's verify_token, or the process-wide
    VERIFY_TOKEN when the account is unknown, has none, or the store
    cannot be read.

    Returns:
        200 challenge body on success, 200 JSON descriptor when hub.mode is
        absent, 403 empty body otherwise
    """
    expected_token = gateway.config.verify_token
    if mode:
        account = await _lookup_account(gateway, account_id)
        if account is not None and account.verify_token:
            expected_token = account.verify_token

    return _handshake_response(mode, challenge, token, expected_token, account_id)


@router.post("/{account_id}")
async def receive_account_webhook(
    account_id: str,
    request: Request,
    gateway: GatewayBootstrap = Depends(get_bootstrap),
) -> Response:
    """
    Relay an inbound event to every delivery target of the account.

    Deliveries are started, not awaited. The caller always gets an empty
    200, whatever happens downstream; an unknown account simply has no
    targets.
    """
    body = await _read_payload(request)

    account = await _lookup_account(gateway, account_id)
    started = gateway.fanout.dispatch(account_targets(account), body, account_id)

    logger.info(
        f"Webhook received for account {account_id}",
        extra={"account_id": account_id, "targets": started},
    )
    return Response(status_code=status.HTTP_200_OK)


# ============================================================================
# PROCESS-WIDE
# ============================================================================

@router.get("")
async def verify_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    gateway: GatewayBootstrap = Depends(get_bootstrap),
) -> Response:
    """Verify a webhook subscription against VERIFY_TOKEN."""
    return _handshake_response(mode, challenge, token, gateway.config.verify_token)


@router.post("")
async def receive_webhook(
    request: Request,
    gateway: GatewayBootstrap = Depends(get_bootstrap),
) -> Response:
    """Relay an inbound event to CHAT_SEND_POST_URL and SEND_POST_URL."""
    body = await _read_payload(request)

    targets = url_targets(gateway.config.chat_send_post_url, gateway.config.send_post_url)
    started = gateway.fanout.dispatch(targets, body)

    logger.info("Webhook received", extra={"targets": started})
    return Response(status_code=status.HTTP_200_OK)
