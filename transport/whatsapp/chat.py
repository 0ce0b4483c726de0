"""
Chat Message Router

Creates a message in the chat-support backend from a Meta-style send
request: ``{"to": "...", "text": {"body": "..."}}``.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from infra.bootstrap import GatewayBootstrap, get_bootstrap
from provider.chat import ChatBackendError, ContactNotFoundError, InboxNotFoundError

from .errors import ApiError, method_not_allowed, read_json_body
from .security import require_api_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Chat"])


@router.post("/createmessagechat")
async def create_message_chat(
    request: Request,
    account_id: Optional[str] = Query(None, alias="accountid"),
    gateway: GatewayBootstrap = Depends(get_bootstrap),
):
    """
    Post a message into the account's chat backend.

    Query: accountid. Body: to, text.body.
    """
    api_key = require_api_key(gateway.config, request.headers.get("apikey"))
    if not account_id:
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Missing required query parameter: accountid")

    body = await read_json_body(request)
    text = body.get("text")
    if not body.get("to") or not isinstance(text, dict) or not text.get("body"):
        raise ApiError(status.HTTP_400_BAD_REQUEST, "Missing required body parameters: to, text.body")

    try:
        result = await gateway.chat.create_message(account_id, str(body["to"]), str(text["body"]), api_key)
    except (ContactNotFoundError, InboxNotFoundError) as e:
        raise ApiError(status.HTTP_404_NOT_FOUND, str(e))
    except ChatBackendError as e:
        logger.error(f"Chat backend failed: {e}", extra={"account_id": account_id})
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, str(e))

    return {"success": True, "data": result}


@router.get("/createmessagechat", include_in_schema=False)
async def create_message_chat_get():
    return method_not_allowed()
