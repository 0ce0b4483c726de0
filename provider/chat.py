"""
Chat-support backend client.

Creates a conversation message for a contact in a support backend
(Chatwoot-style ``/accounts/{id}/...`` API). Authenticated with the caller's
own ``apikey`` header.
"""

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class ChatBackendError(Exception):
    """Chat backend returned an error or could not be reached."""
    pass


class ContactNotFoundError(ChatBackendError):
    """No contact matched the recipient."""
    pass


class InboxNotFoundError(ChatBackendError):
    """The account has no inbox to post into."""
    pass


class ChatBackendClient:
    """Client for the chat-support backend."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _call(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        api_key: str,
        action: str,
        **kwargs: Any,
    ) -> Any:
        headers = {"Content-Type": "application/json", "apikey": api_key}
        try:
            response = await client.request(method, url, headers=headers, **kwargs)
        except httpx.RequestError as e:
            raise ChatBackendError(f"Chat backend {action} error: {e}") from e

        if not response.is_success:
            raise ChatBackendError(f"Chat backend {action} error: {response.status_code}")
        return response.json()

    async def create_message(self, account_id: str, to: str, text: str, api_key: str) -> Any:
        """
        Post ``text`` to the conversation with ``to``.

        Flow:
        1. Search the contact by phone number (ContactNotFoundError if none)
        2. Take the account's first inbox (InboxNotFoundError if none)
        3. Post the message to the account's conversations

        Returns:
            The backend's JSON response for the created message
        """
        account_url = f"{self.base_url}/accounts/{account_id}"

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            contacts = await self._call(
                client, "GET", f"{account_url}/contacts/search", api_key, "contact search",
                params={"q": to},
            )
            if not isinstance(contacts, dict) or not contacts.get("payload"):
                raise ContactNotFoundError("Contact not found in Chatwoot")

            inboxes = await self._call(client, "GET", f"{account_url}/inboxes", api_key, "inboxes fetch")
            if not isinstance(inboxes, dict) or not inboxes.get("payload"):
                raise InboxNotFoundError("No inboxes found for this account")
            inbox_id = inboxes["payload"][0].get("id")

            result = await self._call(
                client, "POST", f"{account_url}/conversations", api_key, "API",
                json={"phonenumber": to, "message": text, "inbox_id": inbox_id},
            )

        logger.info(
            "Chat message created",
            extra={"account_id": account_id, "inbox_id": inbox_id},
        )
        return result
