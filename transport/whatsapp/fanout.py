"""
Webhook fan-out.

Relays one inbound payload to every configured delivery target as detached
asyncio tasks. The caller never awaits delivery: no retries, and every
outbound failure (network error, non-2xx, timeout) is discarded after an
internal warning log. Delivery outcome never reaches the inbound caller.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional

import httpx

from store.types import AccountWebhookConfig

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


@dataclass(frozen=True)
class DeliveryTarget:
    """One outbound POST destination."""

    url: str
    headers: dict[str, str] = field(default_factory=dict)


def account_targets(config: Optional[AccountWebhookConfig]) -> list[DeliveryTarget]:
    """
    Delivery targets for an account, in configured field order.

    The chat target carries the account's chat_api_key as ``apikey`` header
    when one is configured. Unknown accounts have no targets.
    """
    if config is None:
        return []

    has_chat_target = bool(config.chat_api_url.strip())
    targets = []
    for index, url in enumerate(config.targets):
        headers = {}
        if index == 0 and has_chat_target and config.chat_api_key:
            headers["apikey"] = config.chat_api_key
        targets.append(DeliveryTarget(url=url, headers=headers))
    return targets


def url_targets(*urls: str) -> list[DeliveryTarget]:
    """Targets from plain URLs, blanks skipped."""
    return [DeliveryTarget(url=url.strip()) for url in urls if url and url.strip()]


class WebhookFanout:
    """
    Fire-and-forget POST dispatcher.

    Started tasks are held in a set only until they finish, so the event loop
    does not drop them mid-flight. Nothing waits on them except drain(),
    which exists for shutdown and tests.
    """

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout = timeout
        self.transport = transport
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def dispatch(self, targets: list[DeliveryTarget], body: bytes, account_id: Optional[str] = None) -> int:
        """
        Start one detached POST per target. Returns the number started.

        Must be called from a running event loop.
        """
        for target in targets:
            task = asyncio.create_task(self._deliver(target, body, account_id))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)

        if targets:
            logger.debug(
                f"Dispatched webhook to {len(targets)} target(s)",
                extra={"account_id": account_id, "targets": len(targets)},
            )
        return len(targets)

    async def drain(self) -> None:
        """Wait for in-flight deliveries to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _client(self) -> httpx.AsyncClient:
        kwargs = {}
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        if self.transport is not None:
            kwargs["transport"] = self.transport
        return httpx.AsyncClient(**kwargs)

    async def _deliver(self, target: DeliveryTarget, body: bytes, account_id: Optional[str]) -> None:
        headers = {**JSON_HEADERS, **target.headers}
        try:
            async with self._client() as client:
                response = await client.post(target.url, content=body, headers=headers)

            if response.status_code >= 300:
                logger.warning(
                    f"Webhook target returned {response.status_code}",
                    extra={"account_id": account_id, "url": target.url, "status_code": response.status_code},
                )
        except Exception as exc:
            # Delivery is best-effort: failures stop here.
            logger.warning(
                "Webhook dispatch failed",
                exc_info=exc,
                extra={"account_id": account_id, "url": target.url},
            )
