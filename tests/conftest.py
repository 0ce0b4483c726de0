"""Pytest configuration and fixtures."""

import asyncio
import sys
from pathlib import Path
from typing import Optional
from unittest.mock import AsyncMock

import httpx
import pytest

# Add project root to sys.path for imports
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import GatewayConfig  # noqa: E402
from infra.bootstrap import GatewayBootstrap, get_bootstrap  # noqa: E402
from provider.client import ProviderClient  # noqa: E402
from store.stub import InMemoryAccountConfigStore  # noqa: E402
from store.types import AccountWebhookConfig  # noqa: E402
from transport.whatsapp.fanout import WebhookFanout  # noqa: E402


class RecordingTransport(httpx.AsyncBaseTransport):
    """
    Outbound HTTP stand-in that records every request.

    With ``gate`` set, each request waits on the event before answering,
    which keeps deliveries in flight until the test releases them.
    """

    def __init__(self, status_code: int = 200, gate: Optional[asyncio.Event] = None, fail: bool = False):
        self.status_code = status_code
        self.gate = gate
        self.fail = fail
        self.requests: list[httpx.Request] = []

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.fail:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(self.status_code, json={"ok": True})


@pytest.fixture
def gateway_config():
    """Config with no global keys, so auth falls back to the derived key."""
    return GatewayConfig(
        provider_api_url="http://provider.test",
        provider_api_key="",
        auth_key="",
        gateway_user="admin",
        verify_token="default-token",
        chat_send_post_url="http://chat.test/inbound",
        send_post_url="",
        hooks_data_path="unused.json",
        max_webhooks=3,
    )


@pytest.fixture
def account_config():
    """Account with a chat target, one forward target and two blanks."""
    return AccountWebhookConfig(
        id="acct-1",
        verify_token="acct-secret",
        chat_api_url="http://chat.test/accounts/1/conversations",
        chat_api_key="",
        send_post_url_1="http://forward.test/hook",
        send_post_url_2="",
        send_post_url_3="",
    )


@pytest.fixture
def store(account_config):
    return InMemoryAccountConfigStore([account_config])


@pytest.fixture
def outbound():
    return RecordingTransport()


@pytest.fixture
def provider():
    """Provider client with every network operation mocked."""
    return AsyncMock(spec=ProviderClient)


@pytest.fixture
def chat_backend():
    return AsyncMock()


@pytest.fixture
def gateway(gateway_config, store, provider, chat_backend, outbound):
    return GatewayBootstrap(
        config=gateway_config,
        store=store,
        provider=provider,
        chat=chat_backend,
        fanout=WebhookFanout(transport=outbound),
    )


@pytest.fixture
def app(gateway):
    """The FastAPI app with the bootstrap dependency pointed at test collaborators."""
    from main import app as fastapi_app

    fastapi_app.dependency_overrides[get_bootstrap] = lambda: gateway
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    return TestClient(app)
