"""
Provider Client Tests

Response reshaping and failure handling of ProviderClient and
ChatBackendClient against httpx.MockTransport.
"""

import json

import httpx
import pytest

from provider.chat import ChatBackendClient, ChatBackendError, ContactNotFoundError, InboxNotFoundError
from provider.client import (
    PAIRING_CODE_UNAVAILABLE,
    ProviderClient,
    contains_url,
    map_status,
    media_type_from_mime,
    mime_type_from_url,
    parse_instances,
)
from provider.types import CreateInstanceOptions


def _provider(handler) -> ProviderClient:
    return ProviderClient("http://provider.test/", api_key="GLOBAL", transport=httpx.MockTransport(handler))


class TestHelpers:
    """Pure mapping helpers."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("open", "connected"),
            ("ONLINE", "connected"),
            ("connecting", "connecting"),
            ("syncing", "connecting"),
            ("close", "disconnected"),
            (None, "disconnected"),
            ("", "disconnected"),
        ],
    )
    def test_map_status(self, raw, expected):
        assert map_status(raw) == expected

    def test_contains_url(self):
        assert contains_url("see https://example.com now")
        assert contains_url("www.example.com")
        assert not contains_url("plain text")

    def test_mime_and_media_type(self):
        assert mime_type_from_url("https://files.test/a/photo.JPG?x=1") == "image/jpeg"
        assert mime_type_from_url("https://files.test/report") == "application/octet-stream"
        assert media_type_from_mime("audio/ogg") == "audio"
        assert media_type_from_mime("application/pdf") == "document"


class TestParseInstances:
    """The four fetchInstances response shapes."""

    def test_wrapped_list(self):
        instances = parse_instances([{"instance": {"instanceName": "a", "instanceId": "1", "status": "open"}}])

        assert [(i.instanceName, i.instanceId, i.status) for i in instances] == [("a", "1", "connected")]

    def test_flat_list(self):
        instances = parse_instances([{"name": "b", "id": "2", "connectionStatus": "close", "number": "5511"}])

        assert instances[0].instanceName == "b"
        assert instances[0].instanceId == "2"
        assert instances[0].status == "disconnected"
        assert instances[0].number == "5511"

    def test_single_instance_object(self):
        instances = parse_instances({"instance": {"instanceName": "c"}})

        assert [i.instanceName for i in instances] == ["c"]

    def test_keyed_object(self):
        instances = parse_instances({"d": {"status": "connecting"}, "meta": "ignored"})

        assert [(i.instanceName, i.status) for i in instances] == [("d", "connecting")]

    def test_numeric_fields_become_strings(self):
        (instance,) = parse_instances([{"instanceName": 42, "id": 7, "number": 5511999}])

        assert instance.instanceName == "42"
        assert instance.instanceId == "7"
        assert instance.number == "5511999"

    def test_mixed_wrapped_and_flat_entries(self):
        instances = parse_instances(
            [
                {"instance": {"instanceName": "a"}},
                {"instanceName": "b"},
                {"instance": None, "name": "c"},
                "junk",
            ]
        )

        assert [i.instanceName for i in instances] == ["a", "b", "c"]

    def test_unexpected_shape(self):
        assert parse_instances("nonsense") == []


class TestProviderClient:
    """Requests issued and results returned."""

    @pytest.mark.asyncio
    async def test_list_instances_sends_caller_key(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[{"name": "shop-1", "id": "i-1", "connectionStatus": "open"}])

        result = await _provider(handler).list_instances("CALLER")

        assert result.success is True
        assert result.data[0].instanceName == "shop-1"
        assert str(seen[0].url) == "http://provider.test/instance/fetchInstances"
        assert seen[0].headers["apikey"] == "CALLER"

    @pytest.mark.asyncio
    async def test_global_key_used_by_default(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=[])

        await _provider(handler).list_instances()

        assert seen[0].headers["apikey"] == "GLOBAL"

    @pytest.mark.asyncio
    async def test_provider_error_message_surfaces(self):
        def handler(request):
            return httpx.Response(401, json={"status": 401, "error": "Unauthorized", "message": ["bad key"]})

        result = await _provider(handler).list_instances()

        assert result.success is False
        assert result.error == "bad key"

    @pytest.mark.asyncio
    async def test_network_failure_is_a_result(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        result = await _provider(handler).disconnect_instance("shop-1")

        assert result.success is False
        assert "Provider request failed" in result.error

    @pytest.mark.asyncio
    async def test_lookup_by_number_compares_digits(self):
        def handler(request):
            return httpx.Response(200, json=[{"name": "shop-1", "number": "55 (11) 99999-0000", "status": "open"}])

        lookup = await _provider(handler).get_instance_details_by_number("+5511999990000")

        assert lookup.exists is True
        assert lookup.instanceName == "shop-1"
        assert lookup.status == "connected"

    @pytest.mark.asyncio
    async def test_lookup_by_number_with_numeric_provider_number(self):
        def handler(request):
            return httpx.Response(200, json=[{"instanceName": "a", "number": 5511999}])

        lookup = await _provider(handler).get_instance_details_by_number("5511999")

        assert lookup.exists is True
        assert lookup.instanceName == "a"

    @pytest.mark.asyncio
    async def test_create_instance_forwards_options(self):
        bodies = []

        def handler(request):
            if request.url.path == "/instance/fetchInstances":
                return httpx.Response(200, json=[])
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"instance": {"instanceId": "i-3"}, "hash": "tok"})

        options = CreateInstanceOptions(rejectCall=True, msgCall="busy", proxyHost="", alwaysOnline=False)
        result = await _provider(handler).create_instance("shop-3", options=options)

        assert result.success is True
        assert bodies[0]["rejectCall"] is True
        assert bodies[0]["msgCall"] == "busy"
        assert bodies[0]["alwaysOnline"] is False
        assert "proxyHost" not in bodies[0]

    @pytest.mark.asyncio
    async def test_create_instance_refuses_duplicate_name(self):
        def handler(request):
            return httpx.Response(200, json=[{"name": "Shop-1"}])

        result = await _provider(handler).create_instance("shop-1")

        assert result.success is False
        assert "already exists" in result.error

    @pytest.mark.asyncio
    async def test_create_instance(self):
        def handler(request):
            if request.url.path == "/instance/fetchInstances":
                return httpx.Response(200, json=[])
            body = json.loads(request.content)
            assert body["instanceName"] == "shop-2"
            assert body["integration"] == "WHATSAPP-BAILEYS"
            assert body["number"] == "5511"
            return httpx.Response(
                201,
                json={"instance": {"instanceName": "shop-2", "instanceId": "i-2", "status": "created"}, "hash": "tok"},
            )

        result = await _provider(handler).create_instance("shop-2", "5511")

        assert result.success is True
        assert result.data["instanceId"] == "i-2"
        assert result.data["token"] == "tok"
        assert result.data["status"] == "disconnected"
        assert result.version == "2.3.5"

    @pytest.mark.asyncio
    async def test_create_instance_invalid_response(self):
        def handler(request):
            if request.url.path == "/instance/fetchInstances":
                return httpx.Response(200, json=[])
            return httpx.Response(201, json={"instance": {}})

        result = await _provider(handler).create_instance("shop-2")

        assert result.success is False
        assert result.error == "Invalid API response when creating instance"

    @pytest.mark.asyncio
    async def test_qr_code_without_pairing_code(self):
        def handler(request):
            return httpx.Response(200, json={"base64": "data:image/png;base64,QQ"})

        result = await _provider(handler).get_qr_code("shop-1")

        assert result.data == {"qrcode": "data:image/png;base64,QQ", "pairingCode": PAIRING_CODE_UNAVAILABLE}

    @pytest.mark.asyncio
    async def test_connection_state_nested(self):
        def handler(request):
            assert request.url.path == "/instance/connectionState/shop-1"
            return httpx.Response(200, json={"instance": {"instanceName": "shop-1", "state": "open"}})

        result = await _provider(handler).check_instance_status("shop-1")

        assert result.data == {"status": "connected"}

    @pytest.mark.asyncio
    async def test_instance_details_by_name_ignores_case(self):
        def handler(request):
            return httpx.Response(
                200,
                json=[{"instance": {"instanceName": "Shop-1", "instanceId": "i-1", "status": "open", "number": "5511"}}],
            )

        lookup = await _provider(handler).get_instance_details("shop-1")

        assert lookup.to_dict() == {
            "exists": True,
            "instance": {"instanceName": "Shop-1", "instanceId": "i-1", "status": "connected", "number": "5511"},
            "number": "5511",
            "status": "connected",
        }

    @pytest.mark.asyncio
    async def test_disconnect_by_number_logs_out_matching_instance(self):
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            if request.url.path == "/instance/fetchInstances":
                return httpx.Response(200, json=[{"name": "shop-1", "number": "5511"}])
            return httpx.Response(200, json={"status": "SUCCESS"})

        result = await _provider(handler).disconnect_device_by_number("5511")

        assert result.success is True
        assert seen[-1] == ("DELETE", "/instance/logout/shop-1")

    @pytest.mark.asyncio
    async def test_delete_by_unknown_number(self):
        def handler(request):
            return httpx.Response(200, json=[])

        result = await _provider(handler).delete_device_by_number("5511")

        assert result.success is False
        assert result.error == "Device with number 5511 not found."

    @pytest.mark.asyncio
    async def test_send_message_enables_link_preview_for_urls(self):
        bodies = []

        def handler(request):
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={"key": {"id": "M1"}})

        client = _provider(handler)
        await client.send_message("shop-1", "5511", "hi")
        await client.send_message("shop-1", "5511", "see https://x.test")

        assert [b["linkPreview"] for b in bodies] == [False, True]

    @pytest.mark.asyncio
    async def test_send_file_payload(self):
        bodies = []

        def handler(request):
            assert request.url.path == "/message/sendMedia/shop-1"
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json={})

        result = await _provider(handler).send_file("shop-1", "5511", "invoice", "https://files.test/inv.pdf")

        assert result.success is True
        assert bodies[0]["mediatype"] == "document"
        assert bodies[0]["mimetype"] == "application/pdf"
        assert bodies[0]["fileName"] == "inv.pdf"


class TestChatBackendClient:
    """Contact search, inbox lookup, message creation."""

    @pytest.mark.asyncio
    async def test_creates_message_in_first_inbox(self):
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            assert request.headers["apikey"] == "CALLER"
            if request.url.path.endswith("/contacts/search"):
                assert request.url.params["q"] == "5511"
                return httpx.Response(200, json={"payload": [{"id": 1}]})
            if request.url.path.endswith("/inboxes"):
                return httpx.Response(200, json={"payload": [{"id": 9}, {"id": 10}]})
            assert json.loads(request.content) == {"phonenumber": "5511", "message": "hi", "inbox_id": 9}
            return httpx.Response(200, json={"id": 100})

        client = ChatBackendClient("http://chat.test/api/v1", transport=httpx.MockTransport(handler))
        result = await client.create_message("12", "5511", "hi", "CALLER")

        assert result == {"id": 100}
        assert calls == [
            ("GET", "/api/v1/accounts/12/contacts/search"),
            ("GET", "/api/v1/accounts/12/inboxes"),
            ("POST", "/api/v1/accounts/12/conversations"),
        ]

    @pytest.mark.asyncio
    async def test_contact_not_found(self):
        def handler(request):
            return httpx.Response(200, json={"payload": []})

        client = ChatBackendClient("http://chat.test", transport=httpx.MockTransport(handler))

        with pytest.raises(ContactNotFoundError):
            await client.create_message("12", "5511", "hi", "CALLER")

    @pytest.mark.asyncio
    async def test_no_inboxes(self):
        def handler(request):
            if request.url.path.endswith("/contacts/search"):
                return httpx.Response(200, json={"payload": [{"id": 1}]})
            return httpx.Response(200, json={"payload": []})

        client = ChatBackendClient("http://chat.test", transport=httpx.MockTransport(handler))

        with pytest.raises(InboxNotFoundError):
            await client.create_message("12", "5511", "hi", "CALLER")

    @pytest.mark.asyncio
    async def test_backend_error_status(self):
        def handler(request):
            return httpx.Response(503)

        client = ChatBackendClient("http://chat.test", transport=httpx.MockTransport(handler))

        with pytest.raises(ChatBackendError, match="503"):
            await client.create_message("12", "5511", "hi", "CALLER")
