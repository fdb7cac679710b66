import base64
import json
from urllib.parse import parse_qs

import httpx
import pytest

from chatsync.runtime.api_client import Auth, ChatApiClient
from chatsync.runtime.exceptions import ClientApiError, NetworkError, ServerApiError

REALM = "https://chat.example.com"


@pytest.fixture
def auth():
    return Auth(realm=REALM, email="me@example.com", api_key="secret-key")


def _client(handler):
    return ChatApiClient(httpx.AsyncClient(transport=httpx.MockTransport(handler)))


@pytest.mark.asyncio
async def test_get_messages_sends_query_and_credentials(auth):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(
            200,
            json={
                "result": "success",
                "msg": "",
                "messages": [{"id": 1}],
                "found_newest": True,
                "found_oldest": False,
                "anchor": 1,
            },
        )

    async with _client(handler) as client:
        payload = await client.get_messages(
            auth,
            narrow=[{"operator": "stream", "operand": "general"}],
            anchor="first_unread",
            num_before=25,
            num_after=25,
            use_first_unread_anchor=True,
        )

    request = seen["request"]
    assert request.method == "GET"
    assert request.url.path == "/api/v1/messages"
    params = request.url.params
    assert json.loads(params["narrow"]) == [{"operator": "stream", "operand": "general"}]
    assert params["anchor"] == "first_unread"
    assert params["num_before"] == "25"
    assert params["num_after"] == "25"
    assert params["use_first_unread_anchor"] == "true"
    assert params["apply_markdown"] == "true"
    expected = base64.b64encode(b"me@example.com:secret-key").decode()
    assert request.headers["authorization"] == f"Basic {expected}"
    assert payload["messages"] == [{"id": 1}]
    assert payload["found_newest"] is True


@pytest.mark.asyncio
async def test_numeric_anchor_without_first_unread_flag(auth):
    seen = {}

    def handler(request):
        seen["params"] = request.url.params
        return httpx.Response(200, json={"result": "success", "messages": []})

    async with _client(handler) as client:
        await client.get_messages(auth, narrow=[], anchor=1234, num_before=50, num_after=0)

    assert seen["params"]["anchor"] == "1234"
    assert "use_first_unread_anchor" not in seen["params"]


@pytest.mark.asyncio
async def test_register_queue_posts_json_encoded_form(auth):
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(
            200,
            json={"result": "success", "queue_id": "1:0", "last_event_id": -1, "user_id": 7},
        )

    async with _client(handler) as client:
        payload = await client.register_queue(
            auth,
            fetch_event_types=["message", "realm_user"],
            client_capabilities={"notification_settings_null": True},
        )

    request = seen["request"]
    assert request.method == "POST"
    assert request.url.path == "/api/v1/register"
    form = {k: v[0] for k, v in parse_qs(request.content.decode()).items()}
    assert json.loads(form["fetch_event_types"]) == ["message", "realm_user"]
    assert form["apply_markdown"] == "true"
    assert form["include_subscribers"] == "false"
    assert json.loads(form["client_capabilities"]) == {"notification_settings_null": True}
    assert payload["queue_id"] == "1:0"
    # Extra snapshot fields are kept.
    assert payload["user_id"] == 7


@pytest.mark.asyncio
async def test_server_settings_is_unauthenticated():
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(200, json={"result": "success", "zulip_version": "4.0"})

    async with _client(handler) as client:
        payload = await client.get_server_settings(REALM + "/")

    assert seen["request"].url == httpx.URL(REALM + "/api/v1/server_settings")
    assert "authorization" not in seen["request"].headers
    assert payload["zulip_version"] == "4.0"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 403, 429])
async def test_4xx_is_a_client_error(auth, status):
    def handler(request):
        return httpx.Response(status, json={"result": "error", "msg": "Invalid API key", "code": "INVALID_API_KEY"})

    async with _client(handler) as client:
        with pytest.raises(ClientApiError) as info:
            await client.get_messages(auth, narrow=[], anchor=1, num_before=1, num_after=0)

    assert info.value.status_code == status
    assert info.value.code == "INVALID_API_KEY"
    assert str(info.value) == f"{status}: Invalid API key"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [500, 502, 503])
async def test_5xx_is_a_server_error(auth, status):
    def handler(request):
        return httpx.Response(status, text="<html>bad gateway</html>")

    async with _client(handler) as client:
        with pytest.raises(ServerApiError) as info:
            await client.get_server_settings(REALM)

    assert info.value.status_code == status


@pytest.mark.asyncio
async def test_transport_failure_is_a_network_error(auth):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with _client(handler) as client:
        with pytest.raises(NetworkError):
            await client.register_queue(auth, fetch_event_types=[])


@pytest.mark.asyncio
async def test_unsuccessful_result_with_200_is_a_server_error(auth):
    def handler(request):
        return httpx.Response(200, json={"result": "error", "msg": "try again"})

    async with _client(handler) as client:
        with pytest.raises(ServerApiError, match="try again"):
            await client.get_messages(auth, narrow=[], anchor=1, num_before=1, num_after=0)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {"result": "success"},
        {"result": "success", "queue_id": "1:0", "last_event_id": "soon"},
    ],
)
async def test_malformed_register_response_is_a_server_error(auth, body):
    def handler(request):
        return httpx.Response(200, json=body)

    async with _client(handler) as client:
        with pytest.raises(ServerApiError, match="invalid response"):
            await client.register_queue(auth, fetch_event_types=[])


@pytest.mark.asyncio
async def test_non_json_body_is_a_server_error():
    def handler(request):
        return httpx.Response(200, text="maintenance")

    async with _client(handler) as client:
        with pytest.raises(ServerApiError):
            await client.get_server_settings(REALM)


@pytest.mark.asyncio
async def test_upload_file_sends_multipart(auth, tmp_path):
    path = tmp_path / "notes.txt"
    path.write_text("hello")
    seen = {}

    def handler(request):
        seen["request"] = request
        return httpx.Response(200, json={"result": "success", "uri": "/user_uploads/1/ab/notes.txt"})

    async with _client(handler) as client:
        payload = await client.upload_file(auth, path, "notes.txt")

    request = seen["request"]
    assert request.url.path == "/api/v1/user_uploads"
    assert request.headers["content-type"].startswith("multipart/form-data")
    assert b'filename="notes.txt"' in request.content
    assert b"hello" in request.content
    assert payload["uri"] == "/user_uploads/1/ab/notes.txt"


def test_auth_repr_hides_api_key(auth):
    assert "secret-key" not in repr(auth)
