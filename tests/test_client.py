"""Tests for the OpenCode HTTP client.

Uses httpx.MockTransport so no server is needed.
"""

from __future__ import annotations

import httpx
import pytest

from opencode_session_search.client import (
    OpenCodeClient,
    OpenCodeConnectionError,
    OpenCodeError,
)

SESSION_JSON = {
    "id": "ses_1",
    "projectID": "proj",
    "directory": "/home/dev/api",
    "title": "Fix bug",
    "version": "0.3.0",
    "time": {"created": 10, "updated": 20},
}

MESSAGES_JSON = [
    {
        "info": {"id": "m1", "sessionID": "ses_1", "role": "user"},
        "parts": [{"type": "text", "text": "null pointer"}],
    },
    {
        "info": {"id": "m2", "sessionID": "ses_1", "role": "assistant"},
        "parts": [
            {"type": "tool", "tool": "bash"},
            {"type": "text", "text": "fixed"},
        ],
    },
]


def _client(handler, **kwargs) -> OpenCodeClient:
    return OpenCodeClient(
        base_url="http://opencode.test",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


class TestOpenCodeClient:
    """Tests for request building and response parsing."""

    @pytest.mark.asyncio
    async def test_list_sessions(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[SESSION_JSON])

        async with _client(handler) as client:
            sessions = await client.list_sessions()

        assert seen[0].url.path == "/session"
        assert len(sessions) == 1
        assert sessions[0].id == "ses_1"
        assert sessions[0].updated_at == 20
        assert sessions[0].directory == "/home/dev/api"

    @pytest.mark.asyncio
    async def test_get_session_messages_sends_limit(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=MESSAGES_JSON)

        async with _client(handler) as client:
            messages = await client.get_session_messages("ses_1", 20)

        assert seen[0].url.path == "/session/ses_1/message"
        assert seen[0].url.params["limit"] == "20"
        assert [m.id for m in messages] == ["m1", "m2"]
        assert messages[1].parts[0].is_text is False
        assert messages[1].parts[1].text == "fixed"

    @pytest.mark.asyncio
    async def test_directory_sent_as_param_and_header(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        async with _client(handler, directory="/work/proj") as client:
            await client.list_sessions()

        assert seen[0].url.params["directory"] == "/work/proj"
        assert seen[0].headers["x-opencode-directory"] == "/work/proj"

    @pytest.mark.asyncio
    async def test_health(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/global/health"
            return httpx.Response(
                200, json={"healthy": True, "version": "0.3.0"}
            )

        async with _client(handler) as client:
            assert (await client.health())["healthy"] is True

    @pytest.mark.asyncio
    async def test_http_error_raises_opencode_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, text="session not found")

        async with _client(handler) as client:
            with pytest.raises(OpenCodeError) as exc_info:
                await client.get_session_messages("missing", 20)

        assert exc_info.value.status == 404
        assert exc_info.value.code == "http_error"
        assert "session not found" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(OpenCodeConnectionError) as exc_info:
                await client.list_sessions()

        assert exc_info.value.code == "connection_error"
        assert "opencode.test" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b"<html>")

        async with _client(handler) as client:
            with pytest.raises(OpenCodeError) as exc_info:
                await client.list_sessions()

        assert exc_info.value.code == "invalid_response"

    @pytest.mark.parametrize(
        "payload",
        [
            {"x": 1},
            [None],
            ["text"],
            [{"info": "m1", "parts": []}],
        ],
    )
    @pytest.mark.asyncio
    async def test_malformed_messages_raise_invalid_response(self, payload):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        async with _client(handler) as client:
            with pytest.raises(OpenCodeError) as exc_info:
                await client.get_session_messages("ses_1", 20)

        assert exc_info.value.code == "invalid_response"

    @pytest.mark.parametrize("payload", [{"id": "ses_1"}, [{"title": "x"}]])
    @pytest.mark.asyncio
    async def test_malformed_sessions_raise_invalid_response(self, payload):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        async with _client(handler) as client:
            with pytest.raises(OpenCodeError) as exc_info:
                await client.list_sessions()

        assert exc_info.value.code == "invalid_response"

    @pytest.mark.asyncio
    async def test_null_body_is_empty_list(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=None)

        async with _client(handler) as client:
            assert await client.get_session_messages("ses_1", 20) == []

    @pytest.mark.asyncio
    async def test_non_string_text_dropped(self):
        payload = [
            {"info": {"id": "m1"}, "parts": [{"type": "text", "text": 7}]}
        ]

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=payload)

        async with _client(handler) as client:
            messages = await client.get_session_messages("ses_1", 20)

        assert messages[0].parts[0].text is None

    @pytest.mark.asyncio
    async def test_session_id_escaped_in_path(self):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[])

        async with _client(handler) as client:
            await client.get_session_messages("ses/1", 20)

        assert seen[0].url.raw_path.startswith(b"/session/ses%2F1/message")
        assert seen[0].url.params["limit"] == "20"

    @pytest.mark.asyncio
    async def test_health_rejects_non_object(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=["ok"])

        async with _client(handler) as client:
            with pytest.raises(OpenCodeError) as exc_info:
                await client.health()

        assert exc_info.value.code == "invalid_response"

    def test_base_url_trailing_slash_stripped(self):
        client = OpenCodeClient(base_url="http://localhost:4096/")
        assert client.base_url == "http://localhost:4096"

    def test_defaults_from_environment(self, monkeypatch):
        monkeypatch.setenv("OPENCODE_SERVER_URL", "http://example:9999")
        monkeypatch.setenv("OPENCODE_DIRECTORY", "/env/dir")
        client = OpenCodeClient()
        assert client.base_url == "http://example:9999"
        assert client.directory == "/env/dir"


class TestErrorHierarchy:
    def test_connection_error_is_opencode_error(self):
        assert issubclass(OpenCodeConnectionError, OpenCodeError)

    def test_error_attributes(self):
        err = OpenCodeError("http_error", "HTTP 500: boom", status=500)
        assert err.code == "http_error"
        assert err.status == 500
        assert str(err) == "HTTP 500: boom"
