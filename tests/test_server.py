"""Tests for MCP server tools.

Tests the 5 MCP tools exposed by server.py:
- list_sessions
- search_sessions
- refresh_index
- index_status
- clear_index_cache

Each test installs an IndexManager backed by FakeClient and an
in-memory store, so no OpenCode server is needed.
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from conftest import FakeClient, make_session

from opencode_session_search import server
from opencode_session_search.index.manager import IndexManager


def _tool(tool):
    """Underlying coroutine function of a registered tool."""
    return getattr(tool, "fn", tool)


@pytest.fixture(autouse=True)
def installed_manager(manager: IndexManager, fake_client: FakeClient):
    fake_client.sessions = [
        make_session("ses_a", 100, "Fix bug", "/home/dev/api"),
        make_session("ses_b", 200, "Add login page", "/home/dev/web"),
        make_session("ses_c", 300, "Refactor parser", "/home/dev/compiler"),
    ]
    fake_client.set_messages("ses_a", "null pointer in handler")
    server.set_index_manager(manager)
    yield manager
    server.set_index_manager(None)


class TestListSessions:
    """Tests for list_sessions() tool."""

    @pytest.mark.asyncio
    async def test_newest_first(self):
        result = await _tool(server.list_sessions)()

        assert [s["id"] for s in result] == ["ses_c", "ses_b", "ses_a"]
        assert result[0]["title"] == "Refactor parser"
        assert result[0]["updated"] == 300

    @pytest.mark.asyncio
    async def test_limit(self):
        result = await _tool(server.list_sessions)(limit=1)
        assert [s["id"] for s in result] == ["ses_c"]

    @pytest.mark.asyncio
    async def test_does_not_index(self, fake_client: FakeClient):
        await _tool(server.list_sessions)()
        assert fake_client.fetch_calls == []


class TestSearchSessions:
    """Tests for search_sessions() tool."""

    @pytest.mark.asyncio
    async def test_finds_message_text(self):
        result = await _tool(server.search_sessions)("null poin")

        assert [s["id"] for s in result["results"]] == ["ses_a"]
        assert result["is_indexing"] is False
        assert result["progress"] == 100

    @pytest.mark.asyncio
    async def test_finds_directory(self):
        result = await _tool(server.search_sessions)("compiler")
        assert [s["id"] for s in result["results"]] == ["ses_c"]

    @pytest.mark.asyncio
    async def test_empty_query_lists_all(self):
        result = await _tool(server.search_sessions)("")
        assert len(result["results"]) == 3

    @pytest.mark.asyncio
    async def test_limit(self):
        result = await _tool(server.search_sessions)("home", limit=2)
        assert [s["id"] for s in result["results"]] == ["ses_c", "ses_b"]

    @pytest.mark.asyncio
    async def test_second_search_does_not_refetch(
        self, fake_client: FakeClient
    ):
        await _tool(server.search_sessions)("fix")
        calls = len(fake_client.fetch_calls)
        await _tool(server.search_sessions)("fix")
        assert len(fake_client.fetch_calls) == calls


class TestRefreshIndex:
    """Tests for refresh_index() tool."""

    @pytest.mark.asyncio
    async def test_counts(self, fake_client: FakeClient):
        fake_client.failing.add("ses_b")

        result = await _tool(server.refresh_index)()

        assert result == {
            "sessions": 3,
            "indexed": 2,
            "degraded": 1,
            "pruned": 0,
            "persisted": True,
            "skipped": False,
        }

    @pytest.mark.asyncio
    async def test_prunes_deleted(self, fake_client: FakeClient):
        await _tool(server.refresh_index)()
        fake_client.sessions = fake_client.sessions[:1]

        result = await _tool(server.refresh_index)()

        assert result["pruned"] == 2
        assert result["indexed"] == 0

    @pytest.mark.asyncio
    async def test_empty_session_list_skips(self, fake_client: FakeClient):
        fake_client.sessions = []
        result = await _tool(server.refresh_index)()
        assert result["skipped"] is True


class TestIndexStatus:
    """Tests for index_status() tool."""

    @pytest.mark.asyncio
    async def test_before_any_refresh(self):
        result = await _tool(server.index_status)()

        assert result["records"] == 0
        assert result["last_refresh"] is None
        assert result["state"] == "idle"

    @pytest.mark.asyncio
    async def test_after_refresh(self):
        await _tool(server.refresh_index)()

        result = await _tool(server.index_status)()

        assert result["records"] == 3
        assert result["tokens"] > 0
        assert result["cache_bytes"] > 0
        assert result["last_refresh"] is not None
        assert result["progress"] == 100


class TestClearIndexCache:
    """Tests for clear_index_cache() tool."""

    @pytest.mark.asyncio
    async def test_clears(self):
        await _tool(server.refresh_index)()

        assert await _tool(server.clear_index_cache)() == {"status": "ok"}
        status = await _tool(server.index_status)()
        assert status["records"] == 0

    @pytest.mark.asyncio
    async def test_nothing_to_clear(self):
        result = await _tool(server.clear_index_cache)()
        assert result == {"status": "missing"}


class TestManagerSetup:
    def test_created_from_config_on_first_use(self, manager):
        server.set_index_manager(None)
        with patch.object(
            IndexManager, "from_config", return_value=manager
        ) as mock_from_config:
            assert server._get_index_manager() is manager
            assert server._get_index_manager() is manager
        mock_from_config.assert_called_once_with()
