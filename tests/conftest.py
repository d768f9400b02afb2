"""Shared pytest fixtures for opencode-session-search tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from opencode_session_search.client import OpenCodeError
from opencode_session_search.index.manager import IndexManager
from opencode_session_search.index.store import KeyValueStore
from opencode_session_search.models import Message, MessagePart, Session


def make_session(
    session_id: str,
    updated: int,
    title: str = "",
    directory: str = "",
) -> Session:
    return Session(
        id=session_id, title=title, directory=directory, updated_at=updated
    )


def make_message(*texts: str, session_id: str = "s", role: str = "user"):
    """Message with one text part per argument."""
    return Message(
        id=f"msg-{abs(hash(texts))}",
        session_id=session_id,
        role=role,
        parts=[MessagePart(type="text", text=t) for t in texts],
    )


class FakeClient:
    """In-memory stand-in for OpenCodeClient.

    Records every message fetch so tests can assert on re-fetches.
    """

    def __init__(self) -> None:
        self.sessions: list[Session] = []
        self.messages: dict[str, list[Message]] = {}
        self.failing: set[str] = set()
        self.fetch_calls: list[tuple[str, int | None]] = []
        self.closed = False

    def set_messages(self, session_id: str, *texts: str) -> None:
        self.messages[session_id] = [
            make_message(t, session_id=session_id) for t in texts
        ]

    async def list_sessions(self) -> list[Session]:
        return list(self.sessions)

    async def get_session_messages(
        self, session_id: str, limit: int | None = None
    ) -> list[Message]:
        self.fetch_calls.append((session_id, limit))
        if session_id in self.failing:
            raise OpenCodeError("http_error", "HTTP 500: boom", status=500)
        messages = self.messages.get(session_id, [])
        return messages[-limit:] if limit else list(messages)

    def fetched_ids(self) -> list[str]:
        return [session_id for session_id, _ in self.fetch_calls]

    async def aclose(self) -> None:
        self.closed = True


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def memory_store():
    """Key-value store backed by an in-memory database."""
    store = KeyValueStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def temp_store_path(tmp_path: Path) -> Path:
    """Return a temporary path for a cache database file."""
    return tmp_path / "cache" / "test_cache.db"


@pytest.fixture
def manager(fake_client: FakeClient, memory_store: KeyValueStore):
    """IndexManager with no inter-chunk pause."""
    return IndexManager(
        fake_client, memory_store, window=10, chunk_pause=0
    )


@pytest.fixture
def sample_sessions() -> list[Session]:
    return [
        make_session("ses_a", 100, "Fix bug", "/home/dev/api"),
        make_session("ses_b", 200, "Add login page", "/home/dev/web"),
        make_session("ses_c", 300, "Refactor parser", "/home/dev/compiler"),
    ]
