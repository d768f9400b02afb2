"""
OpenCode Session Search MCP Server

Provides MCP tools for finding OpenCode sessions by title, directory
and recent message text. Uses an incremental prefix index that is
cached on disk and only re-fetches sessions whose timestamp changed.

TOOLS (5 total):
- list_sessions() - List sessions, newest first
- search_sessions(query, limit?) - Prefix search over indexed sessions
- refresh_index() - Run one reconciliation cycle now
- index_status() - Index statistics and cycle progress
- clear_index_cache() - Drop the cached index and start over
"""

from __future__ import annotations

from typing_extensions import TypedDict

from fastmcp import FastMCP

from .index import IndexManager
from .index.sync import sort_by_recency

mcp = FastMCP("OpenCode Session Search")


# ========== Response Type Definitions ==========


class SessionSummary(TypedDict):
    """A session as returned by list/search tools."""

    id: str
    title: str
    directory: str
    updated: int
    created: int
    share_url: str | None


class SearchResults(TypedDict):
    """Result of search_sessions."""

    results: list[SessionSummary]
    is_indexing: bool
    progress: int


class RefreshSummary(TypedDict):
    """Result of refresh_index."""

    sessions: int
    indexed: int
    degraded: int
    pruned: int
    persisted: bool
    skipped: bool


class IndexStatus(TypedDict):
    """Result of index_status."""

    records: int
    tokens: int
    cache_bytes: int
    last_refresh: str | None
    state: str
    progress: int


# ========== Helper Functions ==========

# One manager for the lifetime of the server process
_manager: IndexManager | None = None


def _get_index_manager() -> IndexManager:
    """Get the process-wide IndexManager, creating it on first use."""
    global _manager
    if _manager is None:
        _manager = IndexManager.from_config()
    return _manager


def set_index_manager(manager: IndexManager | None) -> None:
    """Install the IndexManager the tools use (None resets it)."""
    global _manager
    _manager = manager


# ========== MCP Tools (5 total) ==========


@mcp.tool
async def list_sessions(limit: int = 50) -> list[SessionSummary]:
    """
    List OpenCode sessions, most recently updated first.

    Args:
        limit: Maximum sessions to return (default: 50)

    Returns:
        List of sessions with id, title, directory and timestamps
    """
    manager = _get_index_manager()
    sessions = await manager.client.list_sessions()
    return [s.to_dict() for s in sort_by_recency(sessions)[:limit]]


@mcp.tool
async def search_sessions(query: str, limit: int = 20) -> SearchResults:
    """
    Search sessions by title, directory and recent message text.

    Every word of the query must match the start of a word in the
    session (case-insensitive): "nu poin" finds "null pointer".
    The index is refreshed first; if a refresh is already running,
    results reflect the sessions indexed so far.

    Args:
        query: Search words; empty lists all sessions
        limit: Maximum sessions to return (default: 20)

    Returns:
        Matching sessions newest first, plus indexing status
    """
    manager = _get_index_manager()
    sessions = await manager.client.list_sessions()
    await manager.refresh(sessions)

    response = manager.search(sessions, query)
    return {
        "results": [s.to_dict() for s in response.results[:limit]],
        "is_indexing": response.is_indexing,
        "progress": response.progress,
    }


@mcp.tool
async def refresh_index() -> RefreshSummary:
    """
    Re-index new and updated sessions and prune deleted ones.

    Sessions whose update time is unchanged since the last run are
    not fetched again.

    Returns:
        Counts of indexed, degraded (title-only) and pruned sessions
    """
    manager = _get_index_manager()
    sessions, result = await manager.refresh_from_server()
    return {
        "sessions": len(sessions),
        "indexed": result.indexed,
        "degraded": result.degraded,
        "pruned": result.pruned,
        "persisted": result.persisted,
        "skipped": result.skipped,
    }


@mcp.tool
async def index_status() -> IndexStatus:
    """
    Show index statistics.

    Returns:
        Record and token counts, cache size, last refresh and progress
    """
    manager = _get_index_manager()
    manager.load_cached()
    stats = manager.get_stats()
    return {
        "records": stats.record_count,
        "tokens": stats.token_count,
        "cache_bytes": stats.cache_bytes,
        "last_refresh": (
            stats.last_refresh.isoformat() if stats.last_refresh else None
        ),
        "state": stats.state.value,
        "progress": stats.progress,
    }


@mcp.tool
async def clear_index_cache() -> dict[str, str]:
    """
    Delete the cached index. The next search rebuilds it from scratch.

    Returns:
        {"status": "ok" | "missing" | "error"}
    """
    result = _get_index_manager().clear_cache()
    return {"status": result.status.value}


if __name__ == "__main__":
    mcp.run()
