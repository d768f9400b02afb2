"""Session search over the in-memory prefix index.

Provides:
- search_sessions(): Query the index and map hits back onto sessions
- SearchResponse: Results plus the indexing status of the moment
- SessionSearch: Stateful facade (current query + session list)

Query semantics:
- Blank query: every live session, newest first, no index lookup
- Otherwise: case-insensitive prefix match per term, at most
  MAX_RESULTS hits, restricted to live sessions, newest first
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .sync import sort_by_recency

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..models import Session
    from .inverted import PrefixIndex
    from .manager import IndexManager
    from .store import WriteResult
    from .sync import SyncResult

# Cap on index hits per query
MAX_RESULTS = 100


@dataclass
class SearchResponse:
    """Composed read path: results plus indexing status."""

    results: list[Session] = field(default_factory=list)
    is_indexing: bool = False
    progress: int = 0

    @property
    def ids(self) -> list[str]:
        return [session.id for session in self.results]


def search_sessions(
    index: PrefixIndex,
    sessions: Sequence[Session],
    query: str,
    limit: int = MAX_RESULTS,
) -> list[Session]:
    """
    Search indexed sessions.

    Args:
        index: Prefix index keyed by session id
        sessions: Live session list; hits for other ids are dropped
        query: Search text
        limit: Maximum index hits considered

    Returns:
        Matching sessions ordered by updated time, newest first
    """
    if not query or not query.strip():
        return sort_by_recency(sessions)

    hit_ids = set(index.search(query, limit=limit))
    if not hit_ids:
        return []

    return sort_by_recency(s for s in sessions if s.id in hit_ids)


class SessionSearch:
    """
    Query-holding facade over an IndexManager.

    Usage:
        search = SessionSearch(manager, sessions)
        await search.refresh()
        search.set_query("null pointer")
        search.results  # -> [Session, ...]
    """

    def __init__(
        self,
        manager: IndexManager,
        sessions: Sequence[Session] | None = None,
    ):
        self._manager = manager
        self._sessions: list[Session] = list(sessions or [])
        self._query = ""

    @property
    def query(self) -> str:
        return self._query

    @property
    def sessions(self) -> list[Session]:
        return list(self._sessions)

    @property
    def is_indexing(self) -> bool:
        return self._manager.is_indexing

    @property
    def progress(self) -> int:
        return self._manager.progress

    @property
    def results(self) -> list[Session]:
        """Sessions matching the current query against the current index."""
        return self.response().results

    def set_query(self, text: str) -> list[Session]:
        """Set the query text and return the matching sessions."""
        self._query = text
        return self.results

    def set_sessions(self, sessions: Sequence[Session]) -> None:
        """Replace the live session list (does not start a refresh)."""
        self._sessions = list(sessions)

    def response(self) -> SearchResponse:
        return self._manager.search(self._sessions, self._query)

    async def refresh(self) -> SyncResult:
        """Run a reconciliation cycle for the current session list."""
        return await self._manager.refresh(self._sessions)

    def clear_cache(self) -> WriteResult:
        return self._manager.clear_cache()
