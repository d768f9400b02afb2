"""IndexManager - Central interface for the session search index.

Provides:
- refresh(): One reconciliation cycle (load, detect, index, prune, persist)
- refresh_from_server(): List sessions from the server, then refresh()
- search(): Prefix search mapped back onto the live session list
- clear_cache(): Drop the persisted snapshot and all in-memory state
- get_stats(): Index statistics for status reporting

Concurrency:
- All work runs on one asyncio event loop
- Only one cycle runs at a time; refresh() during a cycle is a no-op
- search() may read a partially built index while a cycle is running
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import datetime
from types import MappingProxyType
from typing import TYPE_CHECKING

from ..config import get_chunk_pause_seconds, get_message_window
from .batch import BatchIndexer
from .cache import CACHE_KEY, clear_snapshot, load_snapshot, save_snapshot
from .inverted import PrefixIndex
from .search import MAX_RESULTS, SearchResponse, search_sessions
from .sync import SyncResult, detect_changes, find_orphans

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from ..client import OpenCodeClient
    from ..models import Session
    from .cache import IndexedRecord
    from .store import KeyValueStore, WriteResult

logger = logging.getLogger(__name__)


class IndexState(enum.Enum):
    """Phase of the reconciliation cycle."""

    IDLE = "idle"
    LOADING = "loading"
    INDEXING = "indexing"
    PRUNING = "pruning"
    PERSISTING = "persisting"


@dataclass
class IndexStats:
    """Statistics about the search index."""

    record_count: int
    token_count: int
    cache_bytes: int
    last_refresh: datetime | None
    state: IndexState
    progress: int


class IndexManager:
    """
    Owns the prefix index, the record map and the persisted snapshot.

    Construct one per process and pass it to whatever needs it; tests
    build isolated instances with a fake client and an in-memory store.

    Args:
        client: OpenCode client used to fetch messages
        store: Key-value store holding the snapshot
        window: Trailing messages indexed per session
        chunk_pause: Seconds yielded between indexing chunks
        on_progress: Optional callback(progress) during a cycle
    """

    def __init__(
        self,
        client: OpenCodeClient,
        store: KeyValueStore,
        *,
        window: int | None = None,
        chunk_pause: float | None = None,
        on_progress: Callable[[int], None] | None = None,
    ):
        self._client = client
        self._store = store
        self._window = window if window is not None else get_message_window()
        self._chunk_pause = (
            chunk_pause if chunk_pause is not None
            else get_chunk_pause_seconds()
        )
        self._on_progress = on_progress

        self._index = PrefixIndex()
        self._records: dict[str, IndexedRecord] = {}
        self._warm = False
        self._state = IndexState.IDLE
        self._progress = 0
        self._last_refresh: datetime | None = None
        # Bumped by clear_cache() so an in-flight cycle does not re-save
        self._generation = 0

    @classmethod
    def from_config(
        cls, on_progress: Callable[[int], None] | None = None
    ) -> IndexManager:
        """Build a manager wired to the configured server and cache path."""
        from ..client import OpenCodeClient
        from .store import KeyValueStore

        return cls(OpenCodeClient(), KeyValueStore(), on_progress=on_progress)

    @property
    def client(self) -> OpenCodeClient:
        return self._client

    @property
    def store(self) -> KeyValueStore:
        return self._store

    @property
    def index(self) -> PrefixIndex:
        return self._index

    @property
    def records(self) -> Mapping[str, IndexedRecord]:
        """Read-only view of the current record map."""
        return MappingProxyType(self._records)

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def is_indexing(self) -> bool:
        """True for the whole duration of a reconciliation cycle."""
        return self._state is not IndexState.IDLE

    @property
    def progress(self) -> int:
        """Percent of the current (or last) cycle completed, 0-100."""
        return self._progress

    def _set_progress(self, value: int) -> None:
        self._progress = value
        if self._on_progress:
            self._on_progress(value)

    def _load(self) -> bool:
        """
        Populate the index from the persisted snapshot.

        Returns:
            True if a usable snapshot was loaded
        """
        result = load_snapshot(self._store)
        self._warm = True
        if not result.loaded:
            logger.debug("Index cache not used: %s", result.status.value)
            return False

        for record in result.records:
            self._records[record.id] = record
            self._index.add(record.id, record.searchable_text)
        logger.info("Loaded %d cached session records", len(result.records))
        return True

    def _prune(self, orphans: set[str]) -> int:
        for session_id in orphans:
            self._index.remove(session_id)
            self._records.pop(session_id, None)
        return len(orphans)

    async def refresh(self, sessions: Sequence[Session]) -> SyncResult:
        """
        Bring the index in line with the given session list.

        Args:
            sessions: Authoritative current session list

        Returns:
            SyncResult; ``skipped`` is set when a cycle was already running
        """
        if self.is_indexing:
            logger.debug("Refresh requested during a cycle, ignoring")
            return SyncResult(skipped=True)
        if not sessions:
            return SyncResult(skipped=True)

        sessions = list(sessions)
        result = SyncResult()
        generation = self._generation
        self._state = IndexState.LOADING
        try:
            if not self._warm:
                self._load()

            changes = detect_changes(sessions, self._records)
            logger.info(
                "Index diff: %d to index, %d orphaned",
                len(changes.to_index),
                len(changes.orphans),
            )

            if changes.to_index:
                self._state = IndexState.INDEXING
                self._set_progress(0)
                indexer = BatchIndexer(
                    self._client,
                    self._index,
                    self._records,
                    window=self._window,
                    pause=self._chunk_pause,
                )
                batch = await indexer.run(
                    changes.to_index, on_progress=self._set_progress
                )
                result.indexed = batch.indexed
                result.degraded = batch.degraded

            self._state = IndexState.PRUNING
            result.pruned = self._prune(find_orphans(sessions, self._records))

            if generation != self._generation:
                logger.info("Index cache cleared during refresh, not saving")
            elif changes.to_index or result.pruned:
                self._state = IndexState.PERSISTING
                result.persisted = save_snapshot(
                    self._store, self._records.values()
                ).ok

            self._set_progress(100)
            self._last_refresh = datetime.now()
        finally:
            self._state = IndexState.IDLE

        logger.info(
            "Refresh complete: indexed=%d, degraded=%d, pruned=%d",
            result.indexed,
            result.degraded,
            result.pruned,
        )
        return result

    async def refresh_from_server(self) -> tuple[list[Session], SyncResult]:
        """
        List sessions from the server and refresh against them.

        Raises:
            OpenCodeError: If the session list cannot be fetched
        """
        sessions = await self._client.list_sessions()
        return sessions, await self.refresh(sessions)

    def search(
        self,
        sessions: Sequence[Session],
        query: str,
        limit: int = MAX_RESULTS,
    ) -> SearchResponse:
        """
        Search the index and map hits onto the live session list.

        Args:
            sessions: Current session list (hits outside it are dropped)
            query: Free text; blank returns every session
            limit: Maximum index hits considered

        Returns:
            SearchResponse with results newest first plus indexing status
        """
        return SearchResponse(
            results=search_sessions(self._index, sessions, query, limit),
            is_indexing=self.is_indexing,
            progress=self._progress,
        )

    def clear_cache(self) -> WriteResult:
        """
        Delete the persisted snapshot and reset in-memory state.

        A cycle already in flight finishes but does not save its snapshot.
        """
        result = clear_snapshot(self._store)
        self._generation += 1
        self._index.clear()
        self._records.clear()
        self._warm = False
        self._progress = 0
        self._last_refresh = None
        logger.info("Index cache cleared (%s)", result.status.value)
        return result

    def get_stats(self) -> IndexStats:
        """
        Get index statistics.

        Returns:
            IndexStats with counts, cache size and cycle status
        """
        return IndexStats(
            record_count=len(self._records),
            token_count=self._index.token_count,
            cache_bytes=self._store.size_of(CACHE_KEY),
            last_refresh=self._last_refresh,
            state=self._state,
            progress=self._progress,
        )

    def load_cached(self) -> int:
        """
        Load the persisted snapshot without contacting the server.

        Used by read-only commands (status, offline search).

        Returns:
            Number of records held after loading
        """
        if not self._warm:
            self._load()
        return len(self._records)
