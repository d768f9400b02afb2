"""Incremental prefix-search index over OpenCode sessions.

This module provides:
- IndexManager: Main interface for refreshing, searching and clearing the index
- SessionSearch: Query-holding facade for interactive callers
- SessionWatcher: Polls the server and refreshes automatically
- Persistent snapshot in a SQLite key-value store, reused across launches
- Progressive re-indexing of new and updated sessions in four chunks
"""

from .manager import IndexManager, IndexState, IndexStats
from .search import SearchResponse, SessionSearch
from .sync import SyncResult
from .watcher import SessionWatcher

__all__ = [
    "IndexManager",
    "IndexState",
    "IndexStats",
    "SearchResponse",
    "SessionSearch",
    "SessionWatcher",
    "SyncResult",
]
