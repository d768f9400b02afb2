"""Durable key-value storage for the index cache.

get/set/remove never raise for storage problems. Each call returns a
result carrying an explicit StoreStatus so callers can branch on the
failure kind instead of catching exceptions:

    result = store.set(key, value)
    if result.status is StoreStatus.QUOTA_EXCEEDED:
        ...
"""

from __future__ import annotations

import enum
import logging
import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path

from ..config import get_cache_max_bytes, get_cache_path
from .schema import (
    DELETE_VALUE_SQL,
    GET_VALUE_SQL,
    SET_VALUE_SQL,
    create_connection,
    ensure_schema,
    init_database,
)

logger = logging.getLogger(__name__)


class StoreStatus(enum.Enum):
    """Outcome of a single store operation."""

    OK = "ok"
    MISSING = "missing"
    QUOTA_EXCEEDED = "quota_exceeded"
    ERROR = "error"


@dataclass(frozen=True)
class ReadResult:
    """Result of KeyValueStore.get()."""

    status: StoreStatus
    value: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is StoreStatus.OK


@dataclass(frozen=True)
class WriteResult:
    """Result of KeyValueStore.set() / remove()."""

    status: StoreStatus
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is StoreStatus.OK


class KeyValueStore:
    """
    SQLite-backed durable string storage with a per-value size quota.

    The store is stored at ~/.opencode-session-search/cache.db by default.
    Use environment variables to customize:
    - OPENCODE_SEARCH_CACHE_PATH: Database location
    - OPENCODE_SEARCH_CACHE_MAX_BYTES: Largest accepted value (5 MiB)

    Pass ``":memory:"`` as db_path for a throwaway store.
    """

    def __init__(
        self,
        db_path: Path | str | None = None,
        max_bytes: int | None = None,
    ):
        self._db_path = db_path if db_path is not None else get_cache_path()
        self._max_bytes = max_bytes if max_bytes is not None else (
            get_cache_max_bytes()
        )
        self._conn: sqlite3.Connection | None = None
        self._conn_lock = threading.Lock()

    @property
    def db_path(self) -> Path | str:
        """Get the database file path."""
        return self._db_path

    @property
    def max_bytes(self) -> int:
        return self._max_bytes

    def _get_conn(self) -> sqlite3.Connection:
        """Get or create the database connection (thread-safe)."""
        with self._conn_lock:
            if self._conn is None:
                if isinstance(self._db_path, Path):
                    self._conn = init_database(self._db_path)
                else:
                    self._conn = create_connection(self._db_path)
                    ensure_schema(self._conn)
            return self._conn

    def close(self) -> None:
        """Close the database connection."""
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def exists(self) -> bool:
        """Check if a store file exists on disk."""
        return isinstance(self._db_path, Path) and self._db_path.exists()

    def get(self, key: str) -> ReadResult:
        """
        Read the value stored under key.

        Returns:
            ReadResult with OK and the value, MISSING, or ERROR
        """
        try:
            row = self._get_conn().execute(GET_VALUE_SQL, (key,)).fetchone()
        except (sqlite3.Error, OSError) as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return ReadResult(StoreStatus.ERROR, error=str(e))
        if row is None:
            return ReadResult(StoreStatus.MISSING)
        return ReadResult(StoreStatus.OK, value=row["value"])

    def set(self, key: str, value: str) -> WriteResult:
        """
        Overwrite the value stored under key.

        Values over the size quota are refused; the prior value stays.
        Values that cannot be encoded as UTF-8 (lone surrogates) are
        refused with ERROR.

        Returns:
            WriteResult with OK, QUOTA_EXCEEDED, or ERROR
        """
        try:
            size = len(value.encode("utf-8"))
        except UnicodeEncodeError as e:
            return WriteResult(StoreStatus.ERROR, error=str(e))
        if size > self._max_bytes:
            return WriteResult(
                StoreStatus.QUOTA_EXCEEDED,
                error=f"{size} bytes exceeds quota of {self._max_bytes}",
            )
        try:
            conn = self._get_conn()
            conn.execute(SET_VALUE_SQL, (key, value))
            conn.commit()
        except (sqlite3.Error, OSError) as e:
            return WriteResult(StoreStatus.ERROR, error=str(e))
        return WriteResult(StoreStatus.OK)

    def remove(self, key: str) -> WriteResult:
        """
        Delete the value stored under key.

        Returns:
            WriteResult with OK (deleted), MISSING (nothing stored), or ERROR
        """
        try:
            conn = self._get_conn()
            cursor = conn.execute(DELETE_VALUE_SQL, (key,))
            conn.commit()
        except (sqlite3.Error, OSError) as e:
            return WriteResult(StoreStatus.ERROR, error=str(e))
        if cursor.rowcount == 0:
            return WriteResult(StoreStatus.MISSING)
        return WriteResult(StoreStatus.OK)

    def size_of(self, key: str) -> int:
        """Size in bytes of the stored value, 0 when absent or unreadable."""
        result = self.get(key)
        if not result.ok or result.value is None:
            return 0
        return len(result.value.encode("utf-8", errors="surrogatepass"))
