"""Persistent snapshot of the session index.

The snapshot is a single JSON value in the key-value store:

    {"version": 1,
     "records": [{"id", "title", "directory", "content", "indexedAt"}, ...]}

Only records are stored; the prefix index is rebuilt from them on load.
A version mismatch or unparseable value is treated as a cold start.
"""

from __future__ import annotations

import enum
import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .store import StoreStatus, WriteResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .store import KeyValueStore

logger = logging.getLogger(__name__)

CACHE_KEY = "opencode-session-search-index"

# Bump to invalidate every persisted snapshot wholesale
CACHE_VERSION = 1


@dataclass
class IndexedRecord:
    """Search-ready text of one session, tagged with its source timestamp."""

    id: str
    title: str
    directory: str
    content: str
    indexed_at: int

    @property
    def searchable_text(self) -> str:
        return f"{self.title} {self.directory} {self.content}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "directory": self.directory,
            "content": self.content,
            "indexedAt": self.indexed_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> IndexedRecord:
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            directory=data.get("directory") or "",
            content=data.get("content") or "",
            indexed_at=int(data["indexedAt"]),
        )


@dataclass
class CacheSnapshot:
    """Versioned, ordered record set as persisted."""

    schema_version: int = CACHE_VERSION
    records: list[IndexedRecord] = field(default_factory=list)


class LoadStatus(enum.Enum):
    """Why a snapshot was or was not loaded."""

    LOADED = "loaded"
    MISSING = "missing"
    CORRUPT = "corrupt"
    VERSION_MISMATCH = "version_mismatch"
    UNAVAILABLE = "unavailable"


@dataclass
class LoadResult:
    """Result of load_snapshot(); records are empty unless LOADED."""

    status: LoadStatus
    records: list[IndexedRecord] = field(default_factory=list)

    @property
    def loaded(self) -> bool:
        return self.status is LoadStatus.LOADED


class SnapshotFormatError(ValueError):
    """Raised by deserialize_snapshot() for malformed payloads."""


def serialize_snapshot(snapshot: CacheSnapshot) -> str:
    """
    Encode a snapshot as compact, key-sorted, ASCII-only JSON.

    Non-ASCII text is written as \\u escapes, so message text holding
    lone surrogates still round-trips and stays storable as UTF-8.
    """
    payload = {
        "version": snapshot.schema_version,
        "records": [record.to_dict() for record in snapshot.records],
    }
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def deserialize_snapshot(raw: str) -> CacheSnapshot:
    """
    Decode a snapshot produced by serialize_snapshot().

    The version is returned as found; comparing it is the caller's job.

    Raises:
        SnapshotFormatError: If the payload is not a valid snapshot
    """
    try:
        payload = json.loads(raw)
    except ValueError as e:
        raise SnapshotFormatError(f"Invalid JSON: {e}") from e

    if not isinstance(payload, dict):
        raise SnapshotFormatError("Snapshot is not an object")

    version = payload.get("version")
    items = payload.get("records")
    if not isinstance(version, int) or not isinstance(items, list):
        raise SnapshotFormatError("Snapshot is missing version or records")

    try:
        records = [IndexedRecord.from_dict(item) for item in items]
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise SnapshotFormatError(f"Malformed record: {e}") from e

    return CacheSnapshot(schema_version=version, records=records)


def load_snapshot(store: KeyValueStore) -> LoadResult:
    """
    Load the persisted records, or report why none are usable.

    Args:
        store: Key-value store holding the snapshot

    Returns:
        LoadResult; anything but LOADED means start cold
    """
    result = store.get(CACHE_KEY)
    if result.status is StoreStatus.MISSING:
        return LoadResult(LoadStatus.MISSING)
    if not result.ok or result.value is None:
        return LoadResult(LoadStatus.UNAVAILABLE)

    try:
        snapshot = deserialize_snapshot(result.value)
    except SnapshotFormatError as e:
        logger.info("Discarding unreadable index cache: %s", e)
        return LoadResult(LoadStatus.CORRUPT)

    if snapshot.schema_version != CACHE_VERSION:
        logger.info(
            "Discarding index cache version %d (current %d)",
            snapshot.schema_version,
            CACHE_VERSION,
        )
        return LoadResult(LoadStatus.VERSION_MISMATCH)

    return LoadResult(LoadStatus.LOADED, records=snapshot.records)


def save_snapshot(
    store: KeyValueStore, records: Iterable[IndexedRecord]
) -> WriteResult:
    """
    Persist records as a snapshot tagged with the current version.

    A failed write is logged and returned; the in-memory index stays valid.
    """
    snapshot = CacheSnapshot(CACHE_VERSION, list(records))
    result = store.set(CACHE_KEY, serialize_snapshot(snapshot))
    if not result.ok:
        logger.warning(
            "Index cache not persisted (%s): %s",
            result.status.value,
            result.error,
        )
    return result


def clear_snapshot(store: KeyValueStore) -> WriteResult:
    """Delete the persisted snapshot (MISSING if there was none)."""
    return store.remove(CACHE_KEY)
