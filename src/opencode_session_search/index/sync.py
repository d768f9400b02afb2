"""Change detection between live sessions and indexed records.

Compares the session list from the server with the record map to find:
- NEW: session id with no record -> index
- STALE: record.indexed_at != session.updated_at -> re-index
- ORPHANED: record id not in the session list -> prune

Only the ``updated`` timestamp is compared. A session whose messages
change without the server bumping that timestamp is not picked up.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from ..models import Session
    from .cache import IndexedRecord


@dataclass
class ChangeSet:
    """Work derived from one comparison of sessions against records."""

    to_index: list[Session] = field(default_factory=list)
    orphans: set[str] = field(default_factory=set)


@dataclass
class SyncResult:
    """Result of one reconciliation cycle."""

    indexed: int = 0
    degraded: int = 0
    pruned: int = 0
    persisted: bool = False
    skipped: bool = False

    @property
    def total_changes(self) -> int:
        return self.indexed + self.pruned


def needs_index(session: Session, record: IndexedRecord | None) -> bool:
    """True if the session has no record or its record is stale."""
    return record is None or record.indexed_at != session.updated_at


def sort_by_recency(sessions: Iterable[Session]) -> list[Session]:
    """Most recently updated first; ties keep their input order."""
    return sorted(sessions, key=lambda s: s.updated_at, reverse=True)


def find_orphans(
    sessions: Iterable[Session], records: Mapping[str, IndexedRecord]
) -> set[str]:
    """Ids held in records that no longer belong to a live session."""
    live_ids = {session.id for session in sessions}
    return {record_id for record_id in records if record_id not in live_ids}


def detect_changes(
    sessions: Iterable[Session], records: Mapping[str, IndexedRecord]
) -> ChangeSet:
    """
    Diff live sessions against the record map.

    Args:
        sessions: Authoritative current session list
        records: Records from the loaded cache or the previous cycle

    Returns:
        ChangeSet with sessions to (re)index, most recent first, and
        the ids of orphaned records
    """
    sessions = list(sessions)
    to_index = [
        session
        for session in sort_by_recency(sessions)
        if needs_index(session, records.get(session.id))
    ]
    return ChangeSet(
        to_index=to_index, orphans=find_orphans(sessions, records)
    )
