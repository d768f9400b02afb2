"""Progressive (re)indexing of sessions in a fixed number of chunks.

The work list is split into CHUNK_COUNT chunks processed strictly in
order. Within a chunk, message fetches run concurrently; their results
are then applied one by one, so the index and record map are only ever
mutated from this coroutine. After each chunk, progress is reported and
control is yielded for a short pause (except after the last chunk).

Fetch failures never abort a chunk:
- new session -> degraded record (title + directory, no content)
- already indexed session -> previous record kept, retried next cycle
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

import httpx

from ..client import OpenCodeError
from .cache import IndexedRecord
from .extract import MESSAGES_PER_SESSION, extract_text, fetch_limit

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from ..client import OpenCodeClient
    from ..models import Message, Session
    from .inverted import PrefixIndex

logger = logging.getLogger(__name__)

CHUNK_COUNT = 4

# Cooperative yield between chunks
CHUNK_PAUSE_SECONDS = 0.05

T = TypeVar("T")


def partition_chunks(
    items: Sequence[T], chunks: int = CHUNK_COUNT
) -> list[list[T]]:
    """
    Split items into exactly ``chunks`` consecutive slices.

    Slice size is ceil(len/chunks) (at least 1), so trailing slices may be
    short or empty: 2 items in 4 chunks -> sizes [1, 1, 0, 0].
    """
    size = max(1, math.ceil(len(items) / chunks))
    return [list(items[i * size : (i + 1) * size]) for i in range(chunks)]


@dataclass
class FetchOutcome:
    """Messages for one session, or the reason they could not be fetched."""

    session: Session
    messages: list[Message] | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.messages is not None


@dataclass
class BatchResult:
    """Counts from one BatchIndexer.run()."""

    indexed: int = 0
    degraded: int = 0


async def fetch_session(
    client: OpenCodeClient, session: Session, limit: int
) -> FetchOutcome:
    """Fetch a session's recent messages, capturing failure as a value."""
    try:
        messages = await client.get_session_messages(session.id, limit)
    except (OpenCodeError, httpx.HTTPError) as e:
        return FetchOutcome(session, error=str(e))
    return FetchOutcome(session, messages=messages)


class BatchIndexer:
    """
    Indexes sessions into a PrefixIndex and record map, chunk by chunk.

    Args:
        client: Source of session messages
        index: Prefix index updated in place
        records: Record map updated in place (id -> IndexedRecord)
        window: Trailing messages extracted per session
        pause: Seconds to yield between chunks
    """

    def __init__(
        self,
        client: OpenCodeClient,
        index: PrefixIndex,
        records: dict[str, IndexedRecord],
        window: int = MESSAGES_PER_SESSION,
        pause: float = CHUNK_PAUSE_SECONDS,
    ):
        self._client = client
        self._index = index
        self._records = records
        self._window = window
        self._pause = pause

    async def run(
        self,
        sessions: Sequence[Session],
        on_progress: Callable[[int], None] | None = None,
    ) -> BatchResult:
        """
        Index sessions in CHUNK_COUNT ordered chunks.

        Args:
            sessions: Sessions needing work, most relevant first
            on_progress: Called with 25, 50, 75, 100 after each chunk

        Returns:
            BatchResult with indexed and degraded counts
        """
        result = BatchResult()
        chunks = partition_chunks(sessions)
        limit = fetch_limit(self._window)

        for chunk_index, chunk in enumerate(chunks):
            if chunk:
                outcomes = await asyncio.gather(
                    *(fetch_session(self._client, s, limit) for s in chunk)
                )
                for outcome in outcomes:
                    self._apply(outcome, result)

            if on_progress:
                on_progress(round((chunk_index + 1) / CHUNK_COUNT * 100))

            is_last = chunk_index == len(chunks) - 1
            if chunk and not is_last:
                await asyncio.sleep(self._pause)

        logger.debug(
            "Batch complete: %d indexed, %d degraded",
            result.indexed,
            result.degraded,
        )
        return result

    def _apply(self, outcome: FetchOutcome, result: BatchResult) -> None:
        session = outcome.session

        if outcome.ok:
            record = IndexedRecord(
                id=session.id,
                title=session.title,
                directory=session.directory,
                content=extract_text(outcome.messages or [], self._window),
                indexed_at=session.updated_at,
            )
            result.indexed += 1
        else:
            logger.debug(
                "Message fetch failed for %s: %s", session.id, outcome.error
            )
            if session.id in self._records:
                # Keep the stale record searchable; it is retried next cycle
                return
            record = IndexedRecord(
                id=session.id,
                title=session.title,
                directory=session.directory,
                content="",
                indexed_at=session.updated_at,
            )
            result.degraded += 1

        # add() drops the old postings first, so no duplicate entries
        self._index.add(record.id, record.searchable_text)
        self._records[record.id] = record
