"""Session watcher for automatic index refreshes.

Polls the OpenCode server's session list and runs a reconciliation
cycle whenever it is asked to. Sessions are created, renamed and
deleted outside this process, so polling is the only change signal.

The watcher runs as an asyncio task on the caller's event loop.
Poll failures are logged and the loop keeps going.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import httpx

from ..client import OpenCodeError
from ..config import get_poll_interval_seconds

if TYPE_CHECKING:
    from collections.abc import Callable

    from .manager import IndexManager

logger = logging.getLogger(__name__)


class SessionWatcher:
    """
    Periodically refreshes an IndexManager from the server.

    Usage:
        watcher = SessionWatcher(manager, on_update=callback)
        watcher.start()
        # ... later ...
        await watcher.stop()
    """

    def __init__(
        self,
        manager: IndexManager,
        on_update: Callable[[int, int], None] | None = None,
        interval: float | None = None,
    ):
        """
        Initialize the watcher.

        Args:
            manager: Index to keep fresh
            on_update: Optional callback(indexed, pruned) after each cycle
            interval: Seconds between polls (uses config default if None)
        """
        self.manager = manager
        self.on_update = on_update
        self.interval = (
            interval if interval is not None else get_poll_interval_seconds()
        )
        self._task: asyncio.Task | None = None
        self._stop_event = asyncio.Event()

    def start(self) -> bool:
        """
        Start polling on the running event loop.

        Returns:
            True if started, False if already running
        """
        if self.is_running:
            return False

        self._stop_event.clear()
        self._task = asyncio.create_task(
            self._poll_loop(), name="SessionWatcher"
        )
        logger.info("Session watcher started (every %.0fs)", self.interval)
        return True

    async def stop(self) -> None:
        """Stop polling and wait for the loop to exit."""
        self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        logger.info("Session watcher stopped")

    @property
    def is_running(self) -> bool:
        """Check if watcher is running."""
        return self._task is not None and not self._task.done()

    async def poll_once(self) -> None:
        """List sessions and refresh; failures are logged, not raised."""
        try:
            _, result = await self.manager.refresh_from_server()
        except (OpenCodeError, httpx.HTTPError) as e:
            logger.warning("Session poll failed: %s", e)
            return

        if result.skipped:
            return
        if self.on_update and result.total_changes:
            self.on_update(result.indexed, result.pruned)

    async def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            await self.poll_once()
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(), timeout=self.interval
                )
            except asyncio.TimeoutError:
                continue
