"""Command-line interface for opencode-session-search.

Provides commands for:
- index: Refresh the session index from the OpenCode server
- status: Show index statistics
- search: Search sessions from the terminal
- clear-cache: Delete the cached index
- serve: Run the MCP server (default)

Usage:
    opencode-session-search             # Run MCP server (default)
    opencode-session-search serve       # Run MCP server explicitly
    opencode-session-search --watch     # Run with periodic index refreshes
    opencode-session-search index       # Refresh index
    opencode-session-search status      # Show index status
    opencode-session-search search bug  # Search sessions
    opencode-session-search clear-cache # Drop the cached index
"""

import asyncio
import logging
import sys
import time
from datetime import datetime
from typing import Annotated

import cyclopts

from .client import OpenCodeClient, OpenCodeConnectionError, OpenCodeError
from .config import get_cache_path, get_server_url

app = cyclopts.App(
    name="opencode-session-search",
    help="Incremental full-text search over OpenCode sessions.",
)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _format_size(size_bytes: int) -> str:
    """Format file size for display."""
    if size_bytes < 1024 * 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes / (1024 * 1024):.1f} MB"


def _format_time(seconds: float) -> str:
    """Format duration for display."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    minutes = int(seconds // 60)
    secs = seconds % 60
    return f"{minutes}m {secs:.1f}s"


def _format_timestamp(millis: int) -> str:
    """Format an OpenCode millisecond timestamp for display."""
    if not millis:
        return "-"
    return datetime.fromtimestamp(millis / 1000).strftime("%Y-%m-%d %H:%M")


def _progress_bar(percent: int, width: int = 40) -> str:
    """Create a progress bar string."""
    pct = min(max(percent, 0), 100) / 100
    filled = int(width * pct)
    bar = "=" * filled + "-" * (width - filled)
    return f"[{bar}] {pct * 100:.0f}%"


def _server_unreachable(e: OpenCodeError) -> None:
    print(f"\n✗ {e}", file=sys.stderr)
    if isinstance(e, OpenCodeConnectionError):
        print("\nIs the OpenCode server running?", file=sys.stderr)
        print("  Run 'opencode serve' to start it, or set", file=sys.stderr)
        print("  OPENCODE_SERVER_URL to its address.", file=sys.stderr)
    sys.exit(1)


def _server_health(client: OpenCodeClient) -> str:
    """One-word server state for status output."""

    async def _check():
        try:
            return await client.health()
        finally:
            await client.aclose()

    try:
        info = asyncio.run(_check())
    except OpenCodeError:
        return "unreachable"
    if not info.get("healthy", True):
        return "unhealthy"
    version = info.get("version")
    return f"up, v{version}" if version else "up"


def _run_serve(watch: bool = False) -> None:
    """Internal function to run the MCP server."""
    from .index import SessionWatcher
    from .server import _get_index_manager, mcp

    manager = _get_index_manager()
    loaded = manager.load_cached()
    print(f"Loaded {loaded} cached sessions", file=sys.stderr)

    if not watch:
        mcp.run()
        return

    def on_update(indexed: int, pruned: int) -> None:
        print(f"Index updated: +{indexed} -{pruned}", file=sys.stderr)

    async def _serve_with_watcher() -> None:
        watcher = SessionWatcher(manager, on_update=on_update)
        watcher.start()
        print("Session watcher started", file=sys.stderr)
        try:
            await mcp.run_async()
        finally:
            await watcher.stop()

    asyncio.run(_serve_with_watcher())


@app.command
def serve(
    watch: Annotated[
        bool,
        cyclopts.Parameter(
            name=["--watch", "-w"],
            help="Poll the server and refresh the index periodically",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        cyclopts.Parameter(
            name=["--verbose", "-v"],
            help="Enable verbose output",
        ),
    ] = False,
) -> None:
    """
    Run the MCP server.

    This is the default command when no subcommand is specified.
    The cached index is loaded at startup; searches refresh it on demand.
    Use --watch to also refresh it in the background.
    """
    _configure_logging(verbose)
    _run_serve(watch=watch)


@app.command
def index(
    verbose: Annotated[
        bool,
        cyclopts.Parameter(name=["--verbose", "-v"], help="Show progress"),
    ] = False,
) -> None:
    """
    Refresh the search index from the OpenCode server.

    Only sessions that are new or were updated since the last run are
    fetched. Deleted sessions are pruned from the cache.
    """
    _configure_logging(verbose)
    from .index import IndexManager

    print(f"Indexing sessions from {get_server_url()}...")
    print(f"Cache location: {get_cache_path()}")
    print()

    def progress(percent: int) -> None:
        if verbose:
            print(f"\r{_progress_bar(percent)}", end="", flush=True)

    async def _refresh():
        manager = IndexManager.from_config(on_progress=progress)
        try:
            sessions, result = await manager.refresh_from_server()
            return manager, sessions, result
        finally:
            await manager.client.aclose()

    start = time.time()
    try:
        manager, sessions, result = asyncio.run(_refresh())
    except OpenCodeError as e:
        _server_unreachable(e)
        return
    elapsed = time.time() - start

    if verbose:
        print()

    print(
        f"✓ {len(sessions):,} sessions, {result.indexed:,} indexed, "
        f"{result.pruned:,} pruned in {_format_time(elapsed)}"
    )
    if result.degraded:
        print(f"  {result.degraded} indexed by title only (fetch failed)")
    if result.total_changes and not result.persisted:
        print("⚠ Index could not be saved; it will be rebuilt next run.")

    stats = manager.get_stats()
    print(f"  Cache size: {_format_size(stats.cache_bytes)}")


@app.command
def status(
    verbose: Annotated[
        bool,
        cyclopts.Parameter(
            name=["--verbose", "-v"],
            help="Enable verbose output",
        ),
    ] = False,
) -> None:
    """
    Show index statistics.

    Displays:
    - Cached session count and distinct tokens
    - Cache file size
    """
    _configure_logging(verbose)
    from .index import IndexManager

    manager = IndexManager.from_config()

    if not manager.store.exists():
        print("No index found.")
        print(f"Expected location: {get_cache_path()}")
        print()
        print("Run 'opencode-session-search index' to build the index.")
        sys.exit(1)

    manager.load_cached()
    stats = manager.get_stats()

    print("OpenCode Session Search Index Status")
    print("=" * 40)
    print(f"Location:     {get_cache_path()}")
    health = _server_health(manager.client)
    print(f"Server:       {get_server_url()} ({health})")
    print(f"Sessions:     {stats.record_count:,}")
    print(f"Tokens:       {stats.token_count:,}")
    print(f"Cache:        {_format_size(stats.cache_bytes)}")

    if stats.record_count == 0:
        print()
        print("⚠ Cache is empty. Run 'opencode-session-search index'.")


@app.command
def search(
    query: str,
    limit: Annotated[
        int,
        cyclopts.Parameter(name=["--limit", "-n"], help="Maximum results"),
    ] = 20,
    verbose: Annotated[
        bool,
        cyclopts.Parameter(
            name=["--verbose", "-v"],
            help="Enable verbose output",
        ),
    ] = False,
) -> None:
    """
    Search sessions by title, directory and recent messages.

    Refreshes the index first, so new sessions are found immediately.
    """
    _configure_logging(verbose)
    from .index import IndexManager

    async def _search():
        manager = IndexManager.from_config()
        try:
            sessions, _ = await manager.refresh_from_server()
            return manager.search(sessions, query)
        finally:
            await manager.client.aclose()

    try:
        response = asyncio.run(_search())
    except OpenCodeError as e:
        _server_unreachable(e)
        return

    if not response.results:
        print("No matching sessions.")
        return

    for session in response.results[:limit]:
        updated = _format_timestamp(session.updated_at)
        print(f"{updated}  {session.id}  {session.title or '(untitled)'}")
        if session.directory:
            print(f"{'':18}{session.directory}")


@app.command(name="clear-cache")
def clear_cache() -> None:
    """Delete the cached index. The next run re-indexes every session."""
    from .index import IndexManager
    from .index.store import StoreStatus

    manager = IndexManager.from_config()
    result = manager.clear_cache()

    if result.ok:
        print(f"✓ Removed cached index from {get_cache_path()}")
    elif result.status is StoreStatus.MISSING:
        print("No cached index to remove.")
    else:
        print(f"✗ Could not remove cache: {result.error}", file=sys.stderr)
        sys.exit(1)


@app.default
def default_handler(
    watch: Annotated[
        bool,
        cyclopts.Parameter(
            name=["--watch", "-w"],
            help="Poll the server and refresh the index periodically",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        cyclopts.Parameter(
            name=["--verbose", "-v"],
            help="Enable verbose output",
        ),
    ] = False,
) -> None:
    """Run the MCP server (default when no command specified)."""
    _configure_logging(verbose)
    _run_serve(watch=watch)


def main() -> None:
    """Entry point for the CLI."""
    app()
