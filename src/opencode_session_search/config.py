"""Configuration for OpenCode Session Search."""

import os
from pathlib import Path

# Default OpenCode server (where `opencode serve` listens)
DEFAULT_SERVER_URL = "http://localhost:4096"

# Default cache location
DEFAULT_CACHE_PATH = Path.home() / ".opencode-session-search" / "cache.db"

# Quota for a single stored value (UTF-8 bytes)
DEFAULT_CACHE_MAX_BYTES = 5 * 1024 * 1024


def get_server_url() -> str:
    """
    Get the base URL of the OpenCode server.

    Set OPENCODE_SERVER_URL to point at a server on another port or host.
    Defaults to http://localhost:4096

    Returns:
        Base URL without a trailing slash.
    """
    url = os.environ.get("OPENCODE_SERVER_URL", DEFAULT_SERVER_URL)
    return url.rstrip("/")


def get_default_directory() -> str | None:
    """
    Get the project directory sent along with every request.

    Set OPENCODE_DIRECTORY to scope the server to one project.
    If not set, the server's own working directory is used.

    Returns:
        Directory path or None.
    """
    return os.environ.get("OPENCODE_DIRECTORY") or None


# ========== Cache Configuration ==========


def get_cache_path() -> Path:
    """
    Get the SQLite key-value store path holding the index snapshot.

    Set OPENCODE_SEARCH_CACHE_PATH to customize the location.
    Defaults to ~/.opencode-session-search/cache.db

    Returns:
        Path to the cache database file.
    """
    env_path = os.environ.get("OPENCODE_SEARCH_CACHE_PATH")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CACHE_PATH


def get_cache_max_bytes() -> int:
    """
    Get the size quota for a single stored value.

    Writes larger than this are refused and the previous snapshot is kept.

    Set OPENCODE_SEARCH_CACHE_MAX_BYTES to customize.
    Defaults to 5 MiB.

    Returns:
        Maximum value size in bytes (UTF-8).
    """
    env_val = os.environ.get("OPENCODE_SEARCH_CACHE_MAX_BYTES")
    if env_val:
        return int(env_val)
    return DEFAULT_CACHE_MAX_BYTES


# ========== Indexing Configuration ==========


def get_message_window() -> int:
    """
    Get the number of trailing messages indexed per session.

    Set OPENCODE_SEARCH_MESSAGE_WINDOW to customize.
    Defaults to 10 messages.

    Returns:
        Message window size (at least 1).
    """
    return max(1, int(os.environ.get("OPENCODE_SEARCH_MESSAGE_WINDOW", "10")))


def get_chunk_pause_seconds() -> float:
    """
    Get the pause between indexing chunks.

    Set OPENCODE_SEARCH_CHUNK_PAUSE_MS to customize.
    Defaults to 50 ms.

    Returns:
        Pause in seconds.
    """
    return float(os.environ.get("OPENCODE_SEARCH_CHUNK_PAUSE_MS", "50")) / 1000


def get_poll_interval_seconds() -> float:
    """
    Get how often the session watcher re-lists sessions.

    Set OPENCODE_SEARCH_POLL_SECONDS to customize.
    Defaults to 30 seconds.

    Returns:
        Poll interval in seconds.
    """
    return float(os.environ.get("OPENCODE_SEARCH_POLL_SECONDS", "30"))
