"""OpenCode Session Search - incremental search over OpenCode sessions.

Features:
- Prefix search over session titles, directories and recent messages
- Persistent index cache; unchanged sessions are never fetched twice
- Progressive re-indexing in four chunks, newest sessions first

Usage:
    opencode-session-search              # Run MCP server (default)
    opencode-session-search index        # Refresh the index
    opencode-session-search status       # Show index statistics
    opencode-session-search search QUERY # Search from the terminal
"""

from .cli import main
from .server import mcp

__all__ = ["main", "mcp"]
