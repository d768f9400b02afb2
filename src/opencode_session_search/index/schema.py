"""SQLite schema for the key-value store backing the index cache.

The schema uses:
- kv: Durable string values addressed by key (one row per key)
- meta: Layout version of this database file

The index snapshot itself is one JSON value under a single key; its own
version lives inside the value (see cache.py), so bumping the snapshot
format never needs a table migration.
"""

import logging
import os
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

# Layout version of the database file (not of the snapshot inside it)
STORE_SCHEMA_VERSION = 1

# Default PRAGMAs for all connections (centralized to avoid drift)
DEFAULT_PRAGMAS = {
    "journal_mode": "WAL",  # Better concurrent read performance
    "synchronous": "NORMAL",  # Good balance of safety and speed
    "busy_timeout": 5000,  # Wait up to 5s for locks
}

# Upsert so a write always overwrites the prior value for the key
SET_VALUE_SQL = """INSERT INTO kv (key, value, updated_at)
    VALUES (?, ?, datetime('now'))
    ON CONFLICT(key) DO UPDATE SET
        value = excluded.value,
        updated_at = excluded.updated_at"""

GET_VALUE_SQL = "SELECT value FROM kv WHERE key = ?"

DELETE_VALUE_SQL = "DELETE FROM kv WHERE key = ?"


def create_connection(db_path: Path | str) -> sqlite3.Connection:
    """
    Create a database connection with standard configuration.

    Args:
        db_path: Path to the SQLite database file (or ":memory:")

    Returns:
        Configured connection with WAL mode, busy timeout, and Row factory
    """
    conn = sqlite3.connect(db_path, check_same_thread=False)
    conn.row_factory = sqlite3.Row

    for pragma, value in DEFAULT_PRAGMAS.items():
        conn.execute(f"PRAGMA {pragma}={value}")

    return conn


def get_schema_sql() -> str:
    """Return the complete schema creation SQL."""
    return """
-- Layout version tracking
CREATE TABLE IF NOT EXISTS meta (
    version INTEGER PRIMARY KEY
);

-- Durable string values; no transactions span more than one key
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT
);
"""


def init_database(db_path: Path) -> sqlite3.Connection:
    """
    Initialize the database with schema, creating parent directories if needed.

    Args:
        db_path: Path to the SQLite database file

    Returns:
        Open database connection

    Security:
        Sets file permissions to 0600 (owner read/write only) on new databases
        since the cache holds conversation text.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    is_new_db = not db_path.exists()

    conn = create_connection(db_path)

    # Must be done after sqlite3.connect() creates the file
    if is_new_db:
        try:
            os.chmod(db_path, 0o600)
            logger.debug("Set secure permissions (0600) on %s", db_path)
        except OSError as e:
            logger.warning(
                "Could not set secure permissions on %s: %s", db_path, e
            )

    ensure_schema(conn)
    return conn


def ensure_schema(conn: sqlite3.Connection) -> None:
    """
    Create the tables, or recreate them when the layout version differs.

    The store only ever holds a rebuildable cache, so an incompatible
    layout is dropped rather than migrated.
    """
    sql = "SELECT name FROM sqlite_master "
    sql += "WHERE type='table' AND name='meta'"
    if conn.execute(sql).fetchone() is not None:
        row = conn.execute("SELECT version FROM meta LIMIT 1").fetchone()
        current_version = row[0] if row else 0
        if current_version == STORE_SCHEMA_VERSION:
            return
        logger.info(
            "Store layout version %d != %d, recreating",
            current_version,
            STORE_SCHEMA_VERSION,
        )
        conn.executescript("""
            DROP TABLE IF EXISTS kv;
            DROP TABLE IF EXISTS meta;
        """)
    else:
        logger.info(
            "Creating fresh store schema (version %d)", STORE_SCHEMA_VERSION
        )

    conn.executescript(get_schema_sql())
    conn.execute(
        "INSERT INTO meta (version) VALUES (?)", (STORE_SCHEMA_VERSION,)
    )
    conn.commit()
