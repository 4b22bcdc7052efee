"""moltmem schema -- the memories table and its indexes."""

import logging
import sqlite3

from moltmem.errors import SchemaError

logger = logging.getLogger("moltmem.schema")

INDEXED_COLUMNS = ("category", "importance", "created_at", "text_lower")


def ensure_schema(conn: sqlite3.Connection) -> None:
    """Create the memories table and indexes if they don't exist.

    Safe to run against an image that already has them. Raises SchemaError
    on any SQLite failure.
    """
    try:
        conn.execute("""
            CREATE TABLE IF NOT EXISTS memories (
                id TEXT PRIMARY KEY,
                text TEXT NOT NULL,
                text_lower TEXT NOT NULL,
                category TEXT DEFAULT 'other',
                importance REAL DEFAULT 0.7,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL,
                session_key TEXT,
                metadata TEXT
            )
        """)

        for col in INDEXED_COLUMNS:
            conn.execute(f"""
                CREATE INDEX IF NOT EXISTS idx_memories_{col}
                ON memories({col})
            """)

        conn.commit()
    except sqlite3.Error as e:
        raise SchemaError(f"Failed to create memories schema: {e}") from e
    logger.debug("Schema ready (%d indexes)", len(INDEXED_COLUMNS))
