"""
SQLite backend schema definitions.
"""

import logging
import sqlite3

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

SCHEMA = """
-- Inodes: one row per fsentry id
CREATE TABLE IF NOT EXISTS entries (
    id BLOB PRIMARY KEY,
    statx TEXT,
    symlink BLOB,
    xattrs TEXT,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

-- Namespace: (parent_id, name) -> id bindings
CREATE TABLE IF NOT EXISTS namespace (
    parent_id BLOB NOT NULL,
    name BLOB NOT NULL,
    id BLOB NOT NULL,
    xattrs TEXT,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (parent_id, name)
);

CREATE INDEX IF NOT EXISTS idx_namespace_id
    ON namespace(id);
"""


def initialize_schema(conn: sqlite3.Connection) -> None:
    """Initialize the database schema and stamp its version."""
    version = conn.execute("PRAGMA user_version").fetchone()[0]
    if version > SCHEMA_VERSION:
        raise sqlite3.DatabaseError(
            f"database schema version {version} is newer than supported ({SCHEMA_VERSION})"
        )
    conn.executescript(SCHEMA)
    if version < SCHEMA_VERSION:
        logger.info(f"Stamping database schema version {SCHEMA_VERSION}")
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
    conn.commit()
