"""
Low-level SQL query executor for the SQLite backend.
"""

import sqlite3
from typing import Iterator, List, Optional

_ENTRY_COLUMNS = """
    e.id AS id, n.parent_id AS parent_id, n.name AS name,
    e.statx AS statx, e.symlink AS symlink,
    e.xattrs AS inode_xattrs, n.xattrs AS namespace_xattrs
"""


class FSEntryQueryExecutor:
    """Executes SQL queries for the SQLite backend."""

    def __init__(self, conn: sqlite3.Connection):
        self._conn = conn

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    def iter_entries(self, batch_size: int = 1024) -> Iterator[sqlite3.Row]:
        """Stream every (inode, binding) pair; unbound inodes appear once."""
        cursor = self._conn.execute(
            f"""
            SELECT {_ENTRY_COLUMNS}
            FROM entries e LEFT JOIN namespace n ON n.id = e.id
            ORDER BY e.rowid, n.rowid
            """
        )
        try:
            while True:
                rows = cursor.fetchmany(batch_size)
                if not rows:
                    break
                yield from rows
        finally:
            cursor.close()

    def get_entry_by_id(self, entry_id: bytes) -> Optional[sqlite3.Row]:
        """Get an inode together with its first binding, if any."""
        cursor = self._conn.execute(
            f"""
            SELECT {_ENTRY_COLUMNS}
            FROM entries e LEFT JOIN namespace n ON n.id = e.id
            WHERE e.id = ?
            ORDER BY n.rowid
            LIMIT 1
            """,
            (entry_id,),
        )
        return cursor.fetchone()

    def get_child(self, parent_id: bytes, name: bytes) -> Optional[sqlite3.Row]:
        """Get the entry bound to ``name`` under ``parent_id``."""
        cursor = self._conn.execute(
            f"""
            SELECT {_ENTRY_COLUMNS}
            FROM namespace n JOIN entries e ON e.id = n.id
            WHERE n.parent_id = ? AND n.name = ?
            """,
            (parent_id, name),
        )
        return cursor.fetchone()

    def get_roots(self) -> List[sqlite3.Row]:
        """Get inodes that are not bound anywhere."""
        cursor = self._conn.execute(
            f"""
            SELECT {_ENTRY_COLUMNS}
            FROM entries e LEFT JOIN namespace n ON n.id = e.id
            WHERE n.id IS NULL
            ORDER BY e.rowid
            """
        )
        return cursor.fetchall()

    def get_inode(self, entry_id: bytes) -> Optional[sqlite3.Row]:
        """Get the raw inode columns of an entry."""
        cursor = self._conn.execute(
            "SELECT id, statx, symlink, xattrs FROM entries WHERE id = ?",
            (entry_id,),
        )
        return cursor.fetchone()

    def count_entries(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM entries").fetchone()[0]

    def count_links(self) -> int:
        return self._conn.execute("SELECT COUNT(*) FROM namespace").fetchone()[0]

    # ─────────────────────────────────────────────────────────────────
    # Writes (callers own the transaction)
    # ─────────────────────────────────────────────────────────────────

    def upsert_inode(
        self,
        entry_id: bytes,
        statx: Optional[str],
        symlink: Optional[bytes],
        xattrs: Optional[str],
        updated_at: str,
    ) -> None:
        """Insert or replace the inode columns of an entry."""
        self._conn.execute(
            """
            INSERT INTO entries (id, statx, symlink, xattrs, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                statx = excluded.statx,
                symlink = excluded.symlink,
                xattrs = excluded.xattrs,
                updated_at = excluded.updated_at
            """,
            (entry_id, statx, symlink, xattrs, updated_at),
        )

    def ensure_inode(self, entry_id: bytes) -> None:
        """Create an empty inode row unless one exists."""
        self._conn.execute("INSERT OR IGNORE INTO entries (id) VALUES (?)", (entry_id,))

    def upsert_link(
        self,
        parent_id: bytes,
        name: bytes,
        entry_id: bytes,
        xattrs: Optional[str],
        updated_at: str,
    ) -> None:
        """Bind ``name`` under ``parent_id`` to ``entry_id``."""
        self._conn.execute(
            """
            INSERT INTO namespace (parent_id, name, id, xattrs, updated_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(parent_id, name) DO UPDATE SET
                id = excluded.id,
                xattrs = excluded.xattrs,
                updated_at = excluded.updated_at
            """,
            (parent_id, name, entry_id, xattrs, updated_at),
        )

    def clear_all(self) -> None:
        """Clear all data."""
        self._conn.execute("DELETE FROM namespace")
        self._conn.execute("DELETE FROM entries")
        self._conn.commit()
