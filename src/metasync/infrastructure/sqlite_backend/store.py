"""
SQLite backend implementation.

Persists fsentries in a SQLite database and applies fsevents with merge
semantics: an upsert only overwrites the statx sub-fields and xattrs it
carries, a link (re)binds a name under a parent.
"""

import base64
import json
import logging
import os
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional

from metasync.core.errors import BackendError
from metasync.core.fsentry import FieldMask, FSEntry, ProjectionSpec, Statx
from metasync.core.fsevent import FSEvent, LinkEvent, UpsertEvent
from metasync.infrastructure.backend_base import BackendInterface

from .queries import FSEntryQueryExecutor
from .schema import initialize_schema

logger = logging.getLogger(__name__)


def _now_str() -> str:
    """Get current datetime as ISO string for SQLite."""
    return datetime.now().astimezone().strftime("%Y-%m-%d %H:%M:%S")


def _dump_xattrs(xattrs: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Serialize xattrs; bytes values are tagged and base64-encoded."""
    if xattrs is None:
        return None
    encoded = {
        key: {"base64": base64.b64encode(value).decode("ascii")}
        if isinstance(value, (bytes, bytearray))
        else value
        for key, value in xattrs.items()
    }
    return json.dumps(encoded, sort_keys=True)


def _encode_name(name: Optional[str]) -> Optional[bytes]:
    """Names and symlink targets are stored as raw filesystem bytes."""
    if name is None:
        return None
    return os.fsencode(name)


def _decode_name(raw: Optional[bytes]) -> Optional[str]:
    if raw is None:
        return None
    return os.fsdecode(bytes(raw))


def _load_xattrs(text: Optional[str]) -> Optional[Dict[str, Any]]:
    if text is None:
        return None
    decoded = {}
    for key, value in json.loads(text).items():
        if isinstance(value, dict) and set(value) == {"base64"}:
            value = base64.b64decode(value["base64"])
        decoded[key] = value
    return decoded


class SQLiteBackend(BackendInterface):
    """
    SQLite-based fsentry storage.

    Each call to :meth:`update` runs in a single transaction: a chunk of
    fsevents is applied entirely or not at all.
    """

    name = "sqlite"

    def __init__(
        self,
        db_path: Path | str,
        root_path: Optional[str] = None,
        root_id: Optional[bytes] = None,
        batch_size: int = 1024,
    ):
        self._db_path = Path(db_path)
        self._root_path = root_path
        self._root_id = root_id
        self._batch_size = batch_size
        self._conn: Optional[sqlite3.Connection] = None
        self._query: Optional[FSEntryQueryExecutor] = None
        self._initialized = False

    @property
    def db_path(self) -> Path:
        return self._db_path

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create database connection."""
        if self._conn is None:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self._db_path))
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL;")
            self._conn.execute("PRAGMA busy_timeout=5000;")
            self._query = FSEntryQueryExecutor(self._conn)
        return self._conn

    def initialize(self) -> None:
        """Initialize the database schema."""
        if self._initialized:
            return
        try:
            conn = self._get_connection()
            initialize_schema(conn)
            self._initialized = True
            logger.info(f"Initialized sqlite backend: {self._db_path}")
        except sqlite3.Error as e:
            raise BackendError(f"Failed to initialize schema: {e}", self.name) from e

    def _ensure_query(self) -> FSEntryQueryExecutor:
        """Ensure query executor is available."""
        self.initialize()
        assert self._query is not None
        return self._query

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    def _row_to_fsentry(self, row: sqlite3.Row, projection: ProjectionSpec) -> FSEntry:
        fields = projection.fields
        statx = None
        if fields & FieldMask.STATX and row["statx"] is not None:
            statx = Statx.from_dict(json.loads(row["statx"]))
        return FSEntry(
            id=bytes(row["id"]),
            parent_id=bytes(row["parent_id"]) if row["parent_id"] is not None else None,
            name=_decode_name(row["name"]),
            statx=statx,
            symlink=_decode_name(row["symlink"]),
            inode_xattrs=(
                _load_xattrs(row["inode_xattrs"])
                if fields & FieldMask.INODE_XATTRS
                else None
            ),
            namespace_xattrs=(
                _load_xattrs(row["namespace_xattrs"])
                if fields & FieldMask.NAMESPACE_XATTRS
                else None
            ),
        )

    def filter_fsentries(self, projection: ProjectionSpec) -> Iterator[FSEntry]:
        """Stream every fsentry of the database."""
        query = self._ensure_query()
        rows = query.iter_entries(self._batch_size)
        try:
            for row in rows:
                yield self._row_to_fsentry(row, projection)
        except sqlite3.Error as e:
            raise BackendError(f"Failed to read entries: {e}", self.name) from e
        finally:
            rows.close()

    def root(self, projection: ProjectionSpec) -> FSEntry:
        """Look up the fsentry designated by the URI fragment."""
        try:
            query = self._ensure_query()
            if self._root_id is not None:
                row = query.get_entry_by_id(self._root_id)
                if row is None:
                    raise BackendError(f"no entry with id {self._root_id.hex()}", self.name)
                return self._row_to_fsentry(row, projection)

            roots = query.get_roots()
            if len(roots) != 1:
                raise BackendError(
                    f"expected exactly one root entry, found {len(roots)}", self.name
                )
            row = roots[0]
            for component in Path(self._root_path or "").parts:
                if component in ("/", "."):
                    continue
                row = query.get_child(bytes(row["id"]), os.fsencode(component))
                if row is None:
                    raise BackendError(f"no such entry: {self._root_path}", self.name)
            return self._row_to_fsentry(row, projection)
        except sqlite3.Error as e:
            raise BackendError(f"Failed to look up root: {e}", self.name) from e

    # ─────────────────────────────────────────────────────────────────
    # Writes
    # ─────────────────────────────────────────────────────────────────

    def _apply_upsert(self, query: FSEntryQueryExecutor, fsevent: UpsertEvent, now: str) -> None:
        existing = query.get_inode(fsevent.id)

        statx: Dict[str, int] = {}
        symlink = None
        xattrs: Optional[Dict[str, Any]] = None
        if existing is not None:
            statx = json.loads(existing["statx"]) if existing["statx"] else {}
            symlink = existing["symlink"]
            xattrs = _load_xattrs(existing["xattrs"])

        if fsevent.statx is not None:
            statx.update(fsevent.statx.to_dict())
        if fsevent.symlink is not None:
            symlink = _encode_name(fsevent.symlink)
        if fsevent.xattrs is not None:
            xattrs = {**(xattrs or {}), **fsevent.xattrs}

        query.upsert_inode(
            fsevent.id,
            json.dumps(statx, sort_keys=True) if statx else None,
            symlink,
            _dump_xattrs(xattrs),
            now,
        )

    def _apply_link(self, query: FSEntryQueryExecutor, fsevent: LinkEvent, now: str) -> None:
        query.ensure_inode(fsevent.id)
        query.upsert_link(
            fsevent.parent_id,
            _encode_name(fsevent.name),
            fsevent.id,
            _dump_xattrs(fsevent.xattrs),
            now,
        )

    def update(self, fsevents: Iterable[FSEvent]) -> int:
        """Apply fsevents in one transaction and return how many were applied."""
        query = self._ensure_query()
        conn = self._get_connection()
        now = _now_str()
        count = 0
        try:
            with conn:
                for fsevent in fsevents:
                    if isinstance(fsevent, UpsertEvent):
                        self._apply_upsert(query, fsevent, now)
                    elif isinstance(fsevent, LinkEvent):
                        self._apply_link(query, fsevent, now)
                    else:
                        raise BackendError(f"unsupported fsevent: {fsevent!r}", self.name)
                    count += 1
        except sqlite3.Error as e:
            raise BackendError(f"Failed to apply fsevents: {e}", self.name) from e
        logger.debug(f"Applied {count} fsevents to {self._db_path}")
        return count

    # ─────────────────────────────────────────────────────────────────
    # Statistics / Lifecycle
    # ─────────────────────────────────────────────────────────────────

    def get_stats(self) -> Dict[str, int]:
        """Get store statistics."""
        try:
            query = self._ensure_query()
            return {"total_entries": query.count_entries(), "total_links": query.count_links()}
        except sqlite3.Error as e:
            raise BackendError(f"Failed to get stats: {e}", self.name) from e

    def clear_all(self) -> None:
        """Clear all data from the store."""
        try:
            self._ensure_query().clear_all()
        except sqlite3.Error as e:
            raise BackendError(f"Failed to clear data: {e}", self.name) from e

    def close(self) -> None:
        """Close the database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None
            self._query = None
            self._initialized = False


def create_sqlite_backend(
    db_path: Path | str,
    root_path: Optional[str] = None,
    root_id: Optional[bytes] = None,
) -> SQLiteBackend:
    """Factory function to create a SQLite backend."""
    return SQLiteBackend(db_path, root_path=root_path, root_id=root_id)
