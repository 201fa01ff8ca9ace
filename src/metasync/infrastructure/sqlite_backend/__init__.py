"""
SQLite backend module for metasync.

SQLite-based storage for fsentries and their namespace bindings.
"""

from .queries import FSEntryQueryExecutor
from .schema import SCHEMA_VERSION, initialize_schema
from .store import SQLiteBackend, create_sqlite_backend

__all__ = [
    # Main classes
    "SQLiteBackend",
    # Query executor
    "FSEntryQueryExecutor",
    # Schema
    "SCHEMA_VERSION",
    "initialize_schema",
    # Factory
    "create_sqlite_backend",
]
