"""
Infrastructure Layer - Backend interface, store implementations and URI resolution.
"""

from metasync.infrastructure.backend_base import BackendInterface
from metasync.infrastructure.fakes import InMemoryBackend, ScriptedSource, transient
from metasync.infrastructure.posix_backend import (
    PosixBackend,
    create_posix_backend,
    fsentry_id,
    statx_from_stat,
)
from metasync.infrastructure.sqlite_backend import SQLiteBackend, create_sqlite_backend
from metasync.infrastructure.uri import (
    URI_SCHEME,
    BackendRegistry,
    BackendURI,
    backend_from_uri,
    get_default_registry,
    parse_uri,
)

__all__ = [
    # Backend interface
    "BackendInterface",
    # POSIX backend
    "PosixBackend",
    "create_posix_backend",
    "fsentry_id",
    "statx_from_stat",
    # SQLite backend
    "SQLiteBackend",
    "create_sqlite_backend",
    # URIs
    "URI_SCHEME",
    "BackendURI",
    "BackendRegistry",
    "parse_uri",
    "backend_from_uri",
    "get_default_registry",
    # Fakes for testing
    "InMemoryBackend",
    "ScriptedSource",
    "transient",
]
