"""
Core Layer - Data model, field projection, fsevent conversion and iterator plumbing.
"""

from metasync.core.config import (
    LoggingConfig,
    MetasyncConfig,
    SyncConfig,
    configure_logging,
    load_config,
)
from metasync.core.converter import ConverterState, ConvertIterator
from metasync.core.errors import (
    BackendError,
    ChunkInProgressError,
    InvalidFieldError,
    InvalidURIError,
    SyncError,
    TransientError,
)
from metasync.core.field_grammar import field_names, parse_projection
from metasync.core.fsentry import (
    SYMLINK_MAX,
    FieldMask,
    FSEntry,
    ProjectionSpec,
    Statx,
    StatxMask,
)
from metasync.core.fsevent import FSEvent, FSEventType, LinkEvent, UpsertEvent
from metasync.core.iterators import (
    DEFAULT_CHUNK_SIZE,
    Chunk,
    ChunkIterator,
    ClosableIterator,
    RetryingIterator,
    TeeCursor,
    chunkify,
    drain,
    retry_transient,
    tee,
)
from metasync.core.projection import ProjectionIterator, project, project_statx

__all__ = [
    # Config
    "MetasyncConfig",
    "SyncConfig",
    "LoggingConfig",
    "configure_logging",
    "load_config",
    # Errors
    "SyncError",
    "TransientError",
    "BackendError",
    "ChunkInProgressError",
    "InvalidFieldError",
    "InvalidURIError",
    # Data model
    "FieldMask",
    "StatxMask",
    "Statx",
    "FSEntry",
    "ProjectionSpec",
    "SYMLINK_MAX",
    "FSEvent",
    "FSEventType",
    "UpsertEvent",
    "LinkEvent",
    # Field grammar
    "field_names",
    "parse_projection",
    # Pipeline stages
    "ProjectionIterator",
    "project",
    "project_statx",
    "ConvertIterator",
    "ConverterState",
    # Iterators
    "ClosableIterator",
    "RetryingIterator",
    "retry_transient",
    "Chunk",
    "ChunkIterator",
    "chunkify",
    "DEFAULT_CHUNK_SIZE",
    "TeeCursor",
    "tee",
    "drain",
]
