"""
Service Layer - SyncService, SyncPipeline and SinkCommitter.
"""

from metasync.services.sync_models import SyncResult
from metasync.services.sync_service import (
    ProgressCallback,
    SinkCommitter,
    SyncPipeline,
    SyncService,
)

__all__ = [
    "SyncService",
    "SyncPipeline",
    "SinkCommitter",
    "SyncResult",
    "ProgressCallback",
]
