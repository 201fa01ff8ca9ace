"""
Sync Service data models.
"""

from dataclasses import dataclass


@dataclass
class SyncResult:
    """Result of a sync run."""

    chunks: int = 0
    fsevents: int = 0
    applied: int = 0
    skipped_fsentries: int = 0
    source_retries: int = 0
    duration_seconds: float = 0.0
