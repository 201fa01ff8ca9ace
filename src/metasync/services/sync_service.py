"""
Sync Service for metasync.

Wires the pipeline together: source fsentries are retried on transient
signals, projected, converted to fsevents, chunked, and each chunk is
committed to the destination backend.
"""

import logging
import time
from typing import Callable, Iterable, Iterator, Optional

from metasync.core.converter import ConvertIterator
from metasync.core.fsentry import FSEntry, ProjectionSpec
from metasync.core.fsevent import FSEvent
from metasync.core.iterators import (
    DEFAULT_CHUNK_SIZE,
    Chunk,
    ChunkIterator,
    RetryingIterator,
    chunkify,
    drain,
    retry_transient,
    tee,
)
from metasync.core.projection import ProjectionIterator
from metasync.infrastructure.backend_base import BackendInterface
from metasync.services.sync_models import SyncResult

logger = logging.getLogger(__name__)

#: Called after each committed chunk with (chunks, fsevents, message)
ProgressCallback = Callable[[int, int, str], None]


class SyncPipeline:
    """
    Owns the whole stage chain, from the entry source to the chunker.

    Closing the pipeline (or leaving its ``with`` block) closes every stage
    and the source, whether or not the stream was exhausted.
    """

    def __init__(
        self,
        fsentries: Iterable[FSEntry],
        projection: Optional[ProjectionSpec] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self._source: RetryingIterator[FSEntry] = retry_transient(fsentries)
        self._converter = ConvertIterator(
            ProjectionIterator(self._source, projection or ProjectionSpec.default())
        )
        self._chunks: ChunkIterator[FSEvent] = chunkify(self._converter, chunk_size)

    @property
    def chunks(self) -> ChunkIterator[FSEvent]:
        return self._chunks

    @property
    def skipped(self) -> int:
        """Number of fsentries skipped for lack of an id so far."""
        return self._converter.skipped

    @property
    def retries(self) -> int:
        """Number of transient signals absorbed so far."""
        return self._source.retries

    def __iter__(self) -> Iterator[Chunk[FSEvent]]:
        return self._chunks

    def close(self) -> None:
        self._chunks.close()

    def __enter__(self) -> "SyncPipeline":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class SinkCommitter:
    """
    Hands chunks of fsevents to a destination backend.

    Each chunk is teed: the backend consumes one cursor while the committer
    drains the other, so every fsevent is submitted once and accounted for
    once, and the chunk is fully consumed before the next one is requested.
    """

    def __init__(
        self,
        backend: BackendInterface,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        self._backend = backend
        self._progress_callback = progress_callback

    def commit(self, chunk: Chunk[FSEvent]) -> tuple[int, int]:
        """
        Submit one chunk.

        Returns:
            Tuple of (fsevents applied by the backend, fsevents in the chunk)

        Raises:
            BackendError: On a store-specific failure
        """
        submitted, accounted = tee(chunk)
        try:
            try:
                applied = self._backend.update(submitted)
            finally:
                submitted.close()
            total = drain(accounted)
        finally:
            accounted.close()

        if applied != total:
            logger.warning(f"Backend applied {applied} of {total} fsevents")
        return applied, total

    def run(self, chunks: Iterable[Chunk[FSEvent]]) -> SyncResult:
        """Commit chunks until the stream ends cleanly or a failure propagates."""
        result = SyncResult()
        for chunk in chunks:
            applied, total = self.commit(chunk)
            result.chunks += 1
            result.fsevents += total
            result.applied += applied
            logger.debug(f"Committed chunk {result.chunks}: {applied}/{total} fsevents")
            if self._progress_callback:
                self._progress_callback(
                    result.chunks, result.fsevents, f"Committed {result.fsevents} fsevents"
                )
        return result


class SyncService:
    """
    Service for syncing one backend into another.

    Attributes:
        chunk_size: Maximum number of fsevents per bulk update
    """

    def __init__(
        self,
        source: BackendInterface,
        destination: BackendInterface,
        projection: Optional[ProjectionSpec] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        progress_callback: Optional[ProgressCallback] = None,
    ):
        if chunk_size < 1:
            raise ValueError(f"Chunk size must be positive, got {chunk_size}")
        self._source = source
        self._destination = destination
        self._projection = projection or ProjectionSpec.default()
        self.chunk_size = chunk_size
        self._progress_callback = progress_callback

    def _fsentries(self, single_root: bool) -> Iterable[FSEntry]:
        if single_root:
            return [self._source.root(self._projection)]
        return self._source.filter_fsentries(self._projection)

    def sync(self, single_root: bool = False) -> SyncResult:
        """
        Run the pipeline to completion.

        Args:
            single_root: Sync only the entry the source was opened on

        Returns:
            SyncResult with chunk, fsevent and anomaly counts

        Raises:
            BackendError: On a store-specific failure of either backend
        """
        start_time = time.time()
        committer = SinkCommitter(self._destination, self._progress_callback)

        with SyncPipeline(self._fsentries(single_root), self._projection, self.chunk_size) as pipeline:
            result = committer.run(pipeline)
            result.skipped_fsentries = pipeline.skipped
            result.source_retries = pipeline.retries

        result.duration_seconds = time.time() - start_time
        logger.info(
            f"Synced {result.fsevents} fsevents in {result.chunks} chunks "
            f"({result.skipped_fsentries} fsentries skipped) in {result.duration_seconds:.2f}s"
        )
        return result
