"""
Unit tests for SyncPipeline, SinkCommitter and SyncService using fakes.
"""

import pytest

from metasync.core.errors import BackendError
from metasync.core.fsentry import FieldMask, FSEntry, ProjectionSpec, Statx, StatxMask
from metasync.core.fsevent import LinkEvent, UpsertEvent
from metasync.infrastructure.fakes import InMemoryBackend, ScriptedSource, transient
from metasync.services import SinkCommitter, SyncPipeline, SyncService


def _size(size: int) -> Statx:
    return Statx(mask=StatxMask.SIZE, size=size)


class TestSyncPipeline:
    """The pipeline owns the stage chain from source to chunks."""

    def test_end_to_end_scenario(self):
        """One convertible entry and one id-only entry give a single chunk."""
        source = ScriptedSource(
            [
                FSEntry(id=b"\x01", parent_id=b"\x00", name="a", statx=_size(10)),
                FSEntry(id=b"\x02"),
            ]
        )

        with SyncPipeline(source) as pipeline:
            chunks = [list(chunk) for chunk in pipeline]

        assert chunks == [
            [
                UpsertEvent(id=b"\x01", statx=_size(10)),
                LinkEvent(id=b"\x01", parent_id=b"\x00", name="a"),
            ]
        ]
        assert pipeline.skipped == 0
        assert source.closed

    def test_transient_signals_are_invisible(self):
        entry = FSEntry(id=b"\x01", parent_id=b"\x00", name="a")
        source = ScriptedSource([*transient(3), entry])

        with SyncPipeline(source) as pipeline:
            events = [event for chunk in pipeline for event in chunk]

        assert events == [LinkEvent(id=b"\x01", parent_id=b"\x00", name="a")]
        assert pipeline.retries == 3

    def test_projection_is_applied(self):
        entry = FSEntry(id=b"\x01", parent_id=b"\x00", name="a", symlink="target")
        spec = ProjectionSpec(fields=FieldMask.ALL & ~FieldMask.SYMLINK)

        with SyncPipeline([entry], spec) as pipeline:
            events = [event for chunk in pipeline for event in chunk]

        assert events == [LinkEvent(id=b"\x01", parent_id=b"\x00", name="a")]

    def test_close_before_exhaustion_closes_source(self):
        source = ScriptedSource([FSEntry(id=bytes([i]), name="n", parent_id=b"\x00") for i in range(10)])
        pipeline = SyncPipeline(source, chunk_size=2)
        chunk = next(iter(pipeline))
        next(chunk)

        pipeline.close()

        assert source.closed
        assert chunk.closed


class TestSinkCommitter:
    """Every fsevent is submitted once and accounted once."""

    def test_commit_counts_chunk(self):
        backend = InMemoryBackend()
        entries = [FSEntry(id=bytes([i]), parent_id=b"\x00", name=str(i)) for i in range(5)]

        with SyncPipeline(entries, chunk_size=2) as pipeline:
            result = SinkCommitter(backend).run(pipeline)

        assert result.chunks == 3
        assert result.fsevents == 5
        assert result.applied == 5
        assert backend.updates == 3
        assert [event.id for event in backend.received] == [bytes([i]) for i in range(5)]

    def test_backend_consuming_part_of_chunk_is_drained(self, caplog):
        class LazyBackend(InMemoryBackend):
            def update(self, fsevents):
                self.received.append(next(iter(fsevents)))
                return 1

        backend = LazyBackend()
        entries = [FSEntry(id=bytes([i]), parent_id=b"\x00", name=str(i)) for i in range(4)]

        with SyncPipeline(entries, chunk_size=2) as pipeline:
            result = SinkCommitter(backend).run(pipeline)

        # The unconsumed half of each chunk is still accounted and never resubmitted
        assert result.fsevents == 4
        assert result.applied == 2
        assert [event.id for event in backend.received] == [b"\x00", b"\x02"]
        assert "applied 1 of 2" in caplog.text

    def test_progress_callback(self):
        calls = []
        entries = [FSEntry(id=bytes([i]), parent_id=b"\x00", name=str(i)) for i in range(3)]

        with SyncPipeline(entries, chunk_size=2) as pipeline:
            SinkCommitter(InMemoryBackend(), lambda c, e, m: calls.append((c, e))).run(pipeline)

        assert calls == [(1, 2), (2, 3)]

    def test_backend_failure_closes_everything(self):
        source = ScriptedSource(
            [FSEntry(id=bytes([i]), parent_id=b"\x00", name=str(i)) for i in range(10)]
        )
        backend = InMemoryBackend(fail_after=3)
        pipeline = SyncPipeline(source, chunk_size=2)

        with pytest.raises(BackendError, match="simulated failure"):
            with pipeline:
                SinkCommitter(backend).run(pipeline)

        assert len(backend.received) == 3
        assert pipeline.chunks.closed
        assert source.closed


class TestSyncService:
    """Orchestration of a whole run between two backends."""

    def test_sync_between_memory_backends(self):
        root = FSEntry(id=b"\x00", statx=_size(0))
        child = FSEntry(id=b"\x01", parent_id=b"\x00", name="a", statx=_size(10))
        source = InMemoryBackend([root, *transient(2), child, FSEntry(name="no-id")])
        destination = InMemoryBackend()

        result = SyncService(source, destination, chunk_size=2).sync()

        assert result.fsevents == 3
        assert result.chunks == 2
        assert result.skipped_fsentries == 1
        assert result.source_retries == 2
        assert destination.inodes[b"\x01"]["statx"] == {"size": 10}
        assert destination.links == {(b"\x00", "a"): b"\x01"}
        assert source.sources[0].closed

    def test_single_root_syncs_one_entry(self):
        root = FSEntry(id=b"\x00", statx=_size(0))
        source = InMemoryBackend([root, FSEntry(id=b"\x01", parent_id=b"\x00", name="a")])
        destination = InMemoryBackend()

        result = SyncService(source, destination).sync(single_root=True)

        assert result.fsevents == 1
        assert list(destination.inodes) == [b"\x00"]
        assert source.sources == []

    def test_generic_failure_propagates(self):
        source = InMemoryBackend([FSEntry(id=b"\x01", statx=_size(1))])
        destination = InMemoryBackend(fail_after=0, failure=MemoryError())

        with pytest.raises(MemoryError):
            SyncService(source, destination).sync()

        assert source.sources[0].closed

    def test_chunk_size_must_be_positive(self):
        with pytest.raises(ValueError):
            SyncService(InMemoryBackend(), InMemoryBackend(), chunk_size=0)
