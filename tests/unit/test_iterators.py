"""
Unit tests for the iterator plumbing: retries, tee buffering and closing.
"""

import pytest

from metasync.core.errors import BackendError
from metasync.core.fsentry import FSEntry
from metasync.core.iterators import chunkify, drain, retry_transient, tee
from metasync.infrastructure.fakes import ScriptedSource, transient


class TestRetryingIterator:
    """Transient signals are absorbed at the source boundary."""

    def test_three_transients_then_one_entry(self):
        entry = FSEntry(id=b"\x01")
        source = ScriptedSource([*transient(3), entry])
        retrying = retry_transient(source)

        assert list(retrying) == [entry]
        assert retrying.retries == 3

    def test_hard_failure_propagates(self):
        source = ScriptedSource([*transient(2), BackendError("disk on fire")])
        retrying = retry_transient(source)

        with pytest.raises(BackendError, match="disk on fire"):
            next(retrying)
        assert retrying.retries == 2

    def test_close_closes_source(self):
        source = ScriptedSource([FSEntry(id=b"\x01"), FSEntry(id=b"\x02")])

        with retry_transient(source) as retrying:
            next(retrying)

        assert source.closed
        assert list(retrying) == []


class TestTee:
    """Two cursors over one shared buffer."""

    def test_buffer_only_holds_unseen_elements(self):
        left, right = tee(range(5))
        buffer = left._buffer

        assert [next(left) for _ in range(3)] == [0, 1, 2]
        assert len(buffer) == 3

        assert [next(right) for _ in range(2)] == [0, 1]
        assert len(buffer) == 1

    def test_closing_one_cursor_releases_its_backlog(self):
        left, right = tee(range(5))
        assert [next(right) for _ in range(3)] == [0, 1, 2]
        next(left)
        assert len(left._buffer) == 2

        left.close()

        assert len(left._buffer) == 0
        assert list(right) == [3, 4]

    def test_closing_both_cursors_closes_upstream(self):
        source = ScriptedSource([FSEntry(id=b"\x01"), FSEntry(id=b"\x02")])
        left, right = tee(source)
        next(left)

        left.close()
        assert not source.closed
        right.close()

        assert source.closed

    def test_close_is_idempotent(self):
        source = ScriptedSource([FSEntry(id=b"\x01")])
        left, right = tee(source)

        left.close()
        left.close()

        assert not source.closed
        assert drain(right) == 1


class TestChunkClosing:
    """Closing the chunk iterator releases the current chunk and upstream."""

    def test_close_releases_current_chunk_and_upstream(self):
        source = ScriptedSource([FSEntry(id=bytes([i])) for i in range(6)])
        chunks = chunkify(source, 4)
        chunk = next(chunks)
        next(chunk)

        chunks.close()

        assert chunk.closed
        assert source.closed
        assert list(chunk) == []
        assert list(chunks) == []

    def test_upstream_failure_propagates_from_chunk(self):
        source = ScriptedSource([FSEntry(id=b"\x01"), OSError("I/O error")])
        chunk = next(chunkify(source, 4))

        assert next(chunk).id == b"\x01"
        with pytest.raises(OSError):
            next(chunk)
