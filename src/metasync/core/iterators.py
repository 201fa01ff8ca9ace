"""
Iterator plumbing shared by the pipeline stages.

Every stage is a pull-based iterator that owns its upstream: closing a
stage closes everything above it. Sources signal "no data yet" by raising
:class:`TransientError` from ``__next__``; :class:`RetryingIterator` hides
that behind a blocking pull.
"""

from __future__ import annotations

import logging
from abc import abstractmethod
from collections import deque
from typing import Generic, Iterable, Iterator, TypeVar

from metasync.core.errors import ChunkInProgressError, TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CHUNK_SIZE = 1 << 12


def close_iterator(obj: object) -> None:
    """Close ``obj`` if it knows how to be closed."""
    close = getattr(obj, "close", None)
    if close is not None:
        close()


def drain(iterator: Iterator[T]) -> int:
    """Consume ``iterator`` to exhaustion and return how many elements it had."""
    count = 0
    for _ in iterator:
        count += 1
    return count


class ClosableIterator(Iterator[T]):
    """
    Base class for pipeline stages.

    ``close()`` is idempotent. Subclasses release what they own in
    ``_release()``; a closed iterator is exhausted.
    """

    _closed: bool = False

    def __iter__(self) -> "ClosableIterator[T]":
        return self

    @abstractmethod
    def __next__(self) -> T:
        ...

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._release()

    def _release(self) -> None:
        pass

    def __enter__(self) -> "ClosableIterator[T]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class RetryingIterator(ClosableIterator[T]):
    """
    Blocking pull over a source that may raise :class:`TransientError`.

    Retries are unbounded: a pull only returns with an element, with
    end-of-stream or with a non-transient error.
    """

    def __init__(self, upstream: Iterable[T]):
        self._upstream = iter(upstream)
        self.retries = 0

    def __next__(self) -> T:
        if self._closed:
            raise StopIteration
        while True:
            try:
                return next(self._upstream)
            except TransientError:
                self.retries += 1

    def _release(self) -> None:
        if self.retries:
            logger.debug(f"Source needed {self.retries} retries")
        close_iterator(self._upstream)


def retry_transient(upstream: Iterable[T]) -> RetryingIterator[T]:
    """Wrap ``upstream`` so that transient signals are retried transparently."""
    return RetryingIterator(upstream)


# ─────────────────────────────────────────────────────────────────
# Chunking
# ─────────────────────────────────────────────────────────────────


class Chunk(ClosableIterator[T]):
    """
    A bounded sub-stream of its parent :class:`ChunkIterator`.

    The chunk ends after ``size`` elements or when the upstream is
    exhausted, whichever comes first. Closing a chunk early releases it
    without pulling any further element.
    """

    def __init__(self, parent: "ChunkIterator[T]", first: T, size: int):
        self._parent = parent
        self._pending: T | None = first
        self._has_pending = True
        self._remaining = size

    @property
    def exhausted(self) -> bool:
        return self._closed or self._remaining == 0

    def __next__(self) -> T:
        if self._closed:
            raise StopIteration
        if self._remaining == 0:
            self.close()
            raise StopIteration

        if self._has_pending:
            item = self._pending
            self._pending = None
            self._has_pending = False
        else:
            try:
                item = self._parent._pull()
            except StopIteration:
                self.close()
                raise

        self._remaining -= 1
        return item  # type: ignore[return-value]

    def _release(self) -> None:
        self._pending = None
        self._has_pending = False


class ChunkIterator(ClosableIterator[Chunk[T]]):
    """
    Split a stream into consecutive chunks of at most ``size`` elements.

    The first element of each chunk is fetched before the chunk is handed
    out, so a stream that ends on a chunk boundary never yields an empty
    trailing chunk.
    """

    def __init__(self, upstream: Iterable[T], size: int = DEFAULT_CHUNK_SIZE):
        if size < 1:
            raise ValueError(f"Chunk size must be positive, got {size}")
        self._upstream = iter(upstream)
        self._size = size
        self._current: Chunk[T] | None = None
        self._exhausted = False

    @property
    def size(self) -> int:
        return self._size

    def __next__(self) -> Chunk[T]:
        if self._closed or self._exhausted:
            raise StopIteration
        if self._current is not None and not self._current.exhausted:
            raise ChunkInProgressError("previous chunk was not fully consumed")

        self._current = None
        first = self._pull()
        self._current = Chunk(self, first, self._size)
        return self._current

    def _pull(self) -> T:
        try:
            return next(self._upstream)
        except StopIteration:
            self._exhausted = True
            raise

    def _release(self) -> None:
        if self._current is not None:
            self._current.close()
            self._current = None
        close_iterator(self._upstream)


def chunkify(upstream: Iterable[T], size: int = DEFAULT_CHUNK_SIZE) -> ChunkIterator[T]:
    """Group ``upstream`` into chunks of at most ``size`` elements."""
    return ChunkIterator(upstream, size)


# ─────────────────────────────────────────────────────────────────
# Tee
# ─────────────────────────────────────────────────────────────────


class _TeeBuffer(Generic[T]):
    """Elements pulled by one cursor and not yet seen by the other."""

    def __init__(self, upstream: Iterator[T]):
        self._upstream = upstream
        self._items: deque[T] = deque()
        self._base = 0
        self._positions = [0, 0]
        self._open = [True, True]
        self._exhausted = False

    def __len__(self) -> int:
        return len(self._items)

    def next(self, cursor: int) -> T:
        offset = self._positions[cursor] - self._base
        if offset < len(self._items):
            item = self._items[offset]
        else:
            if self._exhausted:
                raise StopIteration
            try:
                item = next(self._upstream)
            except StopIteration:
                self._exhausted = True
                raise
            self._items.append(item)

        self._positions[cursor] += 1
        self._trim()
        return item

    def close(self, cursor: int) -> None:
        self._open[cursor] = False
        if any(self._open):
            self._trim()
            return
        self._items.clear()
        close_iterator(self._upstream)

    def _trim(self) -> None:
        behind = min(
            pos for pos, is_open in zip(self._positions, self._open) if is_open
        )
        while self._items and self._base < behind:
            self._items.popleft()
            self._base += 1


class TeeCursor(ClosableIterator[T]):
    """One of the two independent cursors returned by :func:`tee`."""

    def __init__(self, buffer: _TeeBuffer[T], index: int):
        self._buffer = buffer
        self._index = index

    def __next__(self) -> T:
        if self._closed:
            raise StopIteration
        return self._buffer.next(self._index)

    def _release(self) -> None:
        self._buffer.close(self._index)


def tee(upstream: Iterable[T]) -> tuple[TeeCursor[T], TeeCursor[T]]:
    """
    Duplicate a stream into two cursors sharing one buffer.

    Each element is pulled from ``upstream`` once and kept only until both
    cursors have moved past it. The upstream is closed once both cursors
    are closed.
    """
    buffer: _TeeBuffer[T] = _TeeBuffer(iter(upstream))
    return TeeCursor(buffer, 0), TeeCursor(buffer, 1)
