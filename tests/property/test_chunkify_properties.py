"""
Property-based tests for chunking and tee.

**Property: Chunk Bounds And Order**
**Property: Tee Cursor Independence**
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from metasync.core.errors import ChunkInProgressError
from metasync.core.iterators import chunkify, tee


@given(
    items=st.lists(st.integers(), max_size=200),
    size=st.integers(min_value=1, max_value=50),
)
@settings(max_examples=100)
def test_chunks_are_bounded_and_preserve_order(items: list[int], size: int):
    """
    **Property: Chunk Bounds And Order**

    No chunk SHALL be longer than its capacity or empty, and the
    concatenation of every chunk SHALL equal the input stream.
    """
    chunks = [list(chunk) for chunk in chunkify(items, size)]

    assert all(1 <= len(chunk) <= size for chunk in chunks)
    assert [item for chunk in chunks for item in chunk] == items
    assert len(chunks) == -(-len(items) // size)


@given(
    multiple=st.integers(min_value=1, max_value=5),
    size=st.integers(min_value=1, max_value=20),
)
@settings(max_examples=50)
def test_exact_multiple_has_no_trailing_chunk(multiple: int, size: int):
    """A stream of exactly k*N elements SHALL yield exactly k full chunks."""
    chunks = [list(chunk) for chunk in chunkify(range(multiple * size), size)]

    assert len(chunks) == multiple
    assert all(len(chunk) == size for chunk in chunks)


@given(
    items=st.lists(st.integers(), max_size=50),
    schedule=st.lists(st.booleans(), max_size=120),
)
@settings(max_examples=100)
def test_tee_cursors_see_the_whole_stream(items: list[int], schedule: list[bool]):
    """
    **Property: Tee Cursor Independence**

    Whatever the interleaving of pulls, both cursors SHALL observe the
    full stream in order.
    """
    left, right = tee(items)
    seen: tuple[list[int], list[int]] = ([], [])

    for use_right in schedule:
        cursor = right if use_right else left
        target = seen[1] if use_right else seen[0]
        item = next(cursor, None)
        if item is not None:
            target.append(item)

    seen[0].extend(left)
    seen[1].extend(right)

    assert seen[0] == items
    assert seen[1] == items


def test_single_chunk_of_exactly_n():
    chunks = chunkify(range(4), 4)

    first = next(chunks)
    assert list(first) == [0, 1, 2, 3]
    with pytest.raises(StopIteration):
        next(chunks)


def test_new_chunk_while_previous_open_raises():
    chunks = chunkify(range(10), 4)

    first = next(chunks)
    next(first)

    with pytest.raises(ChunkInProgressError):
        next(chunks)


def test_closed_chunk_allows_next_chunk():
    chunks = chunkify(range(10), 4)

    first = next(chunks)
    assert next(first) == 0
    first.close()

    # An early close does not pull the rest of the chunk
    assert list(next(chunks)) == [1, 2, 3, 4]


def test_chunk_size_must_be_positive():
    with pytest.raises(ValueError):
        chunkify([1, 2], 0)
