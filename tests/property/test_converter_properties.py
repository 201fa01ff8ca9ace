"""
Property-based tests for fsentry to fsevent conversion.

**Property: Upsert Precedes Link**
**Property: Entries Without An Id Yield Nothing**
"""

from hypothesis import given, settings
from hypothesis import strategies as st

from metasync.core.converter import (
    ConverterState,
    ConvertIterator,
    link_event,
    needs_link,
    needs_upsert,
    upsert_event,
)
from metasync.core.fsentry import FSEntry, Statx, StatxMask
from metasync.core.fsevent import FSEventType, LinkEvent, UpsertEvent
from tests.fsentry_strategies import fsentry_strategy


def _expected_types(entry: FSEntry) -> list[FSEventType]:
    if entry.id is None:
        return []
    types = []
    if needs_upsert(entry):
        types.append(FSEventType.UPSERT)
    if needs_link(entry):
        types.append(FSEventType.LINK)
    return types


@given(entries=st.lists(fsentry_strategy(), max_size=30))
@settings(max_examples=100)
def test_events_follow_entry_order(entries: list[FSEntry]):
    """
    **Property: Upsert Precedes Link**

    Each fsentry SHALL yield its upsert (if any) strictly before its link
    (if any), and events of different fsentries SHALL keep source order.
    """
    converter = ConvertIterator(entries)
    events = list(converter)

    expected = [
        (entry.id, event_type) for entry in entries for event_type in _expected_types(entry)
    ]
    assert [(event.id, event.type) for event in events] == expected
    assert converter.skipped == sum(1 for entry in entries if entry.id is None)
    assert converter.state is ConverterState.DONE


@given(entry=fsentry_strategy(with_id=False))
@settings(max_examples=50)
def test_entry_without_id_is_skipped(entry: FSEntry):
    """
    **Property: Entries Without An Id Yield Nothing**

    The converter SHALL advance past an fsentry without an id without error.
    """
    follower = FSEntry(id=b"\x02", parent_id=b"\x00", name="b")

    events = list(ConvertIterator([entry, follower]))

    assert events == [LinkEvent(id=b"\x02", parent_id=b"\x00", name="b")]


def test_content_only_entry_yields_one_upsert():
    statx = Statx(mask=StatxMask.SIZE, size=10)

    events = list(ConvertIterator([FSEntry(id=b"\x01", statx=statx)]))

    assert events == [UpsertEvent(id=b"\x01", statx=statx)]


def test_link_only_entry_yields_one_link():
    events = list(ConvertIterator([FSEntry(id=b"\x01", parent_id=b"\x00", name="a")]))

    assert events == [LinkEvent(id=b"\x01", parent_id=b"\x00", name="a")]


def test_name_without_parent_yields_nothing():
    assert list(ConvertIterator([FSEntry(id=b"\x01", name="a")])) == []


def test_full_entry_yields_upsert_then_link():
    entry = FSEntry(
        id=b"\x01",
        parent_id=b"\x00",
        name="a",
        symlink="target",
        inode_xattrs={"user.tag": b"1"},
        namespace_xattrs={"user.ns": b"2"},
    )
    converter = ConvertIterator([entry])

    upsert = next(converter)
    assert converter.state is ConverterState.LINKING
    link = next(converter)
    assert converter.state is ConverterState.IDLE

    assert upsert == UpsertEvent(id=b"\x01", symlink="target", xattrs={"user.tag": b"1"})
    assert link == LinkEvent(id=b"\x01", parent_id=b"\x00", name="a", xattrs={"user.ns": b"2"})
    assert list(converter) == []


def test_missing_id_is_logged(caplog):
    converter = ConvertIterator([FSEntry(name="orphan")])

    assert list(converter) == []
    assert converter.skipped == 1
    assert "without an id" in caplog.text


def test_single_entry_events_split_inode_and_namespace_fields():
    statx = Statx(mask=StatxMask.SIZE, size=3)
    entry = FSEntry(
        id=b"\x02",
        parent_id=b"\x01",
        name="a",
        statx=statx,
        symlink="b",
        inode_xattrs={"user.inode": b"1"},
        namespace_xattrs={"user.ns": b"2"},
    )

    upsert = upsert_event(entry)
    link = link_event(entry)

    assert isinstance(upsert, UpsertEvent)
    assert (upsert.id, upsert.statx, upsert.symlink) == (b"\x02", statx, "b")
    assert dict(upsert.xattrs) == {"user.inode": b"1"}
    assert isinstance(link, LinkEvent)
    assert (link.id, link.parent_id, link.name) == (b"\x02", b"\x01", "a")
    assert dict(link.xattrs) == {"user.ns": b"2"}
