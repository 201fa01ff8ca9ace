"""
Conversion of fsentries into fsevents.

Each fsentry becomes at most one upsert (its content) followed by at most
one link (its place in the namespace). Entries that yield neither are
skipped silently; entries without an id are skipped with a warning.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable

from metasync.core.fsentry import FieldMask, FSEntry
from metasync.core.fsevent import FSEvent, LinkEvent, UpsertEvent
from metasync.core.iterators import ClosableIterator, close_iterator

logger = logging.getLogger(__name__)

# Fields describing an inode's content, any of them makes an upsert
CONTENT_FIELDS = FieldMask.STATX | FieldMask.SYMLINK | FieldMask.INODE_XATTRS
# Fields that must all be present to make a link
LINK_FIELDS = FieldMask.PARENT_ID | FieldMask.NAME


class ConverterState(Enum):
    """States of :class:`ConvertIterator`."""

    IDLE = "idle"
    UPSERTING = "upserting"
    LINKING = "linking"
    DONE = "done"


def needs_upsert(entry: FSEntry) -> bool:
    """Whether ``entry`` carries any content-describing field."""
    return bool(entry.mask & CONTENT_FIELDS)


def needs_link(entry: FSEntry) -> bool:
    """Whether ``entry`` carries both a parent id and a name."""
    return entry.mask & LINK_FIELDS == LINK_FIELDS


def upsert_event(entry: FSEntry) -> UpsertEvent:
    """Upsert carrying the content fields of ``entry``."""
    assert entry.id is not None
    return UpsertEvent(
        id=entry.id,
        statx=entry.statx,
        symlink=entry.symlink,
        xattrs=entry.inode_xattrs,
    )


def link_event(entry: FSEntry) -> LinkEvent:
    """Link binding ``entry`` under its parent with its namespace xattrs."""
    assert entry.id is not None and entry.parent_id is not None and entry.name is not None
    return LinkEvent(
        id=entry.id,
        parent_id=entry.parent_id,
        name=entry.name,
        xattrs=entry.namespace_xattrs,
    )


class ConvertIterator(ClosableIterator[FSEvent]):
    """
    Turn a stream of fsentries into a flat stream of fsevents.

    For a given fsentry the upsert, if any, is always emitted before the
    link, if any. Events of different fsentries keep their source order.

    Attributes:
        skipped: Number of fsentries dropped for lack of an id
    """

    def __init__(self, fsentries: Iterable[FSEntry]):
        self._fsentries = iter(fsentries)
        self._fsentry: FSEntry | None = None
        self._upsert = False
        self._link = False
        self._state = ConverterState.IDLE
        self.skipped = 0

    @property
    def state(self) -> ConverterState:
        return self._state

    def _next_fsentry(self) -> None:
        """Pull fsentries until one of them converts to at least one fsevent."""
        self._fsentry = None
        while True:
            try:
                fsentry = next(self._fsentries)
            except StopIteration:
                self._state = ConverterState.DONE
                raise

            if fsentry.id is None:
                self.skipped += 1
                logger.warning(f"Skipping fsentry without an id: {fsentry!r}")
                continue

            upsert = needs_upsert(fsentry)
            link = needs_link(fsentry)
            if upsert or link:
                break

        self._fsentry = fsentry
        self._upsert = upsert
        self._link = link
        self._state = ConverterState.UPSERTING if upsert else ConverterState.LINKING

    def __next__(self) -> FSEvent:
        if self._closed or self._state is ConverterState.DONE:
            raise StopIteration

        if not self._upsert and not self._link:
            self._next_fsentry()
        fsentry = self._fsentry
        assert fsentry is not None

        if self._upsert:
            fsevent: FSEvent = upsert_event(fsentry)
            self._upsert = False
            self._state = ConverterState.LINKING if self._link else ConverterState.IDLE
            return fsevent

        fsevent = link_event(fsentry)
        self._link = False
        self._state = ConverterState.IDLE
        return fsevent

    def _release(self) -> None:
        self._fsentry = None
        self._upsert = self._link = False
        self._state = ConverterState.DONE
        close_iterator(self._fsentries)
