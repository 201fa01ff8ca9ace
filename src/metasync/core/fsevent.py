"""
Filesystem event models.

An fsevent is one observable change to apply to a destination store.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Union

from metasync.core.fsentry import Statx


class FSEventType(Enum):
    """Types of fsevents."""

    UPSERT = "upsert"
    LINK = "link"


@dataclass(frozen=True)
class UpsertEvent:
    """
    This object now has this content.

    Attributes:
        id: Identifier of the object
        statx: Attributes to merge into the object, if any
        symlink: Symlink target, if any
        xattrs: Inode extended attributes to merge, if any
    """

    id: bytes
    statx: Statx | None = None
    symlink: str | None = None
    xattrs: Mapping[str, Any] | None = None

    @property
    def type(self) -> FSEventType:
        return FSEventType.UPSERT


@dataclass(frozen=True)
class LinkEvent:
    """
    This object is now named ``name`` under ``parent_id``.

    Attributes:
        id: Identifier of the object
        parent_id: Identifier of the parent directory
        name: Name of the object within its parent
        xattrs: Namespace extended attributes of the binding, if any
    """

    id: bytes
    parent_id: bytes
    name: str
    xattrs: Mapping[str, Any] | None = None

    @property
    def type(self) -> FSEventType:
        return FSEventType.LINK


FSEvent = Union[UpsertEvent, LinkEvent]
