"""
Filesystem entry data model.

An fsentry is a sparse record describing one filesystem object at a point
in time. Every field may be absent; absent fields are ``None`` and the
field mask is derived from what is present.
"""

from __future__ import annotations

import stat
from dataclasses import dataclass, field
from enum import IntFlag
from types import MappingProxyType
from typing import Any, Mapping

# Longest symlink target (in bytes, once encoded) an fsentry may carry
SYMLINK_MAX = 4096


class FieldMask(IntFlag):
    """Structural fields of an fsentry."""

    ID = 0x0001
    PARENT_ID = 0x0002
    NAME = 0x0004
    STATX = 0x0008
    SYMLINK = 0x0010
    INODE_XATTRS = 0x0020
    NAMESPACE_XATTRS = 0x0040

    ALL = ID | PARENT_ID | NAME | STATX | SYMLINK | INODE_XATTRS | NAMESPACE_XATTRS


class StatxMask(IntFlag):
    """Sub-fields of a statx bundle.

    Timestamps split seconds and nanoseconds so that either can be
    requested on its own.
    """

    TYPE = 0x00000001
    MODE = 0x00000002
    NLINK = 0x00000004
    UID = 0x00000008
    GID = 0x00000010
    ATIME_SEC = 0x00000020
    MTIME_SEC = 0x00000040
    CTIME_SEC = 0x00000080
    INO = 0x00000100
    SIZE = 0x00000200
    BLOCKS = 0x00000400
    BTIME_SEC = 0x00000800
    MNT_ID = 0x00001000
    BLKSIZE = 0x00010000
    ATTRIBUTES = 0x00020000
    ATIME_NSEC = 0x00040000
    BTIME_NSEC = 0x00080000
    CTIME_NSEC = 0x00100000
    MTIME_NSEC = 0x00200000
    RDEV_MAJOR = 0x00400000
    RDEV_MINOR = 0x00800000
    DEV_MAJOR = 0x01000000
    DEV_MINOR = 0x02000000

    ATIME = ATIME_SEC | ATIME_NSEC
    BTIME = BTIME_SEC | BTIME_NSEC
    CTIME = CTIME_SEC | CTIME_NSEC
    MTIME = MTIME_SEC | MTIME_NSEC
    RDEV = RDEV_MAJOR | RDEV_MINOR
    DEV = DEV_MAJOR | DEV_MINOR

    BASIC_STATS = (
        TYPE | MODE | NLINK | UID | GID | ATIME | MTIME | CTIME | INO | SIZE | BLOCKS
    )
    # The mount identifier is never part of the defaults
    ALL = BASIC_STATS | BTIME | BLKSIZE | ATTRIBUTES | RDEV | DEV


# Sub-field -> Statx attribute. TYPE and MODE share ``mode`` and are handled
# by the projector, every other bit maps to exactly one attribute.
STATX_ATTRIBUTES: dict[StatxMask, str] = {
    StatxMask.BLKSIZE: "blksize",
    StatxMask.NLINK: "nlink",
    StatxMask.UID: "uid",
    StatxMask.GID: "gid",
    StatxMask.INO: "ino",
    StatxMask.SIZE: "size",
    StatxMask.BLOCKS: "blocks",
    StatxMask.ATIME_SEC: "atime_sec",
    StatxMask.ATIME_NSEC: "atime_nsec",
    StatxMask.BTIME_SEC: "btime_sec",
    StatxMask.BTIME_NSEC: "btime_nsec",
    StatxMask.CTIME_SEC: "ctime_sec",
    StatxMask.CTIME_NSEC: "ctime_nsec",
    StatxMask.MTIME_SEC: "mtime_sec",
    StatxMask.MTIME_NSEC: "mtime_nsec",
    StatxMask.RDEV_MAJOR: "rdev_major",
    StatxMask.RDEV_MINOR: "rdev_minor",
    StatxMask.DEV_MAJOR: "dev_major",
    StatxMask.DEV_MINOR: "dev_minor",
    StatxMask.MNT_ID: "mnt_id",
}


@dataclass(frozen=True)
class Statx:
    """
    A sparse bundle of inode attributes.

    Attributes:
        mask: Which sub-fields hold meaningful values
        mode: File type bits (``TYPE``) and permission bits (``MODE``)
        attributes: Generic attribute flags, paired with ``attributes_mask``
    """

    mask: StatxMask = StatxMask(0)
    blksize: int = 0
    attributes: int = 0
    attributes_mask: int = 0
    nlink: int = 0
    uid: int = 0
    gid: int = 0
    mode: int = 0
    ino: int = 0
    size: int = 0
    blocks: int = 0
    atime_sec: int = 0
    atime_nsec: int = 0
    btime_sec: int = 0
    btime_nsec: int = 0
    ctime_sec: int = 0
    ctime_nsec: int = 0
    mtime_sec: int = 0
    mtime_nsec: int = 0
    rdev_major: int = 0
    rdev_minor: int = 0
    dev_major: int = 0
    dev_minor: int = 0
    mnt_id: int = 0

    def to_dict(self) -> dict[str, int]:
        """Serialize the present sub-fields, keyed by attribute name."""
        data: dict[str, int] = {}
        if self.mask & StatxMask.TYPE:
            data["type"] = stat.S_IFMT(self.mode)
        if self.mask & StatxMask.MODE:
            data["mode"] = stat.S_IMODE(self.mode)
        if self.mask & StatxMask.ATTRIBUTES:
            data["attributes"] = self.attributes
            data["attributes_mask"] = self.attributes_mask
        for bit, attr in STATX_ATTRIBUTES.items():
            if self.mask & bit:
                data[attr] = getattr(self, attr)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, int]) -> "Statx":
        """Rebuild a bundle from :meth:`to_dict` output."""
        mask = StatxMask(0)
        values: dict[str, int] = {}
        mode = 0
        if "type" in data:
            mask |= StatxMask.TYPE
            mode |= stat.S_IFMT(int(data["type"]))
        if "mode" in data:
            mask |= StatxMask.MODE
            mode |= stat.S_IMODE(int(data["mode"]))
        if "attributes" in data:
            mask |= StatxMask.ATTRIBUTES
            values["attributes"] = int(data["attributes"])
            values["attributes_mask"] = int(data.get("attributes_mask", 0))
        for bit, attr in STATX_ATTRIBUTES.items():
            if attr in data:
                mask |= bit
                values[attr] = int(data[attr])
        return cls(mask=mask, mode=mode, **values)


def _freeze(xattrs: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
    if xattrs is None:
        return None
    return MappingProxyType(dict(xattrs))


@dataclass(frozen=True)
class FSEntry:
    """
    A sparse filesystem object record.

    Attributes:
        id: Opaque unique identifier; an fsentry without one cannot be synced
        parent_id: Identifier of the containing directory, meaningful with ``name``
        name: Name of the entry within its parent
        statx: Inode attributes
        symlink: Target of a symbolic link
        inode_xattrs: Extended attributes of the inode
        namespace_xattrs: Extended attributes of the (parent_id, name) binding
    """

    id: bytes | None = None
    parent_id: bytes | None = None
    name: str | None = None
    statx: Statx | None = None
    symlink: str | None = None
    inode_xattrs: Mapping[str, Any] | None = field(default=None)
    namespace_xattrs: Mapping[str, Any] | None = field(default=None)

    def __post_init__(self) -> None:
        """Make xattr mappings read-only."""
        object.__setattr__(self, "inode_xattrs", _freeze(self.inode_xattrs))
        object.__setattr__(self, "namespace_xattrs", _freeze(self.namespace_xattrs))

    @property
    def mask(self) -> FieldMask:
        """Fields present in this entry."""
        mask = FieldMask(0)
        if self.id is not None:
            mask |= FieldMask.ID
        if self.parent_id is not None:
            mask |= FieldMask.PARENT_ID
        if self.name is not None:
            mask |= FieldMask.NAME
        if self.statx is not None:
            mask |= FieldMask.STATX
        if self.symlink is not None:
            mask |= FieldMask.SYMLINK
        if self.inode_xattrs is not None:
            mask |= FieldMask.INODE_XATTRS
        if self.namespace_xattrs is not None:
            mask |= FieldMask.NAMESPACE_XATTRS
        return mask


@dataclass(frozen=True)
class ProjectionSpec:
    """
    Which fields and sub-fields survive projection.

    Attributes:
        fields: Requested structural fields
        statx: Requested statx sub-fields
        inode_xattr_keys: Inode xattr keys to keep, None keeps every key
        namespace_xattr_keys: Namespace xattr keys to keep, None keeps every key
    """

    fields: FieldMask = FieldMask.ALL
    statx: StatxMask = StatxMask.ALL
    inode_xattr_keys: frozenset[str] | None = None
    namespace_xattr_keys: frozenset[str] | None = None

    @classmethod
    def default(cls) -> "ProjectionSpec":
        """Every field, every statx sub-field but the mount identifier."""
        return cls()
