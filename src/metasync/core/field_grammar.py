"""
Field names accepted on the command line and in configuration.

A name selects a field (``name``), a statx sub-field (``statx.size``) or an
extended attribute key (``xattrs.user.comment``). The grammar is a lookup
table; the only names that take an argument are the two xattr families.
"""

from __future__ import annotations

from typing import Iterable

from metasync.core.errors import InvalidFieldError
from metasync.core.fsentry import FieldMask, ProjectionSpec, StatxMask

FIELDS: dict[str, FieldMask] = {
    "id": FieldMask.ID,
    "parent-id": FieldMask.PARENT_ID,
    "name": FieldMask.NAME,
    "statx": FieldMask.STATX,
    "symlink": FieldMask.SYMLINK,
    "xattrs": FieldMask.INODE_XATTRS,
    "ns-xattrs": FieldMask.NAMESPACE_XATTRS,
}

STATX_FIELDS: dict[str, StatxMask] = {
    "type": StatxMask.TYPE,
    "mode": StatxMask.MODE,
    "nlink": StatxMask.NLINK,
    "uid": StatxMask.UID,
    "gid": StatxMask.GID,
    "atime": StatxMask.ATIME,
    "atime.sec": StatxMask.ATIME_SEC,
    "atime.nsec": StatxMask.ATIME_NSEC,
    "btime": StatxMask.BTIME,
    "btime.sec": StatxMask.BTIME_SEC,
    "btime.nsec": StatxMask.BTIME_NSEC,
    "ctime": StatxMask.CTIME,
    "ctime.sec": StatxMask.CTIME_SEC,
    "ctime.nsec": StatxMask.CTIME_NSEC,
    "mtime": StatxMask.MTIME,
    "mtime.sec": StatxMask.MTIME_SEC,
    "mtime.nsec": StatxMask.MTIME_NSEC,
    "ino": StatxMask.INO,
    "size": StatxMask.SIZE,
    "blocks": StatxMask.BLOCKS,
    "blksize": StatxMask.BLKSIZE,
    "attributes": StatxMask.ATTRIBUTES,
    "rdev": StatxMask.RDEV,
    "rdev.major": StatxMask.RDEV_MAJOR,
    "rdev.minor": StatxMask.RDEV_MINOR,
    "dev": StatxMask.DEV,
    "dev.major": StatxMask.DEV_MAJOR,
    "dev.minor": StatxMask.DEV_MINOR,
    "mnt-id": StatxMask.MNT_ID,
}

# Families whose suffix is a free-form key rather than a table entry
XATTR_FAMILIES = ("xattrs", "ns-xattrs")


def field_names() -> list[str]:
    """Every name the grammar recognizes, xattr keys shown as placeholders."""
    names = list(FIELDS)
    names.extend(f"statx.{sub}" for sub in STATX_FIELDS)
    names.extend(f"{family}.KEY" for family in XATTR_FAMILIES)
    return names


def parse_projection(names: Iterable[str]) -> ProjectionSpec:
    """
    Build a projection from field names.

    Args:
        names: Field names such as ``"name"``, ``"statx.size"`` or
            ``"xattrs.user.tag"``. An empty iterable selects the default
            projection.

    Returns:
        ProjectionSpec; ``id`` is always part of it.

    Raises:
        InvalidFieldError: If a name is not recognized
    """
    names = [name.strip() for name in names if name.strip()]
    if not names:
        return ProjectionSpec.default()

    fields = FieldMask.ID
    statx = StatxMask(0)
    xattr_keys: dict[str, set[str] | None] = {}

    for name in names:
        family, _, suffix = name.partition(".")

        if family == "statx":
            fields |= FieldMask.STATX
            if not suffix:
                statx |= StatxMask.ALL
            elif suffix in STATX_FIELDS:
                statx |= STATX_FIELDS[suffix]
            else:
                raise InvalidFieldError(f"unknown statx field: {suffix!r}")
            continue

        if family in XATTR_FAMILIES:
            fields |= FIELDS[family]
            if not suffix:
                xattr_keys[family] = None
            elif family not in xattr_keys:
                xattr_keys[family] = {suffix}
            elif xattr_keys[family] is not None:
                xattr_keys[family].add(suffix)  # type: ignore[union-attr]
            continue

        if suffix or family not in FIELDS:
            raise InvalidFieldError(f"unknown field: {name!r}")
        fields |= FIELDS[family]

    def _keys(family: str) -> frozenset[str] | None:
        keys = xattr_keys.get(family)
        return None if keys is None else frozenset(keys)

    return ProjectionSpec(
        fields=fields,
        statx=statx,
        inode_xattr_keys=_keys("xattrs"),
        namespace_xattr_keys=_keys("ns-xattrs"),
    )
