"""
Field projection.

Narrows fsentries to the fields and sub-fields a sync run asked for.
Projection is a pure transform: it never fails, it only drops what was
not requested (or, for oversized symlink targets, what cannot be carried).
"""

from __future__ import annotations

import logging
import stat
from typing import Any, Iterable, Mapping

from metasync.core.fsentry import (
    STATX_ATTRIBUTES,
    SYMLINK_MAX,
    FieldMask,
    FSEntry,
    ProjectionSpec,
    Statx,
    StatxMask,
)
from metasync.core.iterators import ClosableIterator, close_iterator

logger = logging.getLogger(__name__)


def project_statx(statx: Statx, mask: StatxMask) -> Statx | None:
    """
    Keep only the sub-fields of ``statx`` selected by ``mask``.

    A bundle whose mask already equals ``mask`` is returned as is. Returns
    None when nothing survives.
    """
    if statx.mask == mask:
        return statx

    keep = statx.mask & mask
    if not keep:
        return None

    values: dict[str, int] = {}
    mode = 0
    if keep & StatxMask.TYPE:
        mode |= stat.S_IFMT(statx.mode)
    if keep & StatxMask.MODE:
        mode |= stat.S_IMODE(statx.mode)
    if keep & StatxMask.ATTRIBUTES:
        values["attributes"] = statx.attributes
        values["attributes_mask"] = statx.attributes_mask
    for bit, attr in STATX_ATTRIBUTES.items():
        if keep & bit:
            values[attr] = getattr(statx, attr)

    return Statx(mask=keep, mode=mode, **values)


def _project_xattrs(
    xattrs: Mapping[str, Any], keys: frozenset[str] | None
) -> Mapping[str, Any] | None:
    if keys is None:
        return xattrs
    selected = {key: value for key, value in xattrs.items() if key in keys}
    return selected or None


def _fits_symlink_max(entry: FSEntry) -> bool:
    assert entry.symlink is not None
    size = len(entry.symlink.encode("utf-8", errors="surrogateescape"))
    if size <= SYMLINK_MAX:
        return True
    logger.warning(
        f"Dropping symlink target of {entry.id!r}: {size} bytes exceeds {SYMLINK_MAX}"
    )
    return False


def project(entry: FSEntry, spec: ProjectionSpec) -> FSEntry:
    """
    Build a new fsentry holding the fields of ``entry`` that ``spec`` requests.

    Args:
        entry: The fsentry to narrow
        spec: Requested fields, statx sub-fields and xattr keys

    Returns:
        The projected fsentry. Structural fields are passed through untouched.
    """
    fields = entry.mask & spec.fields

    statx = None
    if fields & FieldMask.STATX:
        statx = project_statx(entry.statx, spec.statx)  # type: ignore[arg-type]

    symlink = None
    if fields & FieldMask.SYMLINK and _fits_symlink_max(entry):
        symlink = entry.symlink

    inode_xattrs = None
    if fields & FieldMask.INODE_XATTRS:
        inode_xattrs = _project_xattrs(entry.inode_xattrs, spec.inode_xattr_keys)  # type: ignore[arg-type]

    namespace_xattrs = None
    if fields & FieldMask.NAMESPACE_XATTRS:
        namespace_xattrs = _project_xattrs(
            entry.namespace_xattrs, spec.namespace_xattr_keys  # type: ignore[arg-type]
        )

    return FSEntry(
        id=entry.id if fields & FieldMask.ID else None,
        parent_id=entry.parent_id if fields & FieldMask.PARENT_ID else None,
        name=entry.name if fields & FieldMask.NAME else None,
        statx=statx,
        symlink=symlink,
        inode_xattrs=inode_xattrs,
        namespace_xattrs=namespace_xattrs,
    )


class ProjectionIterator(ClosableIterator[FSEntry]):
    """Projects each fsentry pulled from ``fsentries``."""

    def __init__(self, fsentries: Iterable[FSEntry], spec: ProjectionSpec):
        self._fsentries = iter(fsentries)
        self._spec = spec

    @property
    def spec(self) -> ProjectionSpec:
        return self._spec

    def __next__(self) -> FSEntry:
        if self._closed:
            raise StopIteration
        return project(next(self._fsentries), self._spec)

    def _release(self) -> None:
        close_iterator(self._fsentries)
