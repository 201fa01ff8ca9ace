"""
POSIX backend: a read-only view of a live directory tree.

Walks a directory with ``os.scandir`` and ``os.lstat`` and produces one
fsentry per filesystem object. Symbolic links are never followed.
"""

import logging
import os
import stat
import struct
from collections import deque
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Optional

from metasync.core.errors import BackendError
from metasync.core.fsentry import FieldMask, FSEntry, ProjectionSpec, Statx, StatxMask
from metasync.core.fsevent import FSEvent
from metasync.infrastructure.backend_base import BackendInterface

logger = logging.getLogger(__name__)

_NSEC_PER_SEC = 1_000_000_000


def fsentry_id(st: os.stat_result) -> bytes:
    """Identifier of the object behind ``st``: its packed (device, inode) pair."""
    return struct.pack("<QQ", st.st_dev, st.st_ino)


def statx_from_stat(st: os.stat_result) -> Statx:
    """Build a statx bundle from the result of ``os.lstat``."""
    mask = (
        StatxMask.TYPE | StatxMask.MODE | StatxMask.NLINK | StatxMask.UID | StatxMask.GID
        | StatxMask.ATIME | StatxMask.MTIME | StatxMask.CTIME | StatxMask.INO
        | StatxMask.SIZE | StatxMask.DEV
    )
    values: Dict[str, int] = {
        "mode": st.st_mode,
        "nlink": st.st_nlink,
        "uid": st.st_uid,
        "gid": st.st_gid,
        "ino": st.st_ino,
        "size": st.st_size,
        "atime_sec": st.st_atime_ns // _NSEC_PER_SEC,
        "atime_nsec": st.st_atime_ns % _NSEC_PER_SEC,
        "mtime_sec": st.st_mtime_ns // _NSEC_PER_SEC,
        "mtime_nsec": st.st_mtime_ns % _NSEC_PER_SEC,
        "ctime_sec": st.st_ctime_ns // _NSEC_PER_SEC,
        "ctime_nsec": st.st_ctime_ns % _NSEC_PER_SEC,
        "dev_major": os.major(st.st_dev),
        "dev_minor": os.minor(st.st_dev),
    }

    # Not every platform reports these
    if hasattr(st, "st_blocks"):
        mask |= StatxMask.BLOCKS
        values["blocks"] = st.st_blocks
    if hasattr(st, "st_blksize"):
        mask |= StatxMask.BLKSIZE
        values["blksize"] = st.st_blksize
    if hasattr(st, "st_rdev"):
        mask |= StatxMask.RDEV
        values["rdev_major"] = os.major(st.st_rdev)
        values["rdev_minor"] = os.minor(st.st_rdev)
    birthtime_ns = getattr(st, "st_birthtime_ns", None)
    if birthtime_ns is None and getattr(st, "st_birthtime", None) is not None:
        birthtime_ns = int(round(st.st_birthtime * _NSEC_PER_SEC))
    if birthtime_ns is not None:
        mask |= StatxMask.BTIME
        values["btime_sec"], values["btime_nsec"] = divmod(birthtime_ns, _NSEC_PER_SEC)

    return Statx(mask=mask, **values)


def _read_xattrs(path: Path) -> Optional[Dict[str, Any]]:
    """Read the extended attributes of ``path``, None where unsupported."""
    if not hasattr(os, "listxattr"):
        return None
    try:
        return {
            key: os.getxattr(path, key, follow_symlinks=False)
            for key in os.listxattr(path, follow_symlinks=False)
        }
    except OSError as e:
        logger.debug(f"Cannot read xattrs of {path}: {e}")
        return None


class PosixBackend(BackendInterface):
    """
    Read-only backend over a directory tree.

    The walk root has no parent id nor name. Every other object is bound
    under the directory it was found in.
    """

    name = "posix"

    def __init__(self, root: Path | str, root_path: Optional[str] = None, root_id: Optional[bytes] = None):
        self._root = Path(root)
        self._root_path = root_path
        self._root_id = root_id

    @property
    def root_dir(self) -> Path:
        return self._root

    def _make_fsentry(
        self,
        path: Path,
        st: os.stat_result,
        projection: ProjectionSpec,
        parent_id: Optional[bytes] = None,
        name: Optional[str] = None,
    ) -> FSEntry:
        fields = projection.fields
        symlink = None
        if fields & FieldMask.SYMLINK and stat.S_ISLNK(st.st_mode):
            symlink = os.readlink(path)
        return FSEntry(
            id=fsentry_id(st),
            parent_id=parent_id,
            name=name,
            statx=statx_from_stat(st) if fields & FieldMask.STATX else None,
            symlink=symlink,
            inode_xattrs=_read_xattrs(path) if fields & FieldMask.INODE_XATTRS else None,
        )

    def _lstat_root(self) -> os.stat_result:
        try:
            st = os.lstat(self._root)
        except OSError as e:
            raise BackendError(f"cannot access {self._root}: {e.strerror}", self.name) from e
        if not stat.S_ISDIR(st.st_mode):
            raise BackendError(f"not a directory: {self._root}", self.name)
        return st

    def filter_fsentries(self, projection: ProjectionSpec) -> Iterator[FSEntry]:
        """Walk the tree breadth-first, yielding each object before its children."""
        root_st = self._lstat_root()
        yield self._make_fsentry(self._root, root_st, projection)

        pending = deque([(self._root, fsentry_id(root_st))])
        while pending:
            directory, directory_id = pending.popleft()
            try:
                with os.scandir(directory) as it:
                    names = sorted(entry.name for entry in it)
            except PermissionError as e:
                logger.warning(f"Permission denied accessing directory: {directory} - {e}")
                continue
            except OSError as e:
                logger.warning(f"Error accessing directory: {directory} - {e}")
                continue

            for name in names:
                path = directory / name
                try:
                    st = os.lstat(path)
                    fsentry = self._make_fsentry(
                        path, st, projection, parent_id=directory_id, name=name
                    )
                except FileNotFoundError:
                    logger.debug(f"Vanished while scanning: {path}")
                    continue
                except OSError as e:
                    logger.warning(f"Error accessing: {path} - {e}")
                    continue

                yield fsentry
                if stat.S_ISDIR(st.st_mode):
                    pending.append((path, fsentry.id))

    def root(self, projection: ProjectionSpec) -> FSEntry:
        """Look up the object designated by the URI fragment."""
        if self._root_id is not None:
            raise BackendError("entries cannot be looked up by id", self.name)

        root_st = self._lstat_root()
        relative = Path(self._root_path or "")
        parts = [part for part in relative.parts if part not in ("/", ".")]
        if not parts:
            return self._make_fsentry(self._root, root_st, projection)

        path = self._root.joinpath(*parts)
        try:
            st = os.lstat(path)
            parent_st = os.lstat(path.parent)
            return self._make_fsentry(
                path, st, projection, parent_id=fsentry_id(parent_st), name=path.name
            )
        except OSError as e:
            raise BackendError(f"cannot access {path}: {e.strerror}", self.name) from e

    def update(self, fsevents: Iterable[FSEvent]) -> int:
        raise BackendError("backend is read-only", self.name)


def create_posix_backend(
    root: Path | str,
    root_path: Optional[str] = None,
    root_id: Optional[bytes] = None,
) -> PosixBackend:
    """Factory function to create a POSIX backend."""
    return PosixBackend(root, root_path=root_path, root_id=root_id)
