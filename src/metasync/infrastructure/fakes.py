"""
Fake implementations for testing.

Provides in-memory implementations of infrastructure interfaces
for use in unit and integration tests without a real store.
"""

from __future__ import annotations

from typing import Any, Iterable, Iterator, Sequence, Union

from metasync.core.errors import BackendError, TransientError
from metasync.core.fsentry import FSEntry, ProjectionSpec
from metasync.core.fsevent import FSEvent, LinkEvent, UpsertEvent
from metasync.core.iterators import ClosableIterator
from metasync.infrastructure.backend_base import BackendInterface

#: Script step replayed by ScriptedSource: an fsentry to yield or an exception to raise
ScriptStep = Union[FSEntry, BaseException]


def transient(times: int = 1) -> list[TransientError]:
    """Script steps for ``times`` consecutive "try again" signals."""
    return [TransientError("try again") for _ in range(times)]


class ScriptedSource(ClosableIterator[FSEntry]):
    """
    Entry source replaying a fixed script.

    Unlike a generator, it stays usable after raising, which is what
    :class:`TransientError` requires.

    Attributes:
        pulls: Number of times ``__next__`` was called
    """

    def __init__(self, steps: Sequence[ScriptStep]):
        self._steps = list(steps)
        self._position = 0
        self.pulls = 0

    @property
    def remaining(self) -> int:
        return len(self._steps) - self._position

    def __next__(self) -> FSEntry:
        self.pulls += 1
        if self._closed or self._position >= len(self._steps):
            raise StopIteration
        step = self._steps[self._position]
        self._position += 1
        if isinstance(step, BaseException):
            raise step
        return step


class InMemoryBackend(BackendInterface):
    """
    In-memory backend for testing.

    Implements BackendInterface with plain dictionaries and records every
    fsevent it receives.

    Attributes:
        received: Every fsevent passed to ``update``, in order
        updates: Number of ``update`` calls
    """

    name = "memory"

    def __init__(
        self,
        fsentries: Iterable[ScriptStep] = (),
        fail_after: int | None = None,
        failure: BaseException | None = None,
    ):
        """
        Initialize in-memory backend.

        Args:
            fsentries: Script replayed by ``filter_fsentries``
            fail_after: Raise ``failure`` once this many fsevents were applied
            failure: Exception raised by ``update``, a BackendError by default
        """
        self._script = list(fsentries)
        self._fail_after = fail_after
        self._failure = failure or BackendError("simulated failure", self.name)
        self.inodes: dict[bytes, dict[str, Any]] = {}
        self.links: dict[tuple[bytes, str], bytes] = {}
        self.received: list[FSEvent] = []
        self.updates = 0
        self.closed = False
        self.sources: list[ScriptedSource] = []

    def filter_fsentries(self, projection: ProjectionSpec) -> Iterator[FSEntry]:
        source = ScriptedSource(self._script)
        self.sources.append(source)
        return source

    def root(self, projection: ProjectionSpec) -> FSEntry:
        for step in self._script:
            if isinstance(step, FSEntry):
                return step
        raise BackendError("no root entry", self.name)

    def update(self, fsevents: Iterable[FSEvent]) -> int:
        self.updates += 1
        count = 0
        for fsevent in fsevents:
            if self._fail_after is not None and len(self.received) >= self._fail_after:
                raise self._failure
            self.received.append(fsevent)
            if isinstance(fsevent, UpsertEvent):
                inode = self.inodes.setdefault(fsevent.id, {})
                if fsevent.statx is not None:
                    inode.setdefault("statx", {}).update(fsevent.statx.to_dict())
                if fsevent.symlink is not None:
                    inode["symlink"] = fsevent.symlink
                if fsevent.xattrs is not None:
                    inode.setdefault("xattrs", {}).update(fsevent.xattrs)
            elif isinstance(fsevent, LinkEvent):
                self.inodes.setdefault(fsevent.id, {})
                self.links[(fsevent.parent_id, fsevent.name)] = fsevent.id
            count += 1
        return count

    def close(self) -> None:
        self.closed = True
