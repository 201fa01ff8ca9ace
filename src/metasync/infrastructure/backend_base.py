"""
Backend base types and interfaces.

A backend is a live handle on a metadata store: it can list the fsentries
it holds and apply fsevents to them.
"""

from abc import ABC, abstractmethod
from typing import Iterable, Iterator

from metasync.core.fsentry import FSEntry, ProjectionSpec
from metasync.core.fsevent import FSEvent


class BackendInterface(ABC):
    """Abstract interface for metadata stores."""

    #: Registry name of the backend, as used in URIs
    name: str = ""

    @abstractmethod
    def filter_fsentries(self, projection: ProjectionSpec) -> Iterator[FSEntry]:
        """
        Iterate over every fsentry of the store.

        Args:
            projection: Fields the caller is interested in. Backends may use
                it to avoid fetching unrequested data; the pipeline projects
                every fsentry again regardless.

        Returns:
            An iterator whose ``__next__`` may raise ``TransientError`` when
            no data is available yet. Such iterators must stay usable after
            raising it, which rules out plain generators.
        """
        pass

    @abstractmethod
    def root(self, projection: ProjectionSpec) -> FSEntry:
        """
        Look up the single fsentry this backend was opened on.

        Raises:
            BackendError: If the backend has no root or it does not exist
        """
        pass

    @abstractmethod
    def update(self, fsevents: Iterable[FSEvent]) -> int:
        """
        Apply fsevents in order.

        Args:
            fsevents: Events to apply; consumed lazily, exactly once

        Returns:
            Number of fsevents applied

        Raises:
            BackendError: On a store-specific failure
        """
        pass

    def close(self) -> None:
        """Release the underlying store connection (optional)."""
        pass

    def __enter__(self) -> "BackendInterface":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
