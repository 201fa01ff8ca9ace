"""
Backend URIs and the registry resolving them.

A URI is built as ``metasync:BACKEND:FSNAME[#{PATH|[ID]}]`` where BACKEND
names a registered backend, FSNAME is the store it opens (a directory for
``posix``, a database file for ``sqlite``), and the optional fragment
designates a single entry, by path or by hex-encoded id in brackets.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional

from metasync.core.errors import InvalidURIError
from metasync.infrastructure.backend_base import BackendInterface
from metasync.infrastructure.posix_backend import create_posix_backend
from metasync.infrastructure.sqlite_backend import create_sqlite_backend

logger = logging.getLogger(__name__)

URI_SCHEME = "metasync"

#: Builds a backend from (fsname, root_path, root_id)
BackendFactory = Callable[[str, Optional[str], Optional[bytes]], BackendInterface]


@dataclass(frozen=True)
class BackendURI:
    """
    A parsed backend URI.

    Attributes:
        backend: Registry name of the backend
        fsname: Store the backend opens
        path: Path of a single entry, from the fragment
        id: Identifier of a single entry, from a ``[HEX]`` fragment
    """

    backend: str
    fsname: str
    path: Optional[str] = None
    id: Optional[bytes] = None

    @property
    def is_single_entry(self) -> bool:
        """Whether the URI designates one entry rather than a whole store."""
        return self.path is not None or self.id is not None


def parse_uri(uri: str) -> BackendURI:
    """
    Parse a backend URI.

    Raises:
        InvalidURIError: If the URI does not follow the grammar
    """
    scheme, sep, rest = uri.partition(":")
    if not sep or scheme != URI_SCHEME:
        raise InvalidURIError(f"{uri!r}: scheme must be {URI_SCHEME!r}")

    backend, sep, rest = rest.partition(":")
    if not sep or not backend:
        raise InvalidURIError(f"{uri!r}: missing backend name")

    fsname, has_fragment, fragment = rest.partition("#")
    if not fsname:
        raise InvalidURIError(f"{uri!r}: missing fsname")

    if not has_fragment:
        return BackendURI(backend=backend, fsname=fsname)
    if not fragment:
        raise InvalidURIError(f"{uri!r}: empty fragment")

    if fragment.startswith("[") and fragment.endswith("]"):
        try:
            entry_id = bytes.fromhex(fragment[1:-1])
        except ValueError as e:
            raise InvalidURIError(f"{uri!r}: invalid id: {e}") from e
        return BackendURI(backend=backend, fsname=fsname, id=entry_id)

    return BackendURI(backend=backend, fsname=fsname, path=fragment)


class BackendRegistry:
    """
    Maps backend names to factories.

    Example:
        >>> registry = BackendRegistry()
        >>> registry.register("posix", create_posix_backend)
        >>> registry.open(parse_uri("metasync:posix:/srv/data"))
    """

    def __init__(self, load_defaults: bool = True):
        self._factories: dict[str, BackendFactory] = {}
        if load_defaults:
            self.register("posix", create_posix_backend)
            self.register("sqlite", create_sqlite_backend)

    def register(self, name: str, factory: BackendFactory) -> None:
        """Register (or replace) the factory of a backend."""
        if name in self._factories:
            logger.debug(f"Replacing backend factory: {name}")
        self._factories[name] = factory

    def names(self) -> list[str]:
        return sorted(self._factories)

    def open(self, uri: BackendURI) -> BackendInterface:
        """
        Build the backend a parsed URI designates.

        Raises:
            InvalidURIError: If no backend is registered under that name
        """
        factory = self._factories.get(uri.backend)
        if factory is None:
            raise InvalidURIError(
                f"unknown backend {uri.backend!r} (available: {', '.join(self.names())})"
            )
        return factory(uri.fsname, uri.path, uri.id)


_default_registry: BackendRegistry | None = None


def get_default_registry() -> BackendRegistry:
    """Get the process-wide default backend registry."""
    global _default_registry
    if _default_registry is None:
        _default_registry = BackendRegistry()
    return _default_registry


def backend_from_uri(uri: str, registry: BackendRegistry | None = None) -> BackendInterface:
    """Parse ``uri`` and open the backend it designates."""
    return (registry or get_default_registry()).open(parse_uri(uri))
