"""Exception types for the sync pipeline."""


class SyncError(Exception):
    """Base exception for sync errors."""

    pass


class TransientError(SyncError):
    """No data is available yet, the same pull should be retried.

    Only entry sources raise this. The pipeline absorbs it at the source
    boundary and it is never observable downstream.
    """

    pass


class BackendError(SyncError):
    """Store-specific failure carrying the store's own diagnostic message."""

    def __init__(self, message: str, backend: str | None = None):
        self.message = message
        self.backend = backend
        super().__init__(message)


class ChunkInProgressError(SyncError):
    """A new chunk was requested before the previous one was consumed."""

    pass


class InvalidFieldError(SyncError, ValueError):
    """A field name is not part of the field grammar."""

    pass


class InvalidURIError(SyncError, ValueError):
    """A backend URI could not be parsed or resolved."""

    pass
