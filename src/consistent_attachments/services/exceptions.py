"""Errors raised by the rename/delete propagation engine."""


class ConsistencyError(Exception):
    """Base class for all consistent-attachments errors."""


class DocumentNotFoundError(ConsistencyError):
    """Raised when a referenced store entry does not exist."""


class ContentRaceError(ConsistencyError):
    """Raised when a document kept changing under a rewrite after all retries."""

    def __init__(self, path: str, attempts: int):
        self.path = path
        self.attempts = attempts
        super().__init__(f"Content of {path} changed during rewrite ({attempts} attempts)")


class NameSpaceExhaustedError(ConsistencyError):
    """Raised when no free "name N.ext" variant of a path could be found."""

    def __init__(self, path: str, limit: int):
        self.path = path
        self.limit = limit
        super().__init__(f"No free name for {path} after {limit} attempts")


class StoreOperationError(ConsistencyError):
    """Raised when a store read/write/rename/delete/list fails for a non-benign reason."""
