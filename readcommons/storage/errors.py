"""
Storage-layer errors.

Stores raise these; the API layer maps them onto HTTP responses.
"""


class StorageError(Exception):
    """Base class for storage failures."""


class RecordNotFoundError(StorageError):
    """No row matched the lookup."""

    def __init__(self, message: str = "record not found"):
        super().__init__(message)


class DuplicateRecordError(StorageError):
    """A uniqueness constraint rejected the write."""

    def __init__(self, message: str = "duplicate record", constraint: str = None):
        self.constraint = constraint
        super().__init__(message)


class EditConflictError(StorageError):
    """The record's version changed between read and update."""

    def __init__(self, message: str = "edit conflict"):
        super().__init__(message)


class StorageUnavailableError(StorageError):
    """The database timed out or failed in a way the caller cannot act on."""


class UnsafeSortError(StorageError):
    """A sort key outside the safelist reached the query builder."""
