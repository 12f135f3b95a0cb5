class StorageError(Exception):
    """Base exception for file storage errors."""


class StoredFileNotFoundError(StorageError):
    """Raised when a path does not exist in storage."""


class UnsafePathError(StorageError):
    """Raised when a path resolves outside the storage root."""
