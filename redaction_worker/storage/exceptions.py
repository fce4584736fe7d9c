class StorageError(Exception):
    """Raised when the object storage cannot complete an operation."""


class ObjectNotFoundError(StorageError):
    """Raised when no object exists under the requested key."""
