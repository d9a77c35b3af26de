from reconciler.exceptions import ReconcilerError


class StorageError(ReconcilerError):
    """Raised when the object store rejects an operation for good."""


class StorageTransientError(StorageError):
    """Raised on timeouts and connection faults that are worth retrying."""
