"""Errors raised by the stream storage layer."""

from typing import Optional


class StorageError(Exception):
    """Base class for all storage errors."""
    pass


class StreamNotFoundError(StorageError):
    """Raised when a stream id cannot be resolved to a file."""

    def __init__(self, stream_id: str):
        self.stream_id = stream_id
        super().__init__(f"stream not found: {stream_id}")


class ReadOnlyError(StorageError):
    """Raised by every mutating operation; the store is read-only."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"storage is read-only: {operation} is not supported")


class StorageClosedError(StorageError):
    """Raised when a closed storage is asked for a new subscription."""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"storage is closed: cannot {operation}")


class StorageIOError(StorageError):
    """
    Raised when opening, seeking or stat-ing a stream file fails.

    Attributes:
        operation: The failing step (open, seek, stat, read)
        path: File path involved
        cause: Underlying OS error
    """

    def __init__(self, operation: str, path: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.path = path
        self.cause = cause
        message = f"{operation} {path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


class ScanOverflowError(StorageError):
    """
    Raised when a single record exceeds the maximum line size.

    Attributes:
        path: File being scanned
        position: Byte position where the oversized record starts
        limit: Maximum record size in bytes
    """

    def __init__(self, path: str, position: int, limit: int):
        self.path = path
        self.position = position
        self.limit = limit
        super().__init__(
            f"record at byte {position} in {path} exceeds {limit} bytes"
        )
