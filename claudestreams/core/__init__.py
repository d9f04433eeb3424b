"""
Core stream storage components.

- Offset codec for opaque, ordered byte-offset cursors
- Stream index mapping ids to files
- Line-bounded stream reader
"""

from claudestreams.core.errors import (
    ReadOnlyError,
    ScanOverflowError,
    StorageClosedError,
    StorageError,
    StorageIOError,
    StreamNotFoundError,
)
from claudestreams.core.format import Message, ReadResult, StreamInfo
from claudestreams.core.index import StreamIndex
from claudestreams.core.offset import (
    BEGINNING_ALIAS,
    ZERO_OFFSET,
    decode_offset,
    encode_offset,
)
from claudestreams.core.reader import StreamReader
from claudestreams.core.rwlock import ReadWriteLock

__all__ = [
    "BEGINNING_ALIAS",
    "ZERO_OFFSET",
    "decode_offset",
    "encode_offset",
    "Message",
    "ReadResult",
    "StreamInfo",
    "StreamIndex",
    "StreamReader",
    "ReadWriteLock",
    "StorageError",
    "StreamNotFoundError",
    "ReadOnlyError",
    "StorageIOError",
    "ScanOverflowError",
    "StorageClosedError",
]
