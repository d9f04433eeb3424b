"""
claudestreams - Claude conversation logs as tailable streams.

Exposes the append-only JSONL files in a Claude data directory as
addressable streams with:
- Opaque, ordered byte-offset cursors
- Line-bounded range reads
- Live "new data" notifications driven by filesystem events
- A read-only contract: nothing is ever written
"""

__version__ = "0.1.0"

from claudestreams.core.errors import (
    ReadOnlyError,
    ScanOverflowError,
    StorageClosedError,
    StorageError,
    StorageIOError,
    StreamNotFoundError,
)
from claudestreams.core.format import Message, ReadResult, StreamInfo
from claudestreams.core.offset import ZERO_OFFSET, decode_offset, encode_offset
from claudestreams.storage.claude_storage import ClaudeStorage

__all__ = [
    "ClaudeStorage",
    "Message",
    "ReadResult",
    "StreamInfo",
    "ZERO_OFFSET",
    "encode_offset",
    "decode_offset",
    "StorageError",
    "StreamNotFoundError",
    "ReadOnlyError",
    "StorageIOError",
    "ScanOverflowError",
    "StorageClosedError",
]
