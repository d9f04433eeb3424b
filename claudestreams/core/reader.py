"""
Line-bounded range reads over stream files.

Reads start at an arbitrary byte offset and return whole records only,
stopping at a byte budget. The budget is soft in one direction: the first
record is always returned even if it alone exceeds the budget, so a reader
with a small budget still makes progress.
"""

import os
from typing import List

from claudestreams.core.errors import ScanOverflowError, StorageIOError
from claudestreams.core.format import Message, ReadResult, StreamInfo
from claudestreams.core.offset import decode_offset, encode_offset
from claudestreams.utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_LINE_BYTES = 16 * 1024 * 1024
DEFAULT_CONTENT_TYPE = "application/json"


class StreamReader:
    """
    Reads newline-delimited records from stream files.

    The reader is stateless between calls: every read opens, scans and
    closes the file itself, and never writes to it.

    Attributes:
        max_line_bytes: Largest record accepted, excluding the newline
        content_type: Content type reported by head()
    """

    def __init__(
        self,
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
        content_type: str = DEFAULT_CONTENT_TYPE,
    ):
        if max_line_bytes <= 0:
            raise ValueError(f"max_line_bytes must be positive: {max_line_bytes}")
        self.max_line_bytes = max_line_bytes
        self.content_type = content_type

    def head(self, path: str) -> StreamInfo:
        """
        Return metadata for a stream file.

        Args:
            path: Stream file path

        Returns:
            Content type and the offset of the current end of file

        Raises:
            StorageIOError: If the file cannot be stat-ed
        """
        try:
            size = os.stat(path).st_size
        except OSError as e:
            raise StorageIOError("stat", path, e) from e

        return StreamInfo(content_type=self.content_type, next_offset=encode_offset(size))

    def read(self, path: str, offset: str, max_bytes: int) -> ReadResult:
        """
        Read complete records starting at an offset.

        Args:
            path: Stream file path
            offset: Offset token to start from
            max_bytes: Soft budget for accumulated record bytes

        Returns:
            ReadResult with the records, the offset to resume from and the
            tail offset at the time of the call

        Raises:
            StorageIOError: If the file cannot be opened, stat-ed or read
            ScanOverflowError: If a record exceeds max_line_bytes
        """
        start = decode_offset(offset)

        try:
            f = open(path, "rb")
        except OSError as e:
            raise StorageIOError("open", path, e) from e

        with f:
            try:
                tail = os.fstat(f.fileno()).st_size
                f.seek(start)
            except OSError as e:
                raise StorageIOError("seek", path, e) from e

            messages, position = self._scan(f, path, start, max_bytes)

        next_offset = encode_offset(position) if messages else offset

        logger.debug(
            "Read stream",
            path=path,
            start=start,
            messages=len(messages),
            next_offset=next_offset,
        )

        return ReadResult(
            messages=messages,
            next_offset=next_offset,
            tail_offset=encode_offset(tail),
        )

    def _scan(self, f, path: str, start: int, max_bytes: int) -> tuple[List[Message], int]:
        messages: List[Message] = []
        position = start
        accumulated = 0
        limit = self.max_line_bytes + 1

        while True:
            try:
                line = f.readline(limit)
            except OSError as e:
                raise StorageIOError("read", path, e) from e

            if not line:
                break

            if not line.endswith(b"\n"):
                if len(line) >= limit:
                    raise ScanOverflowError(path, position, self.max_line_bytes)
                # Writer is mid-append; leave the fragment for the next read
                break

            data = line[:-1]
            if data.endswith(b"\r"):
                data = data[:-1]

            if accumulated + len(data) > max_bytes and messages:
                break

            position += len(line)
            accumulated += len(data)
            messages.append(Message(data=data, offset=encode_offset(position)))

        return messages, position
