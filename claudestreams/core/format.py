"""
Records returned by stream reads.

A stream is a newline-delimited file; each line is one record. The reader
hands records out as raw bytes and never interprets their contents.
"""

import json
from dataclasses import dataclass, field
from typing import Any, List

from claudestreams.core.offset import decode_offset


@dataclass(frozen=True)
class Message:
    """
    A single record read from a stream.

    Attributes:
        data: Raw record bytes, without the trailing newline
        offset: Offset token pointing just past this record's newline
    """
    data: bytes
    offset: str

    def json(self) -> Any:
        """Parse the record as JSON."""
        return json.loads(self.data)


@dataclass
class ReadResult:
    """
    Result of a range read.

    Attributes:
        messages: Complete records, in file order
        next_offset: Offset to resume from; equals the requested offset
            when no records were returned
        tail_offset: Stream size when the read started (advisory)
    """
    messages: List[Message] = field(default_factory=list)
    next_offset: str = ""
    tail_offset: str = ""

    @property
    def up_to_date(self) -> bool:
        """True when the read reached the tail observed at read time."""
        return decode_offset(self.next_offset) >= decode_offset(self.tail_offset)


@dataclass(frozen=True)
class StreamInfo:
    """
    Stream metadata returned by head().

    Attributes:
        content_type: MIME type of the records
        next_offset: Offset of the current end of the stream
    """
    content_type: str
    next_offset: str
