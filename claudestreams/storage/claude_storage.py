"""
Read-only stream storage over a Claude data directory.

Special streams:
- ``_history``: ``<claude_dir>/history.jsonl``, the command history

Every other stream id is a conversation id, resolved from
``<claude_dir>/projects/**/<id>.jsonl``.

The storage serves three kinds of request: metadata (head), range reads
and live subscriptions. All mutating operations are rejected.
"""

import os
import threading
from typing import BinaryIO, List, Optional, Set

from claudestreams.core.errors import ReadOnlyError, StorageClosedError
from claudestreams.core.format import ReadResult, StreamInfo
from claudestreams.core.index import StreamIndex, normalize_stream_id
from claudestreams.core.reader import (
    DEFAULT_CONTENT_TYPE,
    DEFAULT_MAX_LINE_BYTES,
    StreamReader,
)
from claudestreams.core.rwlock import ReadWriteLock
from claudestreams.storage.subscription import NotificationChannel, SubscriberRegistry
from claudestreams.storage.watcher import StreamWatcher
from claudestreams.utils.config import Config
from claudestreams.utils.logging import get_logger

logger = get_logger(__name__)

_CANCEL_POLL_SECONDS = 0.5


class ClaudeStorage:
    """
    Read-only view over Claude conversation JSONL files.

    The stream index and the subscriber registry share one reader/writer
    lock. A background watcher keeps the index current and notifies
    subscribers as files grow.

    Example:
        >>> with ClaudeStorage("~/.claude") as storage:
        ...     result = storage.read("_history", ZERO_OFFSET, 64 * 1024)
        ...     for message in result.messages:
        ...         print(message.json())
    """

    def __init__(
        self,
        claude_dir: str,
        projects_subdir: str = "projects",
        history_filename: str = "history.jsonl",
        history_stream_id: str = "_history",
        extension: str = ".jsonl",
        max_line_bytes: int = DEFAULT_MAX_LINE_BYTES,
        content_type: str = DEFAULT_CONTENT_TYPE,
        watch: bool = True,
    ):
        """
        Index the data directory and start watching it.

        Args:
            claude_dir: Claude data directory (``~`` is expanded)
            projects_subdir: Conversation tree, relative to claude_dir
            history_filename: Well-known history file, relative to claude_dir
            history_stream_id: Reserved stream id for the history file
            extension: Stream file extension
            max_line_bytes: Largest record a read will accept
            content_type: Content type reported by head()
            watch: Start the filesystem watcher
        """
        self.claude_dir = os.path.abspath(os.path.expanduser(claude_dir))
        self.projects_dir = os.path.join(self.claude_dir, projects_subdir)
        self.history_path = os.path.join(self.claude_dir, history_filename)

        self._lock = ReadWriteLock()
        self._index = StreamIndex(
            projects_dir=self.projects_dir,
            history_path=self.history_path,
            history_stream_id=history_stream_id,
            extension=extension,
            lock=self._lock,
        )
        self._registry = SubscriberRegistry(self._lock)
        self._reader = StreamReader(max_line_bytes=max_line_bytes, content_type=content_type)

        self._close_lock = threading.Lock()
        self._closed = False
        self._closing = threading.Event()
        self._unsubscribers: Set[threading.Thread] = set()
        self._watcher: Optional[StreamWatcher] = None

        if watch:
            self._watcher = StreamWatcher(
                self._index,
                self._registry,
                watch_dirs=[(self.claude_dir, False), (self.projects_dir, True)],
            )
            self._watcher.start()

        try:
            self._index.scan()
        except Exception:
            self.close()
            raise

        logger.info(
            "Opened Claude storage",
            claude_dir=self.claude_dir,
            streams=len(self._index),
            watching=watch,
        )

    @classmethod
    def from_config(cls, config: Config, watch: bool = True) -> "ClaudeStorage":
        """
        Build a storage from configuration.

        Args:
            config: Loaded configuration
            watch: Start the filesystem watcher

        Returns:
            Opened storage
        """
        return cls(
            claude_dir=config.get("storage.claude_dir"),
            projects_subdir=config.get("storage.projects_subdir", "projects"),
            history_filename=config.get("storage.history_filename", "history.jsonl"),
            history_stream_id=config.get("storage.history_stream_id", "_history"),
            extension=config.get("storage.extension", ".jsonl"),
            max_line_bytes=int(config.get("storage.max_line_bytes", DEFAULT_MAX_LINE_BYTES)),
            content_type=config.get("storage.content_type", DEFAULT_CONTENT_TYPE),
            watch=watch,
        )

    @property
    def index(self) -> StreamIndex:
        return self._index

    @property
    def registry(self) -> SubscriberRegistry:
        return self._registry

    @property
    def watcher(self) -> Optional[StreamWatcher]:
        return self._watcher

    # Read path

    def resolve(self, stream_id: str) -> str:
        """Resolve a stream id to its backing file path."""
        return self._index.resolve(stream_id)

    def list_streams(self) -> List[str]:
        """Return the ids of all streams known to the index."""
        return self._index.stream_ids()

    def head(self, stream_id: str) -> StreamInfo:
        """
        Return stream metadata.

        Raises:
            StreamNotFoundError: If the stream id cannot be resolved
            StorageIOError: If the file cannot be stat-ed
        """
        path = self._index.resolve(stream_id)
        return self._reader.head(path)

    def read(self, stream_id: str, offset: str, limit: int) -> ReadResult:
        """
        Read complete records from a stream.

        Args:
            stream_id: Stream id
            offset: Offset token to start from
            limit: Soft byte budget for the returned records

        Returns:
            Records, the offset to resume from and the current tail offset

        Raises:
            StreamNotFoundError: If the stream id cannot be resolved
            StorageIOError: If the file cannot be opened or read
            ScanOverflowError: If a record exceeds the line limit
        """
        path = self._index.resolve(stream_id)
        return self._reader.read(path, offset, limit)

    def subscribe(
        self,
        stream_id: str,
        offset: str,
        cancel: threading.Event,
    ) -> NotificationChannel:
        """
        Subscribe to tail-offset notifications for a stream.

        The channel holds at most one pending notification; treat each one
        as a hint to read again. When ``cancel`` is set the channel is
        unregistered and closed; close() ends every subscription.

        Args:
            stream_id: Stream id
            offset: Offset the caller has read up to
            cancel: Event that ends the subscription

        Returns:
            Notification channel

        Raises:
            StreamNotFoundError: If the stream id cannot be resolved
            StorageClosedError: If the storage has been closed
        """
        stream_id = normalize_stream_id(stream_id)
        self._index.resolve(stream_id)

        channel = NotificationChannel(stream_id)

        def unsubscribe() -> None:
            while not cancel.wait(_CANCEL_POLL_SECONDS):
                if self._closing.is_set():
                    break
            self._registry.remove(stream_id, channel)
            channel.close()
            with self._close_lock:
                self._unsubscribers.discard(thread)

        thread = threading.Thread(
            target=unsubscribe,
            name=f"claudestreams-unsubscribe-{stream_id}",
            daemon=True,
        )

        # must register under the close lock so close() sees it
        with self._close_lock:
            if self._closed:
                raise StorageClosedError("subscribe")
            self._registry.add(stream_id, channel)
            self._unsubscribers.add(thread)
        thread.start()

        logger.debug("Subscribed", stream_id=stream_id, offset=offset)
        return channel

    # Write path; the store is read-only

    def create(self, stream_id: str, content_type: Optional[str] = None) -> bool:
        raise ReadOnlyError("create")

    def append(self, stream_id: str, data: bytes, seq: Optional[str] = None) -> str:
        raise ReadOnlyError("append")

    def append_from(self, stream_id: str, source: BinaryIO, seq: Optional[str] = None) -> str:
        raise ReadOnlyError("append_from")

    def delete(self, stream_id: str) -> None:
        raise ReadOnlyError("delete")

    # Lifecycle

    def close(self, timeout: float = 5.0) -> None:
        """
        Stop the watcher and end open subscriptions. Idempotent.

        Args:
            timeout: Seconds to wait for each background thread
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
            unsubscribers = list(self._unsubscribers)

        self._closing.set()
        if self._watcher is not None:
            self._watcher.stop(timeout)
        self._registry.close_all()
        for thread in unsubscribers:
            thread.join(timeout)

        logger.info("Closed Claude storage", claude_dir=self.claude_dir)

    def __enter__(self) -> "ClaudeStorage":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
