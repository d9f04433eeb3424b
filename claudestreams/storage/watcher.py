"""
Filesystem watcher that keeps the stream index current and wakes
subscribers.

A watchdog observer watches the Claude data directory (for the history
file) and the projects tree recursively. Its handler only enqueues raw
events; a single consumer thread applies them in order:

- created / modified / moved-to stream file: upsert the index entry, stat
  the file, and offer the new tail offset to the stream's subscribers
- created directory: scan it, since files may land in a new directory
  before the recursive watch has picked it up; a configured watch
  directory that was missing at start is scheduled once it appears
"""

import os
import queue
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from watchdog.events import (
    EVENT_TYPE_CREATED,
    EVENT_TYPE_MODIFIED,
    EVENT_TYPE_MOVED,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from claudestreams.core.index import StreamIndex
from claudestreams.core.offset import encode_offset
from claudestreams.storage.subscription import SubscriberRegistry
from claudestreams.utils.logging import get_logger

logger = get_logger(__name__)

_STOP = object()


class _EnqueueHandler(FileSystemEventHandler):
    """Hands watchdog events to the watcher loop."""

    def __init__(self, events: queue.Queue):
        super().__init__()
        self._events = events

    def on_any_event(self, event: FileSystemEvent) -> None:
        self._events.put(event)


class StreamWatcher:
    """
    Watches stream files and fans out tail-offset notifications.

    Attributes:
        index: Stream index updated from events
        registry: Subscribers notified of new data
        watch_dirs: (directory, recursive) pairs to observe
    """

    def __init__(
        self,
        index: StreamIndex,
        registry: SubscriberRegistry,
        watch_dirs: Iterable[Tuple[str, bool]],
    ):
        self.index = index
        self.registry = registry
        self.watch_dirs: List[Tuple[str, bool]] = [
            (os.path.abspath(d), recursive) for d, recursive in watch_dirs
        ]

        self._events: queue.Queue = queue.Queue()
        self._handler = _EnqueueHandler(self._events)
        self._observer: Optional[Observer] = None
        self._pending: Dict[str, bool] = {}
        self._thread: Optional[threading.Thread] = None
        self._state_lock = threading.Lock()
        self._started = False
        self._stopped = False

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """
        Start observing and begin the event loop.

        Directories that do not exist yet are skipped with a warning and
        scheduled later if their creation is observed.
        """
        with self._state_lock:
            if self._started:
                return
            self._started = True

        observer = Observer()
        watched = 0
        for directory, recursive in self.watch_dirs:
            if not os.path.isdir(directory):
                logger.warning("Watch directory missing, skipping", directory=directory)
                self._pending[directory] = recursive
                continue
            observer.schedule(self._handler, directory, recursive=recursive)
            watched += 1

        observer.start()
        self._observer = observer

        self._thread = threading.Thread(
            target=self._run,
            name="claudestreams-watcher",
            daemon=True,
        )
        self._thread.start()

        logger.info("Started watcher", directories=watched)

    def stop(self, timeout: float = 5.0) -> None:
        """Stop observing and end the event loop. Safe to call repeatedly."""
        with self._state_lock:
            if self._stopped or not self._started:
                self._stopped = True
                return
            self._stopped = True

        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout)

        self._events.put(_STOP)
        if self._thread is not None:
            self._thread.join(timeout)

        logger.info("Stopped watcher")

    def _run(self) -> None:
        while True:
            event = self._events.get()
            if event is _STOP:
                break
            try:
                self.handle_event(event)
            except Exception as e:
                logger.error(
                    "Failed to handle filesystem event",
                    event_type=getattr(event, "event_type", None),
                    path=getattr(event, "src_path", None),
                    error=str(e),
                    exc_info=True,
                )

    def handle_event(self, event: FileSystemEvent) -> None:
        """
        Apply a single watchdog event.

        Args:
            event: Event reported by the observer
        """
        if event.event_type == EVENT_TYPE_MOVED:
            path = os.fsdecode(event.dest_path)
        elif event.event_type in (EVENT_TYPE_CREATED, EVENT_TYPE_MODIFIED):
            path = os.fsdecode(event.src_path)
        else:
            return

        if event.is_directory:
            if event.event_type != EVENT_TYPE_MODIFIED:
                self._schedule_pending(path)
                self.index.scan(path)
            return

        self.handle_path(path)

    def _schedule_pending(self, path: str) -> None:
        recursive = self._pending.pop(os.path.abspath(path), None)
        if recursive is None or self._observer is None:
            return
        self._observer.schedule(self._handler, path, recursive=recursive)
        logger.info("Watching directory created after start", directory=path)

    def handle_path(self, path: str) -> Optional[str]:
        """
        Process a write to a file path.

        Args:
            path: Path of the created or modified file

        Returns:
            The tail offset delivered to subscribers, or None if the path is
            not a stream file or vanished before it could be stat-ed
        """
        stream_id = self.index.stream_id_for_path(path)
        if stream_id is None:
            return None

        if stream_id != self.index.history_stream_id:
            self.index.upsert(stream_id, path)

        try:
            size = os.stat(path).st_size
        except OSError as e:
            logger.debug("Stream file vanished", stream_id=stream_id, path=path, error=str(e))
            return None

        tail = encode_offset(size)
        self.registry.notify(stream_id, tail)
        return tail

    def __enter__(self) -> "StreamWatcher":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
