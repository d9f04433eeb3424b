"""
Live-update channels for stream subscribers.

A notification only means "the stream grew, read again": it carries the
tail offset seen by the watcher, but subscribers are expected to catch up
with a normal read. Each channel therefore holds at most one pending
notification and new ones are dropped while it is full, so a slow
subscriber can never hold up the watcher or grow memory without bound.
"""

import queue
import threading
from typing import Dict, Iterator, List, Optional

from claudestreams.core.rwlock import ReadWriteLock
from claudestreams.utils.logging import get_logger

logger = get_logger(__name__)

_CLOSED = object()


class NotificationChannel:
    """
    Single-slot, drop-on-full notification channel.

    Attributes:
        stream_id: Stream the channel is subscribed to
    """

    def __init__(self, stream_id: str):
        self.stream_id = stream_id

        self._queue: queue.Queue = queue.Queue(maxsize=1)
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def offer(self, offset: str) -> bool:
        """
        Deliver a tail offset without blocking.

        Args:
            offset: New tail offset of the stream

        Returns:
            True if delivered, False if the slot was full or the channel
            is closed
        """
        with self._lock:
            if self._closed:
                return False
            try:
                self._queue.put_nowait(offset)
            except queue.Full:
                return False
            return True

    def get(self, timeout: Optional[float] = None) -> Optional[str]:
        """
        Wait for the next notification.

        Args:
            timeout: Seconds to wait; None waits until a notification
                arrives or the channel is closed

        Returns:
            The notified tail offset, or None on timeout or once closed
        """
        try:
            item = self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

        if item is _CLOSED:
            # Leave the marker for any other waiter
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def close(self) -> bool:
        """
        Close the channel, discarding any pending notification.

        Returns:
            True if this call closed the channel, False if it was already
            closed
        """
        with self._lock:
            if self._closed:
                return False
            self._closed = True
            try:
                self._queue.get_nowait()
            except queue.Empty:
                pass
            self._queue.put_nowait(_CLOSED)
        return True

    def __iter__(self) -> Iterator[str]:
        while True:
            item = self.get()
            if item is None:
                return
            yield item

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"NotificationChannel(stream_id={self.stream_id!r}, {state})"


class SubscriberRegistry:
    """
    Registry of notification channels per stream.

    Shares its lock with the stream index. Notification only holds the
    lock long enough to copy the subscriber list; delivery happens after.
    """

    def __init__(self, lock: Optional[ReadWriteLock] = None):
        self._lock = lock or ReadWriteLock()
        self._subscribers: Dict[str, List[NotificationChannel]] = {}

    def add(self, stream_id: str, channel: NotificationChannel) -> None:
        with self._lock.write_locked():
            self._subscribers.setdefault(stream_id, []).append(channel)

        logger.debug("Added subscriber", stream_id=stream_id)

    def remove(self, stream_id: str, channel: NotificationChannel) -> bool:
        """
        Unregister a channel.

        Args:
            stream_id: Stream the channel was registered for
            channel: Channel to remove

        Returns:
            True if the channel was registered
        """
        with self._lock.write_locked():
            channels = self._subscribers.get(stream_id)
            if not channels or channel not in channels:
                return False
            channels.remove(channel)
            if not channels:
                del self._subscribers[stream_id]

        logger.debug("Removed subscriber", stream_id=stream_id)
        return True

    def notify(self, stream_id: str, offset: str) -> int:
        """
        Offer a tail offset to every subscriber of a stream.

        Args:
            stream_id: Stream that changed
            offset: New tail offset

        Returns:
            Number of channels that accepted the notification
        """
        with self._lock.read_locked():
            channels = list(self._subscribers.get(stream_id, ()))

        delivered = 0
        for channel in channels:
            if channel.offer(offset):
                delivered += 1

        if channels:
            logger.debug(
                "Notified subscribers",
                stream_id=stream_id,
                offset=offset,
                subscribers=len(channels),
                delivered=delivered,
            )
        return delivered

    def count(self, stream_id: Optional[str] = None) -> int:
        """Number of subscribers for one stream, or for all streams."""
        with self._lock.read_locked():
            if stream_id is not None:
                return len(self._subscribers.get(stream_id, ()))
            return sum(len(channels) for channels in self._subscribers.values())

    def close_all(self) -> int:
        """Unregister and close every channel; returns how many were closed."""
        with self._lock.write_locked():
            channels = [c for subs in self._subscribers.values() for c in subs]
            self._subscribers.clear()

        closed = sum(1 for channel in channels if channel.close())
        if closed:
            logger.info("Closed subscriber channels", count=closed)
        return closed
