"""
Stream index mapping stream ids to files on disk.

Two kinds of stream live in a Claude data directory:
- A reserved id (``_history`` by default) for the single well-known
  history file at the top of the data directory.
- Every other id is a conversation, stored as ``<id>.jsonl`` somewhere
  under the projects tree.

The index is populated by a full scan at startup and kept current by the
watcher. Lookups that miss fall back to searching the tree, because the
live index is never guaranteed to be complete (a file may appear before
the watcher has seen it).
"""

import glob
import os
from typing import Dict, List, Optional

from claudestreams.core.errors import StreamNotFoundError
from claudestreams.core.rwlock import ReadWriteLock
from claudestreams.utils.logging import get_logger

logger = get_logger(__name__)


def normalize_stream_id(stream_id: str) -> str:
    """Strip the single leading slash that URL-derived ids carry."""
    return stream_id[1:] if stream_id.startswith("/") else stream_id


class StreamIndex:
    """
    Thread-safe stream id to path index.

    The map is only touched under the shared lock, and only for the map
    operation itself; directory walks and globbing run unlocked.

    Attributes:
        projects_dir: Root of the searchable conversation tree
        history_path: Absolute path of the well-known history file
        history_stream_id: Reserved id for the history file
        extension: File extension of stream files, including the dot
    """

    def __init__(
        self,
        projects_dir: str,
        history_path: str,
        history_stream_id: str = "_history",
        extension: str = ".jsonl",
        lock: Optional[ReadWriteLock] = None,
    ):
        """
        Initialize the index and register the history stream.

        Args:
            projects_dir: Root of the conversation tree
            history_path: Path of the well-known history file
            history_stream_id: Reserved id for the history file
            extension: Stream file extension
            lock: Lock shared with the subscriber registry
        """
        self.projects_dir = os.path.abspath(projects_dir)
        self.history_path = os.path.abspath(history_path)
        self.history_stream_id = history_stream_id
        self.extension = extension

        self._lock = lock or ReadWriteLock()
        self._entries: Dict[str, str] = {history_stream_id: self.history_path}

    def lookup(self, stream_id: str) -> Optional[str]:
        """Return the cached path for a stream id without searching."""
        with self._lock.read_locked():
            return self._entries.get(normalize_stream_id(stream_id))

    def upsert(self, stream_id: str, path: str) -> None:
        """
        Insert or replace the path for a stream id.

        The most recent location wins; entries are never removed.

        Args:
            stream_id: Stream id
            path: File path backing the stream
        """
        path = os.path.abspath(path)
        with self._lock.write_locked():
            previous = self._entries.get(stream_id)
            self._entries[stream_id] = path

        if previous is not None and previous != path:
            logger.info(
                "Stream moved",
                stream_id=stream_id,
                old_path=previous,
                new_path=path,
            )

    def resolve(self, stream_id: str) -> str:
        """
        Resolve a stream id to its file path.

        Tries, in order: the in-memory map, a one-level glob under the
        projects tree, then a full recursive walk. Hits from either search
        are cached.

        Args:
            stream_id: Stream id, optionally with a leading slash

        Returns:
            Absolute path of the backing file

        Raises:
            StreamNotFoundError: If no file backs the id
        """
        stream_id = normalize_stream_id(stream_id)

        path = self.lookup(stream_id)
        if path is not None:
            return path

        if not self._is_searchable(stream_id):
            raise StreamNotFoundError(stream_id)

        path = self._find_shallow(stream_id)
        if path is None:
            path = self._find_deep(stream_id)

        if path is None:
            raise StreamNotFoundError(stream_id)

        self.upsert(stream_id, path)
        logger.debug("Resolved stream by search", stream_id=stream_id, path=path)
        return path

    def _is_searchable(self, stream_id: str) -> bool:
        if not stream_id or stream_id in (".", ".."):
            return False
        separators = {"/", os.sep, os.altsep or os.sep, "\0"}
        return not any(sep in stream_id for sep in separators)

    def _find_shallow(self, stream_id: str) -> Optional[str]:
        pattern = os.path.join(
            glob.escape(self.projects_dir),
            "*",
            glob.escape(stream_id + self.extension),
        )
        matches = sorted(glob.glob(pattern))
        for match in matches:
            if os.path.isfile(match):
                return match
        return None

    def _find_deep(self, stream_id: str) -> Optional[str]:
        # First match in walk order wins; duplicates elsewhere are not reported
        filename = stream_id + self.extension
        for dirpath, _dirnames, filenames in os.walk(self.projects_dir):
            if filename in filenames:
                return os.path.join(dirpath, filename)
        return None

    def scan(self, directory: Optional[str] = None) -> int:
        """
        Register every stream file below a directory.

        Unreadable directories are skipped; indexing is best effort.

        Args:
            directory: Directory to walk (default: the projects tree)

        Returns:
            Number of stream files registered
        """
        root = os.path.abspath(directory or self.projects_dir)
        found: Dict[str, str] = {}

        for dirpath, _dirnames, filenames in os.walk(root):
            for filename in filenames:
                if filename.endswith(self.extension):
                    stream_id = filename[: -len(self.extension)]
                    if stream_id and stream_id != self.history_stream_id:
                        found[stream_id] = os.path.join(dirpath, filename)

        if found:
            with self._lock.write_locked():
                self._entries.update(found)

        logger.info("Indexed stream files", directory=root, count=len(found))
        return len(found)

    def stream_id_for_path(self, path: str) -> Optional[str]:
        """
        Derive the stream id a file path belongs to.

        Args:
            path: File path reported by the filesystem

        Returns:
            The reserved id for the history file, the file name without
            extension for other stream files, or None if the path is not a
            stream file
        """
        path = os.path.abspath(path)
        if path == self.history_path:
            return self.history_stream_id

        if os.path.commonpath([path, self.projects_dir]) != self.projects_dir:
            return None

        filename = os.path.basename(path)
        if not filename.endswith(self.extension):
            return None
        stream_id = filename[: -len(self.extension)]
        if not stream_id or stream_id == self.history_stream_id:
            return None
        return stream_id

    def stream_ids(self) -> List[str]:
        """Return a sorted snapshot of the indexed stream ids."""
        with self._lock.read_locked():
            return sorted(self._entries)

    def __contains__(self, stream_id: object) -> bool:
        if not isinstance(stream_id, str):
            return False
        return self.lookup(stream_id) is not None

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._entries)
