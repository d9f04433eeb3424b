"""Tests for the filesystem watcher."""

import tempfile
import time
from pathlib import Path

import pytest
from watchdog.events import (
    DirCreatedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from claudestreams.core.index import StreamIndex
from claudestreams.core.offset import encode_offset
from claudestreams.core.rwlock import ReadWriteLock
from claudestreams.storage.subscription import NotificationChannel, SubscriberRegistry
from claudestreams.storage.watcher import StreamWatcher


def wait_for(channel: NotificationChannel, minimum: str, timeout: float = 5.0):
    """Collect notifications until one reaches the minimum offset."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        offset = channel.get(timeout=0.1)
        if offset is not None and offset >= minimum:
            return offset
    return None


class TestStreamWatcher:
    """Test event handling and live notification."""

    @pytest.fixture
    def claude_dir(self):
        """Create a temporary Claude directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "projects" / "proj").mkdir(parents=True)
            yield root

    @pytest.fixture
    def parts(self, claude_dir):
        """Create an index, registry and unstarted watcher."""
        lock = ReadWriteLock()
        index = StreamIndex(
            projects_dir=str(claude_dir / "projects"),
            history_path=str(claude_dir / "history.jsonl"),
            lock=lock,
        )
        registry = SubscriberRegistry(lock)
        watcher = StreamWatcher(
            index,
            registry,
            watch_dirs=[(str(claude_dir), False), (str(claude_dir / "projects"), True)],
        )
        yield index, registry, watcher
        watcher.stop()

    def test_handle_path_notifies_with_file_size(self, parts, claude_dir):
        """Test that a write delivers the new tail offset."""
        index, registry, watcher = parts
        path = claude_dir / "projects" / "proj" / "abc.jsonl"
        path.write_bytes(b'{"x":1}\n')
        channel = NotificationChannel("abc")
        registry.add("abc", channel)

        tail = watcher.handle_path(str(path))

        assert tail == encode_offset(8)
        assert channel.get(timeout=1.0) == encode_offset(8)
        assert index.lookup("abc") == str(path)

    def test_handle_path_history(self, parts, claude_dir):
        """Test that the history file maps to the reserved id."""
        index, registry, watcher = parts
        path = claude_dir / "history.jsonl"
        path.write_bytes(b"{}\n")
        channel = NotificationChannel("_history")
        registry.add("_history", channel)

        watcher.handle_path(str(path))

        assert channel.get(timeout=1.0) == encode_offset(3)
        assert index.stream_ids() == ["_history"]

    def test_handle_path_ignores_other_files(self, parts, claude_dir):
        """Test that non-stream files are ignored."""
        index, registry, watcher = parts
        path = claude_dir / "projects" / "proj" / "notes.txt"
        path.write_text("hello")

        assert watcher.handle_path(str(path)) is None
        assert index.stream_ids() == ["_history"]

    def test_handle_path_vanished_file(self, parts, claude_dir):
        """Test that a missing file produces no notification."""
        index, registry, watcher = parts
        channel = NotificationChannel("gone")
        registry.add("gone", channel)

        tail = watcher.handle_path(str(claude_dir / "projects" / "proj" / "gone.jsonl"))

        assert tail is None
        assert channel.get(timeout=0.01) is None

    def test_handle_event_moved_uses_destination(self, parts, claude_dir):
        """Test that a moved file is indexed at its new location."""
        index, registry, watcher = parts
        old = claude_dir / "projects" / "proj" / "abc.jsonl"
        new_dir = claude_dir / "projects" / "other"
        new_dir.mkdir()
        new = new_dir / "abc.jsonl"
        new.write_bytes(b"{}\n")
        index.upsert("abc", str(old))

        watcher.handle_event(FileMovedEvent(str(old), str(new)))

        assert index.lookup("abc") == str(new)

    def test_handle_event_created_and_modified(self, parts, claude_dir):
        """Test created and modified events both notify."""
        index, registry, watcher = parts
        path = claude_dir / "projects" / "proj" / "abc.jsonl"
        path.write_bytes(b"{}\n")
        channel = NotificationChannel("abc")
        registry.add("abc", channel)

        watcher.handle_event(FileCreatedEvent(str(path)))
        assert channel.get(timeout=1.0) == encode_offset(3)

        with path.open("ab") as f:
            f.write(b"{}\n")
        watcher.handle_event(FileModifiedEvent(str(path)))
        assert channel.get(timeout=1.0) == encode_offset(6)

    def test_handle_event_ignores_deletes_and_closes(self, parts, claude_dir):
        """Test that unrelated event types are skipped."""
        index, registry, watcher = parts
        path = claude_dir / "projects" / "proj" / "abc.jsonl"
        path.write_bytes(b"{}\n")

        watcher.handle_event(FileDeletedEvent(str(path)))
        watcher.handle_event(FileClosedEvent(str(path)))

        assert "abc" not in index

    def test_handle_event_new_directory_is_scanned(self, parts, claude_dir):
        """Test that files inside a newly created directory are indexed."""
        index, registry, watcher = parts
        new_dir = claude_dir / "projects" / "new" / "deep"
        new_dir.mkdir(parents=True)
        (new_dir / "abc.jsonl").write_bytes(b"{}\n")

        watcher.handle_event(DirCreatedEvent(str(claude_dir / "projects" / "new")))

        assert index.lookup("abc") == str(new_dir / "abc.jsonl")

    def test_live_append_notifies_subscriber(self, parts, claude_dir):
        """Test that appending to a watched file wakes a subscriber."""
        index, registry, watcher = parts
        path = claude_dir / "projects" / "proj" / "abc.jsonl"
        path.write_bytes(b'{"x":1}\n')
        channel = NotificationChannel("abc")
        registry.add("abc", channel)
        watcher.start()
        time.sleep(0.2)

        with path.open("ab") as f:
            f.write(b'{"x":2}\n')
        expected = encode_offset(path.stat().st_size)

        assert wait_for(channel, expected) == expected

    def test_live_new_subdirectory(self, parts, claude_dir):
        """Test that files in directories created after start are seen."""
        index, registry, watcher = parts
        watcher.start()
        time.sleep(0.2)

        new_dir = claude_dir / "projects" / "later" / "nested"
        new_dir.mkdir(parents=True)
        path = new_dir / "fresh.jsonl"
        path.write_bytes(b"{}\n")

        deadline = time.monotonic() + 5.0
        while index.lookup("fresh") is None and time.monotonic() < deadline:
            time.sleep(0.05)

        assert index.lookup("fresh") == str(path)

    def test_stop_is_idempotent(self, parts):
        """Test that stopping twice is harmless."""
        index, registry, watcher = parts
        watcher.start()
        assert watcher.running

        watcher.stop()
        watcher.stop()

        assert not watcher.running

    def test_missing_watch_directory_is_skipped(self, claude_dir):
        """Test that starting with a missing directory does not fail."""
        index = StreamIndex(
            projects_dir=str(claude_dir / "missing"),
            history_path=str(claude_dir / "history.jsonl"),
        )
        watcher = StreamWatcher(
            index,
            SubscriberRegistry(),
            watch_dirs=[(str(claude_dir / "missing"), True)],
        )

        watcher.start()
        try:
            assert watcher.running
        finally:
            watcher.stop()

    def test_live_projects_created_after_start(self):
        """Test that a projects tree created after start is watched."""
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            projects = root / "projects"
            index = StreamIndex(
                projects_dir=str(projects),
                history_path=str(root / "history.jsonl"),
            )
            registry = SubscriberRegistry()
            watcher = StreamWatcher(
                index,
                registry,
                watch_dirs=[(str(root), False), (str(projects), True)],
            )
            watcher.start()
            try:
                time.sleep(0.2)
                (projects / "proj").mkdir(parents=True)
                path = projects / "proj" / "abc.jsonl"
                path.write_bytes(b'{"x":1}\n')

                deadline = time.monotonic() + 5.0
                while index.lookup("abc") is None and time.monotonic() < deadline:
                    time.sleep(0.05)
                assert index.lookup("abc") == str(path)

                channel = NotificationChannel("abc")
                registry.add("abc", channel)
                time.sleep(0.2)
                with path.open("ab") as f:
                    f.write(b'{"x":2}\n')
                expected = encode_offset(path.stat().st_size)

                assert wait_for(channel, expected) == expected
            finally:
                watcher.stop()
