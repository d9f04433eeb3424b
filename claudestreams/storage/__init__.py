"""
Stream storage over a Claude data directory.

This package provides:
- ClaudeStorage, the read-only storage facade
- StreamWatcher, which keeps the index current and wakes subscribers
- Single-slot notification channels and their registry
"""

from claudestreams.storage.claude_storage import ClaudeStorage
from claudestreams.storage.subscription import NotificationChannel, SubscriberRegistry
from claudestreams.storage.watcher import StreamWatcher

__all__ = [
    "ClaudeStorage",
    "NotificationChannel",
    "SubscriberRegistry",
    "StreamWatcher",
]
