"""Tests for notification channels and the subscriber registry."""

import threading
import time

from claudestreams.storage.subscription import NotificationChannel, SubscriberRegistry


class TestNotificationChannel:
    """Test single-slot channel semantics."""

    def test_offer_and_get(self):
        """Test delivering one notification."""
        channel = NotificationChannel("s")

        assert channel.offer("00000000000000000010")
        assert channel.get(timeout=1.0) == "00000000000000000010"

    def test_offer_drops_when_full(self):
        """Test that a second offer is dropped while the slot is full."""
        channel = NotificationChannel("s")

        assert channel.offer("00000000000000000010")
        assert not channel.offer("00000000000000000020")

        assert channel.get(timeout=1.0) == "00000000000000000010"
        assert channel.get(timeout=0.01) is None

    def test_get_times_out(self):
        """Test that get returns None when nothing arrives."""
        channel = NotificationChannel("s")

        assert channel.get(timeout=0.01) is None
        assert not channel.closed

    def test_close_is_idempotent(self):
        """Test that only the first close reports closing."""
        channel = NotificationChannel("s")

        assert channel.close()
        assert not channel.close()
        assert channel.closed

    def test_closed_channel_rejects_offers(self):
        """Test that offers after close are dropped."""
        channel = NotificationChannel("s")
        channel.offer("00000000000000000010")
        channel.close()

        assert not channel.offer("00000000000000000020")
        assert channel.get(timeout=0.01) is None
        assert channel.get(timeout=0.01) is None

    def test_close_wakes_blocked_getter(self):
        """Test that a waiting get returns once the channel closes."""
        channel = NotificationChannel("s")
        results = []

        t = threading.Thread(target=lambda: results.append(channel.get()))
        t.start()
        time.sleep(0.05)
        channel.close()
        t.join(timeout=2.0)

        assert not t.is_alive()
        assert results == [None]

    def test_iteration_ends_on_close(self):
        """Test iterating until the channel is closed."""
        channel = NotificationChannel("s")
        received = []

        def consume():
            for offset in channel:
                received.append(offset)

        t = threading.Thread(target=consume)
        t.start()
        channel.offer("00000000000000000001")
        deadline = time.monotonic() + 2.0
        while not received and time.monotonic() < deadline:
            time.sleep(0.01)
        channel.close()
        t.join(timeout=2.0)

        assert received == ["00000000000000000001"]

    def test_close_races_with_offers(self):
        """Test that concurrent offers and close never raise."""
        channel = NotificationChannel("s")
        errors = []

        def offerer():
            try:
                for i in range(1000):
                    channel.offer(str(i))
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=offerer) for _ in range(4)]
        for t in threads:
            t.start()
        channel.close()
        for t in threads:
            t.join()

        assert errors == []
        assert channel.get(timeout=0.01) is None


class TestSubscriberRegistry:
    """Test registry fan-out."""

    def test_notify_all_subscribers(self):
        """Test that every subscriber of a stream is notified."""
        registry = SubscriberRegistry()
        channels = [NotificationChannel("s") for _ in range(3)]
        for channel in channels:
            registry.add("s", channel)

        delivered = registry.notify("s", "00000000000000000005")

        assert delivered == 3
        for channel in channels:
            assert channel.get(timeout=1.0) == "00000000000000000005"

    def test_notify_only_matching_stream(self):
        """Test that other streams' subscribers are not notified."""
        registry = SubscriberRegistry()
        mine = NotificationChannel("a")
        other = NotificationChannel("b")
        registry.add("a", mine)
        registry.add("b", other)

        registry.notify("a", "00000000000000000005")

        assert mine.get(timeout=1.0) == "00000000000000000005"
        assert other.get(timeout=0.01) is None

    def test_slow_subscriber_does_not_block(self):
        """Test that a full subscriber is skipped, not waited on."""
        registry = SubscriberRegistry()
        slow = NotificationChannel("s")
        fast = NotificationChannel("s")
        registry.add("s", slow)
        registry.add("s", fast)
        registry.notify("s", "00000000000000000001")
        fast.get(timeout=1.0)

        delivered = registry.notify("s", "00000000000000000002")

        assert delivered == 1
        assert slow.get(timeout=1.0) == "00000000000000000001"
        assert fast.get(timeout=1.0) == "00000000000000000002"

    def test_remove(self):
        """Test unregistering a channel."""
        registry = SubscriberRegistry()
        channel = NotificationChannel("s")
        registry.add("s", channel)

        assert registry.remove("s", channel)
        assert not registry.remove("s", channel)
        assert registry.count("s") == 0
        assert registry.notify("s", "00000000000000000001") == 0

    def test_count(self):
        """Test per-stream and total counts."""
        registry = SubscriberRegistry()
        registry.add("a", NotificationChannel("a"))
        registry.add("a", NotificationChannel("a"))
        registry.add("b", NotificationChannel("b"))

        assert registry.count("a") == 2
        assert registry.count("missing") == 0
        assert registry.count() == 3

    def test_close_all(self):
        """Test closing every registered channel."""
        registry = SubscriberRegistry()
        channels = [NotificationChannel("a"), NotificationChannel("b")]
        registry.add("a", channels[0])
        registry.add("b", channels[1])

        assert registry.close_all() == 2
        assert all(channel.closed for channel in channels)
        assert registry.count() == 0
