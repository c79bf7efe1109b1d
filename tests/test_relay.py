"""
Tests for the Event Relay

Run with: python -m pytest tests/test_relay.py -v
"""

from kvexerciser.cache.base import EventKind
from kvexerciser.cache.memory import MemoryCacheHandle
from kvexerciser.clients.relay import EventBinding, EventRelay, Notification


class TestEventRelay:
    """Test forwarding of notifications to the sink."""

    def test_only_subscribed_kind_is_forwarded(self, collector):
        """Test subscribing to ADDED only forwards exactly the add."""
        handle = MemoryCacheHandle()
        EventRelay(collector).attach(handle, "Default")
        handle.subscribe_events([EventKind.ADDED])

        handle.add("key", "v1")
        handle.update("key", "v2")
        handle.remove("key")
        handle.close()

        assert collector.received == [Notification(EventKind.ADDED, "key", "Default")]

    def test_notifications_carry_client_name(self, collector):
        """Test each handle's notifications are tagged with its client."""
        relay = EventRelay(collector)
        first, second = MemoryCacheHandle(), MemoryCacheHandle()
        relay.attach(first, "first")
        relay.attach(second, "second")
        for handle in (first, second):
            handle.subscribe_events(list(EventKind))

        first.add("a", "1")
        second.add("b", "2")
        first.close()
        second.close()

        assert sorted((n.client_name, n.key) for n in collector.received) == [
            ("first", "a"),
            ("second", "b"),
        ]

    def test_attach_registers_one_binding_per_kind(self, collector):
        """Test attach() returns a binding record for each kind."""
        bindings = EventRelay(collector).attach(MemoryCacheHandle(), "c")
        assert {b.kind for b in bindings} == set(EventKind)
        assert all(b.client_name == "c" for b in bindings)

    def test_detach_stops_forwarding(self, collector):
        """Test detached bindings no longer forward."""
        handle = MemoryCacheHandle()
        relay = EventRelay(collector)
        bindings = relay.attach(handle, "c")
        handle.subscribe_events(list(EventKind))
        relay.detach(handle, bindings)

        handle.add("key", "value")
        handle.close()

        assert collector.received == []

    def test_binding_forwards_directly(self, collector):
        """Test a binding builds the notification from its record."""
        binding = EventBinding("client", EventKind.EXPIRED, collector)
        binding(EventKind.EXPIRED, "k")
        assert collector.received == [Notification(EventKind.EXPIRED, "k", "client")]
