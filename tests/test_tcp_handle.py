"""
Tests for TcpCacheHandle

End-to-end tests against a protocol server running in a background thread.

Run with: python -m pytest tests/test_tcp_handle.py -v
"""

import threading

import pytest

from kvexerciser.cache.base import ConnectionOptions, EventKind
from kvexerciser.cache.factory import connect
from kvexerciser.cache.tcp import TcpCacheHandle
from kvexerciser.errors import (
    CacheConnectionError,
    CacheFault,
    DuplicateKeyError,
    NotFoundError,
)
from tests.conftest import find_free_port


@pytest.mark.integration
class TestTcpHandleOperations:
    """Test CRUD through the line protocol."""

    def test_connect_failure(self):
        """Test an unreachable server raises CacheConnectionError."""
        options = ConnectionOptions(host="127.0.0.1", port=find_free_port(), timeout=0.5)
        with pytest.raises(CacheConnectionError):
            TcpCacheHandle(options).connect()

    def test_crud_round(self, server_options):
        """Test add, get, update and remove against the server."""
        with connect(server_options, backend="tcp") as handle:
            handle.add("user:1", "alice")
            assert handle.get("user:1") == "alice"
            handle.update("user:1", "alice_updated")
            assert handle.get("user:1") == "alice_updated"
            handle.remove("user:1")
            assert handle.get("user:1") is None

    def test_add_duplicate(self, server_options):
        """Test add() on an existing key raises DuplicateKeyError."""
        with connect(server_options, backend="tcp") as handle:
            handle.add("key", "value")
            with pytest.raises(DuplicateKeyError):
                handle.add("key", "other")

    def test_update_and_remove_missing(self, server_options):
        """Test update()/remove() on absent keys raise NotFoundError."""
        with connect(server_options, backend="tcp") as handle:
            with pytest.raises(NotFoundError):
                handle.update("missing", "value")
            with pytest.raises(NotFoundError):
                handle.remove("missing")

    def test_ttl_is_sent(self, server_options, line_server):
        """Test add() with a TTL issues PUT with the TTL field."""
        with connect(server_options, backend="tcp") as handle:
            handle.add("temp", "value", ttl=30)
        assert "PUT temp value 30" in line_server.requests

    def test_invalid_value_is_a_fault(self, server_options, line_server):
        """Test values with whitespace fail locally without reaching the server."""
        with connect(server_options, backend="tcp") as handle:
            handle.add("key", "value")
            before = len(line_server.requests)
            with pytest.raises(CacheFault):
                handle.update("key", "two words")
            # Only the EXISTS probe went out
            assert len(line_server.requests) == before + 1

    def test_close_is_idempotent(self, server_options):
        """Test close() sends QUIT once and tolerates repeats."""
        handle = connect(server_options, backend="tcp")
        handle.close()
        handle.close()
        assert handle.is_connected is False
        with pytest.raises(CacheFault):
            handle.get("key")

    def test_concurrent_use(self, server_options):
        """Test one handle serves several threads without mixing replies."""
        errors = []

        with connect(server_options, backend="tcp") as handle:
            def worker(t):
                for i in range(20):
                    key = f"t{t}:k{i}"
                    handle.add(key, f"v{t}-{i}")
                    if handle.get(key) != f"v{t}-{i}":
                        errors.append(key)

            threads = [threading.Thread(target=worker, args=(t,)) for t in range(4)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        assert errors == []


@pytest.mark.integration
class TestTcpHandleEvents:
    """Test client-side notifications."""

    def test_own_writes_raise_events(self, server_options):
        """Test the handle echoes its own successful writes."""
        events = []
        handle = connect(server_options, backend="tcp")
        for kind in EventKind:
            handle.add_listener(kind, lambda k, key: events.append((k, key)))
        handle.subscribe_events(list(EventKind))

        handle.add("key", "v1")
        handle.update("key", "v2")
        handle.remove("key")
        handle.close()

        assert events == [
            (EventKind.ADDED, "key"),
            (EventKind.UPDATED, "key"),
            (EventKind.REMOVED, "key"),
        ]

    def test_failed_write_raises_no_event(self, server_options):
        """Test a rejected add produces no notification."""
        events = []
        handle = connect(server_options, backend="tcp")
        handle.add("key", "v1")
        handle.add_listener(EventKind.ADDED, lambda k, key: events.append(key))
        handle.subscribe_events([EventKind.ADDED])

        with pytest.raises(DuplicateKeyError):
            handle.add("key", "v2")
        handle.close()

        assert events == []
