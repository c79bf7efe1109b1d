"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import asyncio
import socket
import threading
from contextlib import closing
from typing import Generator, List, Optional

import pytest

from kvexerciser.cache.base import CacheHandle, ConnectionOptions, EventKind
from kvexerciser.cache.memory import MemoryCacheHandle, MemoryStore
from kvexerciser.clients.relay import Notification
from kvexerciser.errors import CacheFault


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# Clock Fixtures
# ============================================================================

class FakeClock:
    """Manually advanced clock; sleep() moves time forward instantly."""

    def __init__(self, start: float = 1_000.0):
        self.now = start
        self.sleeps: List[float] = []

    def time(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ============================================================================
# Cache Handle Fixtures
# ============================================================================

@pytest.fixture
def store() -> MemoryStore:
    """Create a fresh MemoryStore with capacity for 100 keys."""
    return MemoryStore(max_size=100)


@pytest.fixture
def handle() -> Generator[MemoryCacheHandle, None, None]:
    """An in-memory cache handle with a large capacity."""
    h = MemoryCacheHandle(max_size=100_000)
    yield h
    h.close()


@pytest.fixture
def clocked_handle(clock: FakeClock) -> Generator[MemoryCacheHandle, None, None]:
    """An in-memory cache handle whose TTLs follow the fake clock."""
    h = MemoryCacheHandle(clock=clock.time)
    yield h
    h.close()


class RecordingHandle(MemoryCacheHandle):
    """Memory handle that records every data operation in call order."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.calls: List[tuple] = []
        self._calls_lock = threading.Lock()

    def _record(self, op: str, key: str) -> None:
        with self._calls_lock:
            self.calls.append((op, key))

    def add(self, key, value, ttl=None):
        self._record("add", key)
        super().add(key, value, ttl=ttl)

    def get(self, key):
        self._record("get", key)
        return super().get(key)

    def update(self, key, value):
        self._record("update", key)
        super().update(key, value)

    def remove(self, key):
        self._record("remove", key)
        super().remove(key)


@pytest.fixture
def recording_handle() -> Generator[RecordingHandle, None, None]:
    h = RecordingHandle(max_size=100_000)
    yield h
    h.close()


class FaultyHandle(MemoryCacheHandle):
    """Memory handle whose operations fail for every `fail_every`-th call."""

    def __init__(self, fail_every: int = 2, **kwargs):
        super().__init__(**kwargs)
        self.fail_every = fail_every
        self._count = 0
        self._count_lock = threading.Lock()

    def _maybe_fail(self, key: str) -> None:
        with self._count_lock:
            self._count += 1
            fail = self._count % self.fail_every == 0
        if fail:
            raise CacheFault("injected fault", key=key)

    def add(self, key, value, ttl=None):
        self._maybe_fail(key)
        super().add(key, value, ttl=ttl)

    def get(self, key):
        self._maybe_fail(key)
        return super().get(key)

    def update(self, key, value):
        self._maybe_fail(key)
        super().update(key, value)

    def remove(self, key):
        self._maybe_fail(key)
        super().remove(key)


class BrokenHandle(MemoryCacheHandle):
    """Memory handle on which every operation, including close, fails."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.close_calls = 0

    def add(self, key, value, ttl=None):
        raise CacheFault("service unavailable", key=key)

    def get(self, key):
        raise CacheFault("service unavailable", key=key)

    def update(self, key, value):
        raise CacheFault("service unavailable", key=key)

    def remove(self, key):
        raise CacheFault("service unavailable", key=key)

    def close(self):
        self.close_calls += 1
        raise CacheFault("close failed")


class NotificationCollector:
    """Sink that stores forwarded notifications."""

    def __init__(self):
        self.received: List[Notification] = []
        self._lock = threading.Lock()

    def __call__(self, notification: Notification) -> None:
        with self._lock:
            self.received.append(notification)

    def kinds(self) -> List[EventKind]:
        return [n.kind for n in self.received]


@pytest.fixture
def collector() -> NotificationCollector:
    return NotificationCollector()


# ============================================================================
# Line Protocol Server Fixture
# ============================================================================

class LineProtocolServer:
    """
    Minimal KV-Cache protocol server for exercising TcpCacheHandle.

    Runs an asyncio server on its own event loop in a background thread,
    backed by a MemoryStore.
    """

    def __init__(self, host: str, port: int):
        self.host = host
        self.port = port
        self.store = MemoryStore(max_size=10_000)
        self.requests: List[str] = []
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._server: Optional[asyncio.AbstractServer] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()

    def _execute(self, raw: str) -> str:
        parts = raw.split()
        if not parts:
            return "ERROR invalid command"
        name, args = parts[0].upper(), parts[1:]
        if name == "PUT" and len(args) in (2, 3):
            ttl = int(args[2]) if len(args) == 3 else 0
            self.store.put(args[0], args[1], ttl=ttl)
            return "OK stored"
        if name == "GET" and len(args) == 1:
            value = self.store.get(args[0])
            return "ERROR key not found" if value is None else f"OK {value}"
        if name == "DELETE" and len(args) == 1:
            return "OK deleted" if self.store.delete(args[0]) else "ERROR key not found"
        if name == "EXISTS" and len(args) == 1:
            return "OK 1" if self.store.exists(args[0]) else "OK 0"
        return "ERROR invalid command"

    async def _handle_client(self, reader, writer) -> None:
        try:
            while True:
                data = await reader.readline()
                if not data:
                    break
                raw = data.decode().rstrip('\r\n')
                self.requests.append(raw)
                if raw.strip().upper() == "QUIT":
                    break
                writer.write(f"{self._execute(raw)}\n".encode())
                await writer.drain()
        except ConnectionResetError:
            pass
        finally:
            writer.close()

    def _serve(self) -> None:
        self._loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self._loop)
        self._server = self._loop.run_until_complete(
            asyncio.start_server(self._handle_client, self.host, self.port)
        )
        self._ready.set()
        self._loop.run_forever()
        self._server.close()
        self._loop.run_until_complete(self._server.wait_closed())
        self._loop.close()

    def start(self) -> None:
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()
        self._ready.wait(timeout=5)

    def stop(self) -> None:
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._loop.stop)
        if self._thread is not None:
            self._thread.join(timeout=5)


@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


@pytest.fixture
def line_server(server_port: int) -> Generator[LineProtocolServer, None, None]:
    """Start a protocol server on a free port for the duration of a test."""
    srv = LineProtocolServer('127.0.0.1', server_port)
    srv.start()
    yield srv
    srv.stop()


@pytest.fixture
def server_options(line_server: LineProtocolServer) -> ConnectionOptions:
    return ConnectionOptions(host=line_server.host, port=line_server.port, timeout=2.0)


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
