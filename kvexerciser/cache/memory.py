"""
In-Memory Cache Backend

An in-process stand-in for a remote cache service. MemoryStore keeps the
data with TTL expiration and LRU eviction; MemoryCacheHandle wraps it in
the CacheHandle capability and raises change notifications.

Useful for dry runs of every exerciser workload without a server, and as
the backend for the test suite.
"""

import logging
import threading
import time
from collections import OrderedDict
from typing import Callable, Any, Optional, Tuple

from ..config.settings import settings
from ..errors import CacheFault, DuplicateKeyError, NotFoundError
from .base import CacheHandle, ConnectionOptions, EventKind

logger = logging.getLogger(__name__)

KeyCallback = Callable[[str], None]


class MemoryStore:
    """
    Key-value store with TTL and LRU eviction support.

    Internal Storage:
        Uses OrderedDict for O(1) operations with LRU ordering.
        Format: key -> (value, expiration_timestamp)
        expiration_timestamp = 0 means no expiration

    Expired keys are removed lazily when touched, or eagerly by
    cleanup_expired(). Each removal is reported through on_expire; each
    LRU eviction through on_evict.

    Operations are not synchronised internally; callers sharing a store
    across threads hold ``lock`` around each call.

    Attributes:
        max_size: Maximum number of keys allowed in the store
    """

    def __init__(
            self,
            max_size: int = None,
            clock: Callable[[], float] = time.time,
            on_expire: Optional[KeyCallback] = None,
            on_evict: Optional[KeyCallback] = None,
    ):
        """
        Initialize the store.

        Args:
            max_size: Maximum number of keys (default from settings.MEMORY_MAX_KEYS)
            clock: Returns the current time in seconds
            on_expire: Called with each key removed because its TTL elapsed
            on_evict: Called with each key evicted to make room
        """
        self.max_size = max_size if max_size is not None else settings.MEMORY_MAX_KEYS
        if self.max_size <= 0:
            raise ValueError("max_size must be positive")
        self._clock = clock
        self.on_expire = on_expire
        self.on_evict = on_evict
        self._store: "OrderedDict[str, Tuple[str, float]]" = OrderedDict()
        self.lock = threading.RLock()

    def _expired(self, expires_at: float) -> bool:
        return bool(expires_at) and expires_at <= self._clock()

    def _drop_if_expired(self, key: str) -> bool:
        """Remove key if it has expired. Returns True when it was removed."""
        entry = self._store.get(key)
        if entry is None or not self._expired(entry[1]):
            return False
        del self._store[key]
        if self.on_expire is not None:
            self.on_expire(key)
        return True

    def put(self, key: str, value: str, ttl: int = 0) -> bool:
        """
        Insert or update a key-value pair.

        Args:
            key: The key to store
            value: The value to associate with the key
            ttl: Time-to-live in seconds (0 = no expiration)

        Returns:
            True if the key was newly inserted, False if an existing key was replaced
        """
        self._drop_if_expired(key)
        expires_at = self._clock() + ttl if ttl and ttl > 0 else 0

        if key in self._store:
            self._store[key] = (value, expires_at)
            self._store.move_to_end(key)
            return False

        if len(self._store) >= self.max_size:
            evicted, _ = self._store.popitem(last=False)
            if self.on_evict is not None:
                self.on_evict(evicted)

        self._store[key] = (value, expires_at)
        return True

    def replace(self, key: str, value: str) -> bool:
        """
        Replace the value of a live key, keeping its expiration time.

        Returns:
            True if the key existed and was replaced, False otherwise
        """
        if key not in self._store or self._drop_if_expired(key):
            return False
        _, expires_at = self._store[key]
        self._store[key] = (value, expires_at)
        self._store.move_to_end(key)
        return True

    def get(self, key: str) -> Optional[str]:
        """
        Retrieve the value for a given key.

        Returns:
            The value if found and not expired, None otherwise
        """
        if key not in self._store or self._drop_if_expired(key):
            return None
        self._store.move_to_end(key)
        return self._store[key][0]

    def delete(self, key: str) -> bool:
        """
        Delete a key-value pair.

        Returns:
            True if key was deleted, False if key didn't exist or had expired
        """
        if key not in self._store or self._drop_if_expired(key):
            return False
        del self._store[key]
        return True

    def exists(self, key: str) -> bool:
        """Check if a key exists and is not expired."""
        return key in self._store and not self._drop_if_expired(key)

    def cleanup_expired(self) -> int:
        """
        Remove all expired keys from the store (active expiration).

        Returns:
            Number of keys removed
        """
        expired = [k for k, (_, exp) in self._store.items() if self._expired(exp)]
        for key in expired:
            self._drop_if_expired(key)
        return len(expired)


class MemoryCacheHandle(CacheHandle):
    """
    CacheHandle backed by a private MemoryStore.

    Several handles may share one store to simulate multiple clients
    connected to the same service. Notifications are raised by the handle
    that performed the operation; expirations and evictions are raised by
    the handle whose call discovered them.

    Usage:
        handle = MemoryCacheHandle()
        handle.add("product:1", "widget", ttl=30)
        handle.get("product:1")  # "widget"
    """

    def __init__(
            self,
            options: Optional[ConnectionOptions] = None,
            name: str = "memory",
            store: Optional[MemoryStore] = None,
            max_size: int = None,
            clock: Callable[[], float] = time.time,
    ):
        super().__init__(options, name=name)
        if store is None:
            store = MemoryStore(max_size=max_size, clock=clock)
        self.store = store
        self._closed = False

    def _check_open(self, key: str) -> None:
        if self._closed:
            raise CacheFault("handle is closed", key=key)

    def _run(self, key: str, operation: Callable[[], Any]) -> Any:
        """Run a store operation, reporting expirations and evictions it triggers."""
        expired = []
        evicted = []
        with self.store.lock:
            self._check_open(key)
            saved = self.store.on_expire, self.store.on_evict
            self.store.on_expire = expired.append
            self.store.on_evict = evicted.append
            try:
                result = operation()
            finally:
                self.store.on_expire, self.store.on_evict = saved
        for gone in expired:
            self._emit(EventKind.EXPIRED, gone)
        for gone in evicted:
            self._emit(EventKind.EVICTED, gone)
        return result

    def add(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        def operation():
            if self.store.exists(key):
                raise DuplicateKeyError(key)
            self.store.put(key, value, ttl=ttl or 0)

        self._run(key, operation)
        self._emit(EventKind.ADDED, key)

    def get(self, key: str) -> Optional[str]:
        return self._run(key, lambda: self.store.get(key))

    def update(self, key: str, value: str) -> None:
        if not self._run(key, lambda: self.store.replace(key, value)):
            raise NotFoundError(key)
        self._emit(EventKind.UPDATED, key)

    def remove(self, key: str) -> None:
        if not self._run(key, lambda: self.store.delete(key)):
            raise NotFoundError(key)
        self._emit(EventKind.REMOVED, key)

    def sweep_expired(self) -> int:
        """Actively expire every key whose TTL has elapsed."""
        return self._run("", self.store.cleanup_expired)

    @property
    def is_connected(self) -> bool:
        return not self._closed

    def _close_connection(self) -> None:
        with self.store.lock:
            if not self._closed:
                logger.debug(f"Closing in-memory handle {self.name}")
            self._closed = True
