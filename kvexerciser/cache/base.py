"""
Cache Handle Capability

This module defines the surface every cache connection exposes to the
exerciser: synchronous CRUD, change-notification subscription and an
idempotent close. Concrete handles live in memory.py and tcp.py.

Notifications are delivered on a single dispatcher thread owned by the
handle, so listeners run asynchronously relative to the operation that
triggered them but always in the order the events were raised.
"""

import logging
import threading
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Set

from ..config.settings import settings

logger = logging.getLogger(__name__)


class EventKind(Enum):
    """Kinds of change notification a cache can raise."""
    ADDED = "added"
    UPDATED = "updated"
    REMOVED = "removed"
    EXPIRED = "expired"
    EVICTED = "evicted"


ALL_EVENT_KINDS = tuple(EventKind)

EventListener = Callable[[EventKind, str], None]


@dataclass(frozen=True)
class ConnectionOptions:
    """Where and how to reach a cache endpoint."""
    host: str = settings.HOST
    port: int = settings.PORT
    timeout: float = settings.TIMEOUT

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


class CacheHandle(ABC):
    """
    A live connection-like capability to one cache endpoint.

    Subclasses implement the data operations and call ``_emit()`` whenever
    the cache reports a change. Listeners are registered per event kind
    with ``add_listener()``; whether they are actually invoked is governed
    by ``subscribe_events()`` / ``unsubscribe_events()``.

    Attributes:
        options: ConnectionOptions the handle was created with
        name: Label used in logs (the registry keeps its own naming)
    """

    def __init__(self, options: Optional[ConnectionOptions] = None, name: str = ""):
        self.options = options if options is not None else ConnectionOptions()
        self.name = name
        self._listeners: Dict[EventKind, List[EventListener]] = {kind: [] for kind in EventKind}
        self._subscribed: Set[EventKind] = set()
        self._events_lock = threading.Lock()
        self._dispatcher: Optional[ThreadPoolExecutor] = None

    # ------------------------------------------------------------------
    # Data operations
    # ------------------------------------------------------------------

    @abstractmethod
    def add(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        """Insert a new key. Raises DuplicateKeyError if it already exists."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value for key, or None if absent."""

    @abstractmethod
    def update(self, key: str, value: str) -> None:
        """Replace the value of an existing key. Raises NotFoundError if absent."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key. Raises NotFoundError if absent."""

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """True until close() has been called or the link was lost."""

    @abstractmethod
    def _close_connection(self) -> None:
        """Release the underlying connection. Called at most once."""

    def close(self) -> None:
        """
        Close the handle. Safe to call any number of times.

        Pending notifications are delivered before the dispatcher stops.
        """
        self._close_connection()
        with self._events_lock:
            dispatcher, self._dispatcher = self._dispatcher, None
            self._subscribed.clear()
        if dispatcher is not None:
            dispatcher.shutdown(wait=True)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def add_listener(self, kind: EventKind, listener: EventListener) -> None:
        """Register a callback invoked as ``listener(kind, key)``."""
        with self._events_lock:
            self._listeners[kind].append(listener)

    def remove_listener(self, kind: EventKind, listener: EventListener) -> None:
        with self._events_lock:
            if listener in self._listeners[kind]:
                self._listeners[kind].remove(listener)

    def subscribe_events(self, kinds: Iterable[EventKind]) -> None:
        """Start delivering the given event kinds to their listeners."""
        with self._events_lock:
            self._subscribed.update(kinds)

    def unsubscribe_events(self, kinds: Optional[Iterable[EventKind]] = None) -> None:
        """Stop delivering the given kinds, or every kind when omitted."""
        with self._events_lock:
            if kinds is None:
                self._subscribed.clear()
            else:
                self._subscribed.difference_update(kinds)

    @property
    def subscribed_events(self) -> Set[EventKind]:
        with self._events_lock:
            return set(self._subscribed)

    def _emit(self, kind: EventKind, key: str) -> None:
        """Queue a notification for every listener of a subscribed kind."""
        with self._events_lock:
            if kind not in self._subscribed or not self._listeners[kind]:
                return
            listeners = list(self._listeners[kind])
            if self._dispatcher is None:
                self._dispatcher = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix="cache-events"
                )
            dispatcher = self._dispatcher

        for listener in listeners:
            try:
                future = dispatcher.submit(listener, kind, key)
            except RuntimeError:
                # Handle closed concurrently; the dispatcher no longer accepts work
                logger.debug(f"Dropped {kind.value} notification for {key}: handle closed")
                return
            future.add_done_callback(self._log_listener_failure)

    @staticmethod
    def _log_listener_failure(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error(f"Event listener failed: {exc!r}")

    def __repr__(self) -> str:
        state = "connected" if self.is_connected else "closed"
        return f"<{type(self).__name__} {self.options.address} {state}>"
