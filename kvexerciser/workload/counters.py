"""Race-free counters shared by concurrent workers."""

import threading
from typing import Dict, Iterable


class AtomicCounters:
    """
    A set of named integer counters updated under one lock.

    Usage:
        counters = AtomicCounters(["completed", "errors"])
        counters.increment("completed")
        counters.snapshot()  # {"completed": 1, "errors": 0}
    """

    def __init__(self, names: Iterable[str] = ()):
        self._lock = threading.Lock()
        self._counts: Dict[str, int] = {name: 0 for name in names}

    def increment(self, name: str, amount: int = 1) -> int:
        """Add amount to a counter (created at zero if new). Returns the new value."""
        with self._lock:
            value = self._counts.get(name, 0) + amount
            self._counts[name] = value
            return value

    def get(self, name: str) -> int:
        with self._lock:
            return self._counts.get(name, 0)

    def snapshot(self) -> Dict[str, int]:
        """Copy of every counter, taken atomically."""
        with self._lock:
            return dict(self._counts)
