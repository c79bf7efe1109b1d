"""Cache handle module for KV-Exerciser."""

from .base import ALL_EVENT_KINDS, CacheHandle, ConnectionOptions, EventKind
from .factory import BACKENDS, connect
from .memory import MemoryCacheHandle, MemoryStore
from .tcp import TcpCacheHandle

__all__ = [
    "ALL_EVENT_KINDS",
    "BACKENDS",
    "CacheHandle",
    "ConnectionOptions",
    "EventKind",
    "MemoryCacheHandle",
    "MemoryStore",
    "TcpCacheHandle",
    "connect",
]
