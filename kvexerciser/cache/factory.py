"""Construction of cache handles by backend name."""

import logging
from typing import Optional

from ..config.settings import settings
from .base import CacheHandle, ConnectionOptions
from .memory import MemoryCacheHandle, MemoryStore
from .tcp import TcpCacheHandle

logger = logging.getLogger(__name__)

BACKENDS = ("tcp", "memory")


def connect(
        options: Optional[ConnectionOptions] = None,
        backend: str = None,
        name: str = "",
        store: Optional[MemoryStore] = None,
) -> CacheHandle:
    """
    Open a cache handle.

    Args:
        options: Endpoint to reach (default from settings)
        backend: "tcp" for a live server, "memory" for an in-process store
        name: Label for logs
        store: Shared MemoryStore for the memory backend, so several
               handles see the same data

    Raises:
        CacheConnectionError: If a tcp endpoint cannot be reached
        ValueError: For an unknown backend
    """
    options = options if options is not None else ConnectionOptions()
    backend = backend or settings.BACKEND

    if backend == "tcp":
        return TcpCacheHandle(options, name=name or "tcp").connect()
    if backend == "memory":
        logger.debug(f"Opening in-memory handle {name!r}")
        return MemoryCacheHandle(options, name=name or "memory", store=store)
    raise ValueError(f"unknown backend {backend!r}; expected one of {', '.join(BACKENDS)}")
