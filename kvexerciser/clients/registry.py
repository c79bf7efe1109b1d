"""
Client Registry

Manages several independent cache connections under one session. Exactly
one entry is active at a time; commands act on the active client.

The registry is mutated only from the operator-command thread. Workload
engines receive a handle, never the registry.
"""

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..cache.base import CacheHandle
from ..config.settings import settings
from ..errors import (
    CacheFault,
    ClientNotFoundError,
    DuplicateClientError,
    ExerciserError,
    RegistryError,
)
from .relay import EventRelay

logger = logging.getLogger(__name__)

Connector = Callable[[str], CacheHandle]


@dataclass
class BulkCreateReport:
    """Outcome of bulk_create()."""
    created: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)


@dataclass
class BulkAddReport:
    """Outcome of bulk_add()."""
    success: int = 0
    failed: int = 0
    faults: Dict[str, str] = field(default_factory=dict)


class ClientRegistry:
    """
    Named collection of cache handles with one active entry.

    A new registry holds the caller's initial handle under the default
    name, and that entry is active. Names are unique; listing order is
    insertion order.

    Args:
        initial_handle: Handle for the root session, owned by the caller
        relay: Relay attached to every handle created by create_client()
        connector: Opens a new handle for a client name
        default_name: Name of the initial entry
    """

    def __init__(
            self,
            initial_handle: CacheHandle,
            relay: Optional[EventRelay] = None,
            connector: Optional[Connector] = None,
            default_name: str = settings.DEFAULT_CLIENT_NAME,
    ):
        self.relay = relay
        self.connector = connector
        self._clients: "OrderedDict[str, CacheHandle]" = OrderedDict()
        self._clients[default_name] = initial_handle
        self._active_name: Optional[str] = default_name

    def __len__(self) -> int:
        return len(self._clients)

    def __contains__(self, name: str) -> bool:
        return name in self._clients

    @property
    def active_name(self) -> Optional[str]:
        return self._active_name

    def register(self, name: str, handle: CacheHandle) -> None:
        """
        Add a handle under a new name. The active entry is unchanged.

        Raises:
            DuplicateClientError: If the name is already registered
        """
        if name in self._clients:
            raise DuplicateClientError(name)
        self._clients[name] = handle
        if self._active_name is None:
            self._active_name = name
        logger.debug(f"Registered client {name!r}")

    def create_client(self, name: str, connector: Optional[Connector] = None) -> CacheHandle:
        """
        Connect a new client, attach the relay to it and register it.

        The name is checked before any connection is opened.

        Raises:
            RegistryError: If the name is empty
            DuplicateClientError: If the name is already registered
            CacheConnectionError: If the connection cannot be opened
        """
        name = (name or "").strip()
        if not name:
            raise RegistryError("Client name cannot be empty")
        if name in self._clients:
            raise DuplicateClientError(name)

        connector = connector or self.connector
        if connector is None:
            raise RegistryError("No connector configured for new clients")

        handle = connector(name)
        if self.relay is not None:
            self.relay.attach(handle, name)
        self.register(name, handle)
        logger.info(f"Client {name!r} created and connected")
        return handle

    def switch_to(self, name: str) -> None:
        """
        Make an existing client the active one.

        Raises:
            ClientNotFoundError: If no client has this name
        """
        if name not in self._clients:
            raise ClientNotFoundError(name)
        self._active_name = name

    def active(self) -> Tuple[str, CacheHandle]:
        """
        Return the active (name, handle) pair.

        Raises:
            ClientNotFoundError: If the registry has been disposed
        """
        if self._active_name is None:
            raise ClientNotFoundError(settings.DEFAULT_CLIENT_NAME)
        return self._active_name, self._clients[self._active_name]

    def get(self, name: str) -> CacheHandle:
        try:
            return self._clients[name]
        except KeyError:
            raise ClientNotFoundError(name) from None

    def list(self) -> List[str]:
        """Client names in insertion order."""
        return list(self._clients)

    def items(self) -> List[Tuple[str, CacheHandle]]:
        return list(self._clients.items())

    def dispose_all(self) -> None:
        """
        Close every distinct handle once and empty the registry.

        A handle registered under several names is closed only once. A
        failing close does not stop the others. Never raises.
        """
        closed = set()
        for name, handle in self._clients.items():
            if id(handle) in closed:
                continue
            closed.add(id(handle))
            try:
                handle.close()
            except Exception as e:
                logger.warning(f"Ignoring failure closing client {name!r}: {e}")
        self._clients.clear()
        self._active_name = None

    # ------------------------------------------------------------------
    # Multi-client operations
    # ------------------------------------------------------------------

    def bulk_create(self, count: int, prefix: str = "Client") -> BulkCreateReport:
        """
        Create clients named {prefix}_1 .. {prefix}_{count}.

        Failures are recorded per name and do not stop the batch.
        """
        prefix = (prefix or "").strip() or "Client"
        report = BulkCreateReport()
        for i in range(1, count + 1):
            name = f"{prefix}_{i}"
            try:
                self.create_client(name)
                report.created.append(name)
            except ExerciserError as e:
                logger.warning(f"Failed to create client {name!r}: {e}")
                report.failed[name] = str(e)
        return report

    def bulk_add(self, key_prefix: str = "bulk:item") -> BulkAddReport:
        """Every client adds its own key {key_prefix}:{client_name}."""
        key_prefix = (key_prefix or "").strip() or "bulk:item"
        report = BulkAddReport()
        for name, handle in self._clients.items():
            try:
                handle.add(f"{key_prefix}:{name}", f"from:{name}")
                report.success += 1
            except CacheFault as e:
                report.failed += 1
                report.faults[name] = str(e)
        return report

    def broadcast(self, key: str, message: str) -> Dict[str, Optional[str]]:
        """
        Every client updates the same key with its own signed message.

        Returns:
            client name -> None on success, or the failure message
        """
        outcomes: Dict[str, Optional[str]] = {}
        for name, handle in self._clients.items():
            try:
                handle.update(key, f"{message}(from:{name})")
                outcomes[name] = None
            except CacheFault as e:
                outcomes[name] = str(e)
        return outcomes
