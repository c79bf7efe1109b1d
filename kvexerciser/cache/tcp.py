"""
TCP Cache Handle

A synchronous client for the KV-Cache line protocol. One socket is shared
by every thread using the handle; a lock serialises each request/reply
exchange.

The protocol has no atomic add/update, so both are an EXISTS probe
followed by a PUT. The protocol has no server push either: the handle
raises ADDED/UPDATED/REMOVED for its own successful writes, and EXPIRED
when a GET misses a key it wrote with a TTL that has since elapsed.
EVICTED is never observed over this transport.
"""

import logging
import socket
import threading
import time
from typing import Dict, Optional

from ..config.settings import settings
from ..errors import CacheConnectionError, CacheFault, DuplicateKeyError, NotFoundError
from ..protocol.codec import ProtocolCodec, ProtocolError
from ..protocol.commands import Reply, Request
from .base import CacheHandle, ConnectionOptions, EventKind

logger = logging.getLogger(__name__)


class TcpCacheHandle(CacheHandle):
    """
    CacheHandle speaking the KV-Cache text protocol over TCP.

    Usage:
        handle = TcpCacheHandle(ConnectionOptions("localhost", 7171))
        handle.connect()
        handle.add("user:1", "alice")
        handle.close()
    """

    def __init__(self, options: Optional[ConnectionOptions] = None, name: str = "tcp"):
        super().__init__(options, name=name)
        self.codec = ProtocolCodec()
        self.socket: Optional[socket.socket] = None
        self._buffer = b""
        self._io_lock = threading.Lock()
        # key -> monotonic deadline, for keys this handle wrote with a TTL
        self._deadlines: Dict[str, float] = {}

    def connect(self) -> "TcpCacheHandle":
        """
        Connect to the server.

        Raises:
            CacheConnectionError: If the server cannot be reached
        """
        try:
            sock = socket.create_connection(
                (self.options.host, self.options.port),
                timeout=self.options.timeout,
            )
        except OSError as e:
            logger.error(f"Connection to {self.options.address} failed: {e}")
            raise CacheConnectionError(f"cannot connect to {self.options.address}: {e}") from e

        with self._io_lock:
            self.socket = sock
            self._buffer = b""
        logger.debug(f"Connected to {self.options.address}")
        return self

    @property
    def is_connected(self) -> bool:
        return self.socket is not None

    def _close_connection(self) -> None:
        with self._io_lock:
            sock, self.socket = self.socket, None
        if sock is None:
            return
        try:
            sock.sendall(self.codec.format_request(Request.quit()).encode("utf-8"))
        except OSError:
            pass  # Peer already gone; closing anyway
        finally:
            sock.close()
        logger.debug(f"Disconnected from {self.options.address}")

    def _read_line(self) -> bytes:
        while b"\n" not in self._buffer:
            chunk = self.socket.recv(settings.READ_BUFFER_SIZE)
            if not chunk:
                raise ConnectionResetError("connection closed by server")
            self._buffer += chunk
        line, _, self._buffer = self._buffer.partition(b"\n")
        return line

    def send(self, request: Request) -> Reply:
        """
        Send a request and wait for its reply.

        Raises:
            CacheFault: If the request is malformed, times out, or the link fails
        """
        try:
            line = self.codec.format_request(request)
        except ProtocolError as e:
            raise CacheFault(str(e), key=request.key) from e

        with self._io_lock:
            if self.socket is None:
                raise CacheFault("not connected", key=request.key)
            try:
                self.socket.sendall(line.encode("utf-8"))
                raw = self._read_line()
            except socket.timeout as e:
                self._drop_socket()
                raise CacheFault("request timed out", key=request.key) from e
            except OSError as e:
                self._drop_socket()
                raise CacheFault(f"connection lost: {e}", key=request.key) from e

        try:
            return self.codec.parse_reply(raw.decode("utf-8"))
        except (UnicodeDecodeError, ProtocolError) as e:
            raise CacheFault(f"bad reply: {e}", key=request.key) from e

    def _drop_socket(self) -> None:
        # Caller holds _io_lock. A timed-out exchange leaves the stream out of step.
        if self.socket is not None:
            self.socket.close()
            self.socket = None
            self._buffer = b""

    def _expect_ok(self, reply: Reply, key: str) -> Reply:
        if reply.is_key_not_found:
            raise NotFoundError(key)
        if not reply.ok:
            raise CacheFault(reply.body or "server error", key=key)
        return reply

    def _exists(self, key: str) -> bool:
        reply = self._expect_ok(self.send(Request.exists(key)), key)
        return reply.body == "1"

    def add(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        if self._exists(key):
            raise DuplicateKeyError(key)
        self._expect_ok(self.send(Request.put(key, value, ttl)), key)
        if ttl:
            self._deadlines[key] = time.monotonic() + ttl
        else:
            self._deadlines.pop(key, None)
        self._emit(EventKind.ADDED, key)

    def get(self, key: str) -> Optional[str]:
        reply = self.send(Request.get(key))
        if reply.is_key_not_found:
            deadline = self._deadlines.get(key)
            if deadline is not None and deadline <= time.monotonic():
                self._deadlines.pop(key, None)
                self._emit(EventKind.EXPIRED, key)
            return None
        return self._expect_ok(reply, key).body

    def update(self, key: str, value: str) -> None:
        if not self._exists(key):
            raise NotFoundError(key)
        # PUT without a TTL clears any expiration on the server
        self._expect_ok(self.send(Request.put(key, value)), key)
        self._deadlines.pop(key, None)
        self._emit(EventKind.UPDATED, key)

    def remove(self, key: str) -> None:
        self._expect_ok(self.send(Request.delete(key)), key)
        self._deadlines.pop(key, None)
        self._emit(EventKind.REMOVED, key)
