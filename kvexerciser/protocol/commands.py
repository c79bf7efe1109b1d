"""
Protocol Request and Reply Definitions

This module defines the data structures exchanged with a line-protocol
cache server.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class CommandType(Enum):
    """Enumeration of supported request types."""
    PUT = auto()
    GET = auto()
    DELETE = auto()
    EXISTS = auto()
    QUIT = auto()


class ReplyStatus(Enum):
    """Enumeration of reply statuses."""
    OK = "OK"
    ERROR = "ERROR"


@dataclass
class Request:
    """
    Represents a request to send to the server.

    Attributes:
        type: The type of command (PUT, GET, DELETE, EXISTS, QUIT)
        key: The key for the operation (empty for QUIT)
        value: The value for PUT requests (empty for other requests)
        ttl: Time-to-live in seconds for PUT requests (0 = no expiration)
    """
    type: CommandType
    key: str = ""
    value: str = ""
    ttl: int = 0

    @classmethod
    def put(cls, key: str, value: str, ttl: Optional[int] = None) -> "Request":
        return cls(type=CommandType.PUT, key=key, value=value, ttl=ttl or 0)

    @classmethod
    def get(cls, key: str) -> "Request":
        return cls(type=CommandType.GET, key=key)

    @classmethod
    def delete(cls, key: str) -> "Request":
        return cls(type=CommandType.DELETE, key=key)

    @classmethod
    def exists(cls, key: str) -> "Request":
        return cls(type=CommandType.EXISTS, key=key)

    @classmethod
    def quit(cls) -> "Request":
        return cls(type=CommandType.QUIT)


@dataclass
class Reply:
    """
    Represents a parsed server reply.

    Attributes:
        status: OK or ERROR
        body: Everything after the status word (value, message or empty)
        raw: The reply line as received, without the trailing newline
    """
    status: ReplyStatus
    body: str = ""
    raw: str = ""

    @property
    def ok(self) -> bool:
        return self.status == ReplyStatus.OK

    @property
    def is_key_not_found(self) -> bool:
        return self.status == ReplyStatus.ERROR and self.body == "key not found"
