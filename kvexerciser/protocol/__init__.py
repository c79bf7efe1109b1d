"""Protocol module for KV-Exerciser."""

from .codec import ProtocolCodec, ProtocolError
from .commands import CommandType, Reply, ReplyStatus, Request

__all__ = [
    "CommandType",
    "ProtocolCodec",
    "ProtocolError",
    "Reply",
    "ReplyStatus",
    "Request",
]
