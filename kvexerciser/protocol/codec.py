"""
Protocol Codec Module

Formats requests into protocol lines and parses reply lines.

Protocol Format:
    Request:  <COMMAND> [ARGS...]\n
    Reply:    <STATUS> [DATA]\n

Commands:
    PUT <key> <value> [ttl]  -> OK stored
    GET <key>                -> OK <value> | ERROR key not found
    DELETE <key>             -> OK deleted | ERROR key not found
    EXISTS <key>             -> OK 1 | OK 0
    QUIT                     -> (connection closed)

Constraints:
    - Keys: max 256 characters, no whitespace
    - Values: max 256 characters, no whitespace
    - TTL: non-negative integer (0 = no expiration)
"""

from ..config.settings import settings
from .commands import CommandType, Reply, ReplyStatus, Request


class ProtocolError(ValueError):
    """A request cannot be encoded or a reply cannot be decoded."""


class ProtocolCodec:
    """Encoder/decoder for the KV-Cache text protocol."""

    def __init__(self):
        """Initialize the codec with constraints from settings."""
        self.max_key_length = settings.MAX_KEY_LENGTH
        self.max_value_length = settings.MAX_VALUE_LENGTH

    def _check_token(self, what: str, token: str, limit: int) -> None:
        if not token:
            raise ProtocolError(f"{what} must not be empty")
        if len(token) > limit:
            raise ProtocolError(f"{what} longer than {limit} characters")
        if any(ch.isspace() for ch in token):
            raise ProtocolError(f"{what} must not contain whitespace")

    def format_request(self, request: Request) -> str:
        """
        Format a Request into a protocol line.

        Returns:
            Request string WITH trailing newline.

        Raises:
            ProtocolError: If the key, value or TTL cannot be expressed

        Examples:
            >>> codec = ProtocolCodec()
            >>> codec.format_request(Request.put("k", "v", 60))
            'PUT k v 60\\n'
            >>> codec.format_request(Request.get("k"))
            'GET k\\n'
        """
        if request.type == CommandType.QUIT:
            return "QUIT\n"

        self._check_token("key", request.key, self.max_key_length)

        if request.type == CommandType.PUT:
            self._check_token("value", request.value, self.max_value_length)
            if request.ttl < 0:
                raise ProtocolError("ttl must be non-negative")
            if request.ttl:
                return f"PUT {request.key} {request.value} {request.ttl}\n"
            return f"PUT {request.key} {request.value}\n"

        return f"{request.type.name} {request.key}\n"

    def parse_reply(self, data: str) -> Reply:
        """
        Parse a raw reply line into a Reply object.

        Raises:
            ProtocolError: If the line does not start with OK or ERROR

        Examples:
            >>> codec = ProtocolCodec()
            >>> codec.parse_reply("OK hello\\n").body
            'hello'
            >>> codec.parse_reply("ERROR key not found").is_key_not_found
            True
        """
        raw = data.rstrip("\r\n")
        status_word, _, body = raw.strip().partition(" ")
        try:
            status = ReplyStatus(status_word.upper())
        except ValueError:
            raise ProtocolError(f"malformed reply: {raw!r}") from None
        return Reply(status=status, body=body.strip(), raw=raw)
