"""
Tests for the Protocol Codec

These tests verify the ProtocolCodec class:
- format_request(): Encode Request objects into protocol lines
- parse_reply(): Decode reply lines into Reply objects

Run with: python -m pytest tests/test_protocol.py -v
"""

import pytest

from kvexerciser.protocol.codec import ProtocolCodec, ProtocolError
from kvexerciser.protocol.commands import CommandType, ReplyStatus, Request


@pytest.fixture
def codec() -> ProtocolCodec:
    return ProtocolCodec()


class TestFormatRequest:
    """Test request encoding."""

    def test_put_without_ttl(self, codec: ProtocolCodec):
        """Test PUT with no TTL omits the TTL field."""
        assert codec.format_request(Request.put("key", "value")) == "PUT key value\n"

    def test_put_with_ttl(self, codec: ProtocolCodec):
        """Test PUT with a TTL appends it."""
        assert codec.format_request(Request.put("key", "value", 60)) == "PUT key value 60\n"

    @pytest.mark.parametrize("factory,expected", [
        (Request.get, "GET key\n"),
        (Request.delete, "DELETE key\n"),
        (Request.exists, "EXISTS key\n"),
    ])
    def test_single_key_commands(self, codec: ProtocolCodec, factory, expected):
        """Test GET/DELETE/EXISTS encoding."""
        assert codec.format_request(factory("key")) == expected

    def test_quit(self, codec: ProtocolCodec):
        """Test QUIT carries no arguments."""
        request = Request.quit()
        assert request.type == CommandType.QUIT
        assert codec.format_request(request) == "QUIT\n"

    @pytest.mark.parametrize("key", ["", "has space", "tab\tkey", "k" * 257])
    def test_invalid_keys_rejected(self, codec: ProtocolCodec, key):
        """Test keys the server cannot parse are refused before sending."""
        with pytest.raises(ProtocolError):
            codec.format_request(Request.get(key))

    def test_value_with_whitespace_rejected(self, codec: ProtocolCodec):
        """Test a value with whitespace would be misread as a TTL."""
        with pytest.raises(ProtocolError):
            codec.format_request(Request.put("key", "hello 5"))

    def test_max_length_accepted(self, codec: ProtocolCodec):
        """Test 256-character keys and values are allowed."""
        line = codec.format_request(Request.put("k" * 256, "v" * 256))
        assert line.startswith("PUT ")


class TestParseReply:
    """Test reply decoding."""

    def test_ok_with_value(self, codec: ProtocolCodec):
        """Test an OK reply exposes its body."""
        reply = codec.parse_reply("OK hello\n")
        assert reply.status == ReplyStatus.OK
        assert reply.ok
        assert reply.body == "hello"

    def test_ok_without_body(self, codec: ProtocolCodec):
        """Test a bare OK parses with an empty body."""
        reply = codec.parse_reply("OK\r\n")
        assert reply.ok
        assert reply.body == ""

    def test_key_not_found(self, codec: ProtocolCodec):
        """Test the key-not-found error is recognised."""
        reply = codec.parse_reply("ERROR key not found\n")
        assert not reply.ok
        assert reply.is_key_not_found

    def test_other_error(self, codec: ProtocolCodec):
        """Test other errors keep their message."""
        reply = codec.parse_reply("ERROR invalid command")
        assert reply.status == ReplyStatus.ERROR
        assert not reply.is_key_not_found
        assert reply.body == "invalid command"

    def test_malformed_reply(self, codec: ProtocolCodec):
        """Test a reply without a status word is rejected."""
        with pytest.raises(ProtocolError):
            codec.parse_reply("HELLO there")
