"""Tests for the control wire protocol."""

from __future__ import annotations

import json

import pytest

from devctl.control.protocol import (
    decode_command,
    decode_info,
    encode_error,
    encode_info,
    encode_ok,
    encode_reply,
    parse_reply,
)
from devctl.exceptions import ControlProtocolError, SupervisorStateError
from devctl.models import PeerInfo


class TestEncoding:
    """Tests for command and reply encoding."""

    def test_command_is_trimmed(self) -> None:
        """Trailing newline and whitespace are ignored."""
        assert decode_command(b"  restart\r\n") == "restart"

    def test_reply_is_newline_terminated(self) -> None:
        """Replies end with exactly one newline."""
        assert encode_reply("ok") == b"ok\n"
        assert encode_reply("ok\n") == b"ok\n"

    def test_ok_with_value(self) -> None:
        """ok replies carry an optional value."""
        assert encode_ok() == "ok"
        assert encode_ok("http://localhost:3000") == "ok:http://localhost:3000"

    def test_error_is_single_line(self) -> None:
        """Multi-line errors are flattened."""
        assert encode_error("bad\nthing") == "error:bad thing"

    def test_error_without_message_uses_class_name(self) -> None:
        """An empty exception message falls back to the class name."""
        assert encode_error(SupervisorStateError()) == "error:SupervisorStateError"


class TestInfo:
    """Tests for info encode/decode."""

    def test_info_is_compact_json(self) -> None:
        """Info is one line of JSON with id, name, port and url."""
        peer = PeerInfo(id="web-abc123", name="web", port=3000, url="http://localhost:3000", socket="/x")
        wire = encode_info(peer)
        assert "\n" not in wire
        assert json.loads(wire) == {
            "id": "web-abc123",
            "name": "web",
            "port": 3000,
            "url": "http://localhost:3000",
        }

    def test_decode_records_socket(self) -> None:
        """The socket the reply came from is kept on the result."""
        peer = decode_info('{"id":"web-abc123","name":"web","port":null,"url":null}', socket="/s.sock")
        assert peer.port is None
        assert peer.socket == "/s.sock"

    @pytest.mark.parametrize(
        "reply",
        [
            "not json",
            "[1, 2]",
            '{"name": "web", "port": 3000}',
            '{"id": "a", "name": "web", "port": "3000"}',
            '{"id": "a", "name": "web", "port": true}',
        ],
    )
    def test_decode_rejects_malformed(self, reply: str) -> None:
        """Malformed info replies raise ControlProtocolError."""
        with pytest.raises(ControlProtocolError):
            decode_info(reply)


class TestParseReply:
    """Tests for parse_reply()."""

    def test_ok_forms(self) -> None:
        assert parse_reply("ok") == (True, "")
        assert parse_reply("ok:http://localhost:3001") == (True, "http://localhost:3001")

    def test_error(self) -> None:
        assert parse_reply("error:unknown-command") == (False, "unknown-command")

    def test_garbage(self) -> None:
        with pytest.raises(ControlProtocolError):
            parse_reply("hello")
