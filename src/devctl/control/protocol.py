"""Plaintext control-socket protocol shared by channel and client.

One command per connection, one reply per command. Both directions are
short UTF-8 lines; surrounding whitespace (including the trailing newline)
is insignificant, so operators can drive a socket by hand:

    printf restart | nc -U .dev/web-3f9a1c.sock

Commands and replies:
- restart -> "ok:<url>"            | "error:<message>"
- stop    -> "ok"                  (then the instance shuts down)
- info    -> {"id":..,"name":..,"port":..,"url":..}  (compact JSON)
- other   -> "error:unknown-command"
"""

from __future__ import annotations

__all__ = [
    "CMD_INFO",
    "CMD_RESTART",
    "CMD_STOP",
    "COMMANDS",
    "REPLY_OK",
    "REPLY_UNKNOWN_COMMAND",
    "decode_command",
    "decode_info",
    "encode_error",
    "encode_info",
    "encode_ok",
    "encode_reply",
    "parse_reply",
]

import json
from typing import Any

from devctl.exceptions import ControlProtocolError
from devctl.models import PeerInfo

CMD_RESTART = "restart"
CMD_STOP = "stop"
CMD_INFO = "info"
COMMANDS: frozenset[str] = frozenset({CMD_RESTART, CMD_STOP, CMD_INFO})

REPLY_OK = "ok"
REPLY_ERROR_PREFIX = "error:"
REPLY_UNKNOWN_COMMAND = "error:unknown-command"


def decode_command(data: bytes) -> str:
    """Decode raw bytes read from a connection into a command word.

    Example:
        >>> decode_command(b"restart\\n")
        'restart'
    """
    return data.decode("utf-8", errors="replace").strip()


def encode_reply(reply: str) -> bytes:
    """Encode a reply line for transmission (newline-terminated)."""
    return (reply.rstrip("\n") + "\n").encode("utf-8")


def encode_ok(value: str | None = None) -> str:
    """Build a success reply: "ok" or "ok:<value>"."""
    if value is None:
        return REPLY_OK
    return f"{REPLY_OK}:{value}"


def encode_error(error: BaseException | str) -> str:
    """Build an error reply from an exception or message.

    Newlines are flattened so the reply stays a single line.
    """
    if isinstance(error, BaseException):
        message = str(error) or type(error).__name__
    else:
        message = error
    return REPLY_ERROR_PREFIX + " ".join(message.splitlines())


def encode_info(info: PeerInfo) -> str:
    """Serialize an info snapshot as compact single-line JSON."""
    return json.dumps(info.wire_dict(), separators=(",", ":"))


def decode_info(reply: str, socket: str | None = None) -> PeerInfo:
    """Parse an info reply.

    Args:
        reply: Raw reply text.
        socket: Socket path the reply came from, recorded on the result.

    Returns:
        PeerInfo.

    Raises:
        ControlProtocolError: If the reply is not a JSON object with string
            id/name and an integer (or null) port.
    """
    try:
        data: Any = json.loads(reply)
    except json.JSONDecodeError as e:
        raise ControlProtocolError(f"info reply is not JSON: {reply[:80]!r}") from e
    if not isinstance(data, dict):
        raise ControlProtocolError("info reply is not a JSON object")

    ident, name, port, url = data.get("id"), data.get("name"), data.get("port"), data.get("url")
    if not isinstance(ident, str) or not isinstance(name, str):
        raise ControlProtocolError("info reply is missing id or name")
    # bool is an int subclass; "port": true is not a port
    if port is not None and (isinstance(port, bool) or not isinstance(port, int)):
        raise ControlProtocolError(f"info reply has non-integer port: {port!r}")
    if url is not None and not isinstance(url, str):
        raise ControlProtocolError(f"info reply has non-string url: {url!r}")
    return PeerInfo(id=ident, name=name, port=port, url=url, socket=socket)


def parse_reply(reply: str) -> tuple[bool, str]:
    """Split an ok/error reply into (success, payload).

    Example:
        >>> parse_reply("ok:http://localhost:3000")
        (True, 'http://localhost:3000')
        >>> parse_reply("error:boom")
        (False, 'boom')

    Raises:
        ControlProtocolError: If the reply is neither ok nor error.
    """
    if reply == REPLY_OK:
        return True, ""
    if reply.startswith(REPLY_OK + ":"):
        return True, reply[len(REPLY_OK) + 1 :]
    if reply.startswith(REPLY_ERROR_PREFIX):
        return False, reply[len(REPLY_ERROR_PREFIX) :]
    raise ControlProtocolError(f"Unexpected reply: {reply[:80]!r}")
