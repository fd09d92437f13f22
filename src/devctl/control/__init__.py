"""Control plane: local socket protocol, server, client and peer discovery.

- protocol.py: plaintext command/reply encoding
- channel.py: ControlChannel (socket server owned by a supervised unit)
- client.py: send_command (one-shot client)
- registry.py: discover (scan a control directory for peers)
"""

from __future__ import annotations

from .channel import ControlChannel, ControlHandlers
from .client import send_command
from .protocol import CMD_INFO, CMD_RESTART, CMD_STOP, parse_reply
from .registry import Responsive, Unresponsive, discover, query_peer, scan

__all__ = [
    # Protocol
    "CMD_INFO",
    "CMD_RESTART",
    "CMD_STOP",
    "parse_reply",
    # Server
    "ControlChannel",
    "ControlHandlers",
    # Client
    "send_command",
    # Discovery
    "Responsive",
    "Unresponsive",
    "discover",
    "query_peer",
    "scan",
]
