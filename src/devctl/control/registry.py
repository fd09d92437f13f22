"""Peer discovery over a control directory.

Every `*.sock` file in the control directory is a potential peer. Each is
asked for `info` concurrently, with its own timeout. The result of a query
is either Responsive (a valid snapshot) or Unresponsive (no reply, an
error, or a malformed reply). Only responsive peers with a numeric port
make it into the port map.

Discovery is best-effort: a peer that crashed without removing
its socket must never stop a new instance from starting.
"""

from __future__ import annotations

__all__ = [
    "PeerResult",
    "Responsive",
    "Unresponsive",
    "discover",
    "list_control_sockets",
    "query_peer",
    "scan",
]

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from devctl.constants import APP_NAME, CONTROL_SOCKET_SUFFIX, PEER_QUERY_TIMEOUT_SECONDS
from devctl.exceptions import ControlProtocolError
from devctl.models import PeerInfo

from .client import send_command
from .protocol import CMD_INFO, decode_info

_logger = logging.getLogger(f"{APP_NAME}.control.registry")


@dataclass(frozen=True, slots=True)
class Responsive:
    """A peer that answered `info` with a well-formed snapshot."""

    peer: PeerInfo


@dataclass(frozen=True, slots=True)
class Unresponsive:
    """A socket that did not yield a usable snapshot.

    Attributes:
        socket: Control socket path.
        reason: Why it was excluded (for debug logs).
    """

    socket: str
    reason: str


PeerResult = Responsive | Unresponsive


def list_control_sockets(control_dir: Path, exclude: Path | None = None) -> list[Path]:
    """List control socket files in a directory, sorted by name.

    Args:
        control_dir: Directory to scan.
        exclude: Socket to skip (usually the caller's own).

    Returns:
        Socket paths; empty if the directory does not exist.
    """
    if not control_dir.is_dir():
        return []
    excluded = exclude.resolve() if exclude is not None else None
    sockets = []
    for path in sorted(control_dir.glob(f"*{CONTROL_SOCKET_SUFFIX}")):
        if excluded is not None and path.resolve() == excluded:
            continue
        sockets.append(path)
    return sockets


async def query_peer(socket_path: Path, timeout: float = PEER_QUERY_TIMEOUT_SECONDS) -> PeerResult:
    """Ask one socket for `info`.

    Args:
        socket_path: Peer control socket.
        timeout: Round-trip timeout in seconds.

    Returns:
        Responsive with the snapshot, or Unresponsive with a reason.
    """
    reply = await send_command(socket_path, CMD_INFO, timeout=timeout)
    if reply is None:
        return Unresponsive(socket=str(socket_path), reason="no reply")
    try:
        return Responsive(peer=decode_info(reply, socket=str(socket_path)))
    except ControlProtocolError as e:
        return Unresponsive(socket=str(socket_path), reason=str(e))


async def scan(
    control_dir: Path,
    *,
    exclude: Path | None = None,
    timeout: float = PEER_QUERY_TIMEOUT_SECONDS,
) -> list[PeerResult]:
    """Query every control socket in a directory concurrently.

    Returns:
        One result per socket file, in socket name order.
    """
    sockets = list_control_sockets(control_dir, exclude=exclude)
    if not sockets:
        return []
    return list(await asyncio.gather(*(query_peer(path, timeout) for path in sockets)))


async def discover(
    control_dir: Path,
    *,
    exclude: Path | None = None,
    timeout: float = PEER_QUERY_TIMEOUT_SECONDS,
) -> dict[int, PeerInfo]:
    """Build a fresh port -> PeerInfo map of running peers.

    Unresponsive sockets, and peers that report no port (orchestrators,
    instances mid-restart), are excluded. If two peers claim the same port,
    the first in socket-name order wins.

    Args:
        control_dir: Directory holding control sockets.
        exclude: Socket to skip (usually the caller's own).
        timeout: Per-peer round-trip timeout in seconds.

    Returns:
        Map of port to peer. Empty if the directory does not exist.
    """
    results = await scan(control_dir, exclude=exclude, timeout=timeout)

    responsive: list[PeerInfo] = []
    for result in results:
        if isinstance(result, Unresponsive):
            _logger.debug("Skipping unresponsive peer %s: %s", result.socket, result.reason)
            continue
        responsive.append(result.peer)

    peers: dict[int, PeerInfo] = {}
    for peer in responsive:
        if peer.port is None:
            continue
        peers.setdefault(peer.port, peer)
    return peers
