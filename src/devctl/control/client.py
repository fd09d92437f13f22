"""Control socket client.

Sends a single command to another instance's control socket. Every way a
peer can fail to answer (missing socket file, refused connection, timeout,
garbage bytes) collapses into one outcome, None, because the caller's
recovery is the same in each case: treat the peer as absent.
"""

from __future__ import annotations

__all__ = [
    "send_command",
]

import asyncio
import logging
from pathlib import Path

from devctl.constants import APP_NAME, MAX_COMMAND_BYTES, PEER_QUERY_TIMEOUT_SECONDS

from .protocol import encode_reply

_logger = logging.getLogger(f"{APP_NAME}.control.client")

# Replies are short; info is the largest (a few hundred bytes of JSON)
MAX_REPLY_BYTES = 64 * MAX_COMMAND_BYTES


async def _exchange(socket_path: Path, message: str) -> bytes:
    reader, writer = await asyncio.open_unix_connection(str(socket_path))
    try:
        writer.write(encode_reply(message))
        await writer.drain()
        return await reader.read(MAX_REPLY_BYTES)
    finally:
        writer.close()
        try:
            await writer.wait_closed()
        except OSError:
            pass  # Peer already closed its end


async def send_command(
    socket_path: Path | str,
    message: str,
    timeout: float = PEER_QUERY_TIMEOUT_SECONDS,
) -> str | None:
    """Send one command and wait for the first reply chunk.

    Args:
        socket_path: Peer control socket.
        message: Command word (e.g., "info").
        timeout: Round-trip budget in seconds (connect + write + read).

    Returns:
        The stripped reply, or None if there was no usable reply.
    """
    path = Path(socket_path)
    if not path.exists():
        return None

    try:
        data = await asyncio.wait_for(_exchange(path, message), timeout)
    except asyncio.TimeoutError:
        _logger.debug("No reply from %s within %.1fs", path, timeout)
        return None
    except OSError as e:
        # ConnectionRefusedError, FileNotFoundError, ConnectionResetError, ...
        _logger.debug("Control socket %s unreachable: %s", path, e)
        return None

    try:
        reply = data.decode("utf-8").strip()
    except UnicodeDecodeError:
        _logger.debug("Undecodable reply from %s", path)
        return None
    return reply or None
