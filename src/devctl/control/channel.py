"""Control socket server.

Owns one filesystem socket for a supervised unit. Each connection carries
a single command which is dispatched to the unit's handlers; every
failure is converted into an `error:` reply so that one bad request can
never take the channel down.

Lifecycle:
- open(): ensure directory, remove stale socket file, bind, chmod 0600
- close(): stop accepting, wait for the server to close, unlink our file
"""

from __future__ import annotations

__all__ = [
    "ControlChannel",
    "ControlHandlers",
]

import asyncio
import logging
import os
from pathlib import Path
from types import TracebackType
from typing import Protocol

from devctl.constants import (
    APP_NAME,
    CHANNEL_CLOSE_TIMEOUT_SECONDS,
    COMMAND_READ_TIMEOUT_SECONDS,
    CONTROL_SOCKET_MODE,
    MAX_COMMAND_BYTES,
)
from devctl.log_config import log_event
from devctl.models import ControlEndpoint, PeerInfo, SystemEvent

from .protocol import (
    CMD_INFO,
    CMD_RESTART,
    CMD_STOP,
    REPLY_UNKNOWN_COMMAND,
    decode_command,
    encode_error,
    encode_info,
    encode_ok,
    encode_reply,
)

_logger = logging.getLogger(f"{APP_NAME}.control")


class ControlHandlers(Protocol):
    """Operations a supervised unit exposes over its control socket."""

    async def restart(self) -> str:
        """Restart the unit and return its new URL."""
        ...

    async def stop(self) -> None:
        """Stop the unit (terminal)."""
        ...

    def info(self) -> PeerInfo:
        """Return a status snapshot."""
        ...


class ControlChannel:
    """Listening control socket bound to one ControlEndpoint.

    Usage:
        channel = await ControlChannel.open(endpoint, supervisor)
        ...
        await channel.close()

    or as an async context manager:
        async with await ControlChannel.open(endpoint, supervisor):
            ...
    """

    def __init__(self, endpoint: ControlEndpoint, handlers: ControlHandlers) -> None:
        self._endpoint = endpoint
        self._handlers = handlers
        self._server: asyncio.AbstractServer | None = None
        self._inode: int | None = None
        self._closed = False

    @property
    def socket_path(self) -> Path:
        """Path of the socket file."""
        return self._endpoint.socket_path

    @property
    def is_open(self) -> bool:
        """True while the channel accepts connections."""
        return self._server is not None and not self._closed

    @classmethod
    async def open(cls, endpoint: ControlEndpoint, handlers: ControlHandlers) -> "ControlChannel":
        """Create the control socket and start serving.

        Any file already at the socket path is removed first: it can only be
        left over from a run that did not shut down cleanly, or belong to an
        instance this one is replacing.

        Args:
            endpoint: Directory and socket path.
            handlers: restart/stop/info implementation.

        Returns:
            Open ControlChannel.
        """
        channel = cls(endpoint, handlers)
        await channel._start()
        return channel

    async def _start(self) -> None:
        socket_path = self._endpoint.socket_path
        self._endpoint.directory.mkdir(parents=True, exist_ok=True)

        if socket_path.exists() or socket_path.is_symlink():
            socket_path.unlink(missing_ok=True)
            log_event(
                logging.DEBUG,
                SystemEvent(
                    event="stale_socket_removed",
                    message=f"Removed stale socket: {socket_path}",
                    socket_path=str(socket_path),
                ),
                _logger,
            )

        self._server = await asyncio.start_unix_server(self._handle_connection, path=str(socket_path))
        socket_path.chmod(CONTROL_SOCKET_MODE)
        self._inode = os.stat(socket_path).st_ino

        log_event(
            logging.DEBUG,
            SystemEvent(
                event="control_channel_opened",
                message=f"Control socket listening: {socket_path}",
                socket_path=str(socket_path),
            ),
            _logger,
        )

    async def _handle_connection(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Read one command, dispatch it, reply, close."""
        stop_requested = False
        try:
            try:
                data = await asyncio.wait_for(reader.read(MAX_COMMAND_BYTES), COMMAND_READ_TIMEOUT_SECONDS)
            except asyncio.TimeoutError:
                return
            if not data:
                return
            # Blank input falls through to the unknown-command reply
            command = decode_command(data)

            if command == CMD_STOP:
                # Reply must be flushed before stopping: stop may end the process
                await self._send(writer, encode_ok())
                stop_requested = True
                return

            reply = await self._dispatch(command)
            await self._send(writer, reply)
        except (ConnectionResetError, BrokenPipeError) as e:
            _logger.debug("Control client went away: %s", e)
        finally:
            await self._close_writer(writer)
            if stop_requested:
                await self._run_stop()

    async def _dispatch(self, command: str) -> str:
        """Map a command to a reply, never raising."""
        try:
            if command == CMD_RESTART:
                url = await self._handlers.restart()
                return encode_ok(url)
            if command == CMD_INFO:
                return encode_info(self._handlers.info())
            return REPLY_UNKNOWN_COMMAND
        except Exception as e:
            log_event(
                logging.WARNING,
                SystemEvent(
                    event="control_command_failed",
                    message=f"Control command '{command}' failed: {e}",
                    socket_path=str(self._endpoint.socket_path),
                    error_type=type(e).__name__,
                    error_message=str(e),
                    details={"command": command},
                ),
                _logger,
            )
            return encode_error(e)

    async def _run_stop(self) -> None:
        try:
            await self._handlers.stop()
        except Exception as e:
            log_event(
                logging.WARNING,
                SystemEvent(
                    event="control_stop_failed",
                    message=f"Stop via control socket failed: {e}",
                    socket_path=str(self._endpoint.socket_path),
                    error_type=type(e).__name__,
                    error_message=str(e),
                ),
                _logger,
            )

    @staticmethod
    async def _send(writer: asyncio.StreamWriter, reply: str) -> None:
        writer.write(encode_reply(reply))
        await writer.drain()

    @staticmethod
    async def _close_writer(writer: asyncio.StreamWriter) -> None:
        try:
            writer.close()
            await writer.wait_closed()
        except OSError:
            pass  # Client already gone

    async def close(self) -> None:
        """Stop accepting connections and remove the socket file.

        Waits for the listener to finish closing before unlinking. The file
        is only removed if it is still the one this channel created: a newer
        instance may have replaced it. Safe to call more than once.
        """
        if self._closed:
            return
        self._closed = True

        if self._server is not None:
            self._server.close()
            try:
                await asyncio.wait_for(self._server.wait_closed(), CHANNEL_CLOSE_TIMEOUT_SECONDS)
            except asyncio.TimeoutError:
                log_event(
                    logging.WARNING,
                    SystemEvent(
                        event="control_close_timeout",
                        message="Timed out waiting for control connections to finish",
                        socket_path=str(self._endpoint.socket_path),
                    ),
                    _logger,
                )

        self._unlink_own_socket()

    def _unlink_own_socket(self) -> None:
        socket_path = self._endpoint.socket_path
        try:
            current_inode = os.stat(socket_path).st_ino
        except FileNotFoundError:
            return
        if self._inode is not None and current_inode != self._inode:
            _logger.debug("Socket %s was replaced by another instance, leaving it", socket_path)
            return
        socket_path.unlink(missing_ok=True)

    async def __aenter__(self) -> "ControlChannel":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()
