"""Port allocation with collision avoidance.

Walks upward from a starting port until the supplied bind function
succeeds. "Address already in use", and a port owned by a discovered peer
(BindConflictError), are soft failures that move on to the next port.
Every other failure is fatal and propagates unchanged.
"""

from __future__ import annotations

__all__ = [
    "allocate",
    "bind_tcp_socket",
    "is_address_in_use",
    "is_port_in_use",
]

import errno
import logging
import socket
from collections.abc import Awaitable, Callable
from typing import TypeVar

from devctl.constants import APP_NAME, HTTP_LISTEN_BACKLOG, MAX_PORT
from devctl.exceptions import BindConflictError, PortExhaustionError
from devctl.log_config import log_event
from devctl.models import SystemEvent

_logger = logging.getLogger(f"{APP_NAME}.ports")

T = TypeVar("T")


def is_address_in_use(error: BaseException) -> bool:
    """Classify a bind failure as "address already in use".

    Args:
        error: Exception raised by a bind attempt.

    Returns:
        True if the failure is a retryable port collision.
    """
    if isinstance(error, BindConflictError):
        return True
    if isinstance(error, OSError) and error.errno == errno.EADDRINUSE:
        return True
    message = str(error)
    return "EADDRINUSE" in message or "address already in use" in message.lower()


async def allocate(start_port: int, bind: Callable[[int], Awaitable[T]]) -> T:
    """Bind the first usable port at or above start_port.

    Args:
        start_port: First port to try.
        bind: Async callable that binds a port and returns the listener.
            It must release anything it acquired before raising.

    Returns:
        Whatever bind returned for the first port that succeeded.

    Raises:
        PortExhaustionError: If every port up to 65535 collided.
        Exception: Any non-collision failure raised by bind.
    """
    port = start_port
    while port <= MAX_PORT:
        try:
            return await bind(port)
        except Exception as e:
            if not is_address_in_use(e):
                raise
            log_event(
                logging.DEBUG,
                SystemEvent(
                    event="port_collision",
                    message=f"Port {port} is in use, trying {port + 1}",
                    port=port,
                    error_type=type(e).__name__,
                    error_message=str(e),
                ),
                _logger,
            )
            port += 1
    raise PortExhaustionError(start_port)


def bind_tcp_socket(host: str, port: int) -> socket.socket:
    """Create a listening, non-blocking TCP socket.

    The socket is closed before re-raising if bind or listen fails, so
    failed attempts never leak a file descriptor.

    Args:
        host: Interface to bind.
        port: Port to bind.

    Returns:
        Listening socket.

    Raises:
        OSError: If bind fails (EADDRINUSE is retryable for allocate()).
    """
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(HTTP_LISTEN_BACKLOG)
        sock.setblocking(False)
    except BaseException:
        sock.close()
        raise
    return sock


def is_port_in_use(port: int, host: str = "127.0.0.1") -> bool:
    """Check if TCP port is accepting connections.

    Args:
        port: TCP port number to check.
        host: Host to probe.

    Returns:
        True if port is in use, False otherwise.
    """
    if host in ("0.0.0.0", ""):
        host = "127.0.0.1"
    elif host == "::":
        host = "::1"
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    with socket.socket(family, socket.SOCK_STREAM) as s:
        s.settimeout(0.5)
        return s.connect_ex((host, port)) == 0
