"""Supervised HTTP service.

The supervisor treats the service it runs as an opaque RunningService:
something with a port, a URL and an async stop(). The stock
implementation serves an ASGI app with uvicorn on a socket that has
already been bound by the port allocator, so port selection and the
"address in use" retry stay outside uvicorn.
"""

from __future__ import annotations

__all__ = [
    "RunningService",
    "ServiceFactory",
    "UvicornService",
    "format_url",
    "uvicorn_service_factory",
]

import asyncio
import contextlib
import logging
import socket
from collections.abc import Awaitable, Callable, Iterator
from typing import Any, Protocol

import uvicorn

from devctl.constants import (
    APP_NAME,
    SERVICE_SHUTDOWN_TIMEOUT_SECONDS,
    SERVICE_STARTUP_TIMEOUT_SECONDS,
)
from devctl.log_config import log_event
from devctl.models import SystemEvent

_logger = logging.getLogger(f"{APP_NAME}.service")

# Poll interval while waiting for uvicorn to report startup (seconds)
_STARTUP_POLL_INTERVAL_SECONDS = 0.02


class RunningService(Protocol):
    """Handle for the currently bound listener."""

    @property
    def port(self) -> int: ...

    @property
    def url(self) -> str: ...

    async def stop(self) -> None: ...


# Turns a bound, listening socket into a live service
ServiceFactory = Callable[[socket.socket], Awaitable[RunningService]]


def format_url(host: str, port: int) -> str:
    """Build the browsable URL for a bound host/port.

    Loopback and wildcard binds are shown as localhost.
    """
    if host in ("127.0.0.1", "0.0.0.0", "::", "::1", "", "localhost"):
        host = "localhost"
    elif ":" in host:
        host = f"[{host}]"
    return f"http://{host}:{port}"


class _Server(uvicorn.Server):
    """uvicorn server that leaves signal handling to the supervisor."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class UvicornService:
    """An ASGI app served by uvicorn on a pre-bound socket.

    Usage:
        service = await UvicornService.start(app, sock)
        print(service.url)
        await service.stop()
    """

    def __init__(self, server: uvicorn.Server, sock: socket.socket) -> None:
        self._server = server
        self._sock = sock
        self._task: asyncio.Task[None] | None = None
        host, port = sock.getsockname()[:2]
        self._port: int = port
        self._url = format_url(host, port)
        self._stopped = False

    @property
    def port(self) -> int:
        return self._port

    @property
    def url(self) -> str:
        return self._url

    @classmethod
    async def start(
        cls,
        app: Any,
        sock: socket.socket,
        timeout: float = SERVICE_STARTUP_TIMEOUT_SECONDS,
        **uvicorn_options: Any,
    ) -> "UvicornService":
        """Serve app on sock and wait until uvicorn reports it is started.

        Args:
            app: ASGI application or "module:attr" import string.
            sock: Bound, listening socket (ownership is transferred).
            timeout: Maximum time to wait for startup.
            **uvicorn_options: Extra uvicorn.Config options.

        Returns:
            Live UvicornService.

        Raises:
            RuntimeError: If uvicorn exits or times out during startup.
        """
        options: dict[str, Any] = {"log_config": None, "lifespan": "auto"}
        options.update(uvicorn_options)
        server = _Server(uvicorn.Config(app, **options))
        service = cls(server, sock)
        service._task = asyncio.create_task(server.serve(sockets=[sock]))

        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not server.started:
            if service._task.done():
                sock.close()
                error = None if service._task.cancelled() else service._task.exception()
                raise RuntimeError(f"Server on port {service.port} exited during startup") from error
            if loop.time() > deadline:
                await service.stop()
                raise RuntimeError(f"Server on port {service.port} did not start within {timeout:.0f}s")
            await asyncio.sleep(_STARTUP_POLL_INTERVAL_SECONDS)
        return service

    async def stop(self) -> None:
        """Shut uvicorn down and release the port. Safe to call more than once."""
        if self._stopped:
            return
        self._stopped = True

        self._server.should_exit = True
        if self._task is not None:
            try:
                await asyncio.wait_for(asyncio.shield(self._task), SERVICE_SHUTDOWN_TIMEOUT_SECONDS)
            except asyncio.TimeoutError:
                log_event(
                    logging.WARNING,
                    SystemEvent(
                        event="service_shutdown_timeout",
                        message=f"Server on port {self._port} did not stop in time, cancelling",
                        port=self._port,
                    ),
                    _logger,
                )
                self._task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._task
            except asyncio.CancelledError:
                # Suppress only when the server task itself was cancelled
                if not self._task.cancelled():
                    self._close_socket()
                    raise
            except Exception as e:
                log_event(
                    logging.WARNING,
                    SystemEvent(
                        event="service_stop_error",
                        message=f"Server on port {self._port} stopped with an error: {e}",
                        port=self._port,
                        error_type=type(e).__name__,
                        error_message=str(e),
                    ),
                    _logger,
                )

        self._close_socket()

    def _close_socket(self) -> None:
        try:
            self._sock.close()
        except OSError:
            pass  # Non-critical cleanup


def uvicorn_service_factory(app: Any, **uvicorn_options: Any) -> ServiceFactory:
    """Build a ServiceFactory serving app with uvicorn.

    Args:
        app: ASGI application or "module:attr" import string.
        **uvicorn_options: Extra uvicorn.Config options.
    """

    async def factory(sock: socket.socket) -> RunningService:
        return await UvicornService.start(app, sock, **uvicorn_options)

    return factory
