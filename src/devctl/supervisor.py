"""Single-service supervisor.

Owns the one "current" RunningService of a project instance and every
transition of it:

    IDLE -> STARTING -> LISTENING -> RESTARTING -> STARTING -> LISTENING ...
                                  \\-> STOPPING -> STOPPED

Restart and stop are methods on this object whether they are triggered
from a key press, the control socket, or a signal; all of them run on the
event loop, so `current` is never touched concurrently.

Startup coordinates with peers found in the control directory:
- a peer with this identity (a stale copy of this very project) is told to
  stop, and its port is reused once it has let go
- a peer with another identity keeps its port; allocation skips it
"""

from __future__ import annotations

__all__ = [
    "ServerSupervisor",
    "SupervisorState",
]

import asyncio
import logging
import signal
import webbrowser
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from devctl.constants import (
    APP_NAME,
    DEFAULT_HOST,
    PEER_QUERY_TIMEOUT_SECONDS,
    PEER_SHUTDOWN_TIMEOUT_SECONDS,
    RESTART_REPLY_TIMEOUT_SECONDS,
)
from devctl.control.channel import ControlChannel
from devctl.control.client import send_command
from devctl.control.protocol import CMD_RESTART, CMD_STOP, REPLY_OK, parse_reply
from devctl.control.registry import discover
from devctl.exceptions import BindConflictError, ControlProtocolError, SupervisorStateError
from devctl.keys import CTRL_C, KeyControls
from devctl.log_config import log_event
from devctl.models import ControlEndpoint, Identity, PeerInfo, SystemEvent
from devctl.ports import allocate, bind_tcp_socket, is_port_in_use
from devctl.service import RunningService, ServiceFactory
from devctl.utils.waiting import wait_for_condition_async

_logger = logging.getLogger(f"{APP_NAME}.supervisor")


class SupervisorState(str, Enum):
    """Lifecycle states of a ServerSupervisor."""

    IDLE = "idle"
    STARTING = "starting"
    LISTENING = "listening"
    RESTARTING = "restarting"
    STOPPING = "stopping"
    STOPPED = "stopped"


def open_url(url: str) -> bool:
    """Open url in the platform browser. Best-effort.

    Returns:
        True if a browser was launched.
    """
    try:
        opened = webbrowser.open(url)
    except (webbrowser.Error, OSError) as e:
        log_event(
            logging.WARNING,
            SystemEvent(
                event="browser_open_failed",
                message=f"Could not open browser for {url}: {e}",
                url=url,
                error_type=type(e).__name__,
                error_message=str(e),
            ),
            _logger,
        )
        return False
    if opened:
        log_event(
            logging.INFO,
            SystemEvent(event="browser_opened", message=f"Opened browser to {url}", url=url),
            _logger,
        )
    return opened


class ServerSupervisor:
    """Supervises one in-process server behind a control socket.

    Usage:
        supervisor = ServerSupervisor(factory, identity, endpoint)
        await supervisor.run(base_port=3000)

    Or piecewise (tests):
        await supervisor.start(3000)
        url = await supervisor.restart()
        await supervisor.stop()
    """

    def __init__(
        self,
        service_factory: ServiceFactory,
        identity: Identity,
        endpoint: ControlEndpoint,
        *,
        host: str = DEFAULT_HOST,
        peer_timeout: float = PEER_QUERY_TIMEOUT_SECONDS,
        peer_shutdown_timeout: float = PEER_SHUTDOWN_TIMEOUT_SECONDS,
        opener: Callable[[str], object] = open_url,
        announce: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize the supervisor.

        Args:
            service_factory: Turns a bound socket into a live RunningService.
            identity: This instance's identity.
            endpoint: This instance's control socket location.
            host: Interface to bind.
            peer_timeout: Per-peer `info` timeout during discovery.
            peer_shutdown_timeout: Wait for an evicted peer to release its port.
            opener: Browser launcher used by the `o` key.
            announce: Sink for user-facing status lines (default: log at INFO).
        """
        self._factory = service_factory
        self._identity = identity
        self._endpoint = endpoint
        self._host = host
        self._peer_timeout = peer_timeout
        self._peer_shutdown_timeout = peer_shutdown_timeout
        self._opener = opener
        self._announce = announce

        self._state = SupervisorState.IDLE
        self._current: RunningService | None = None
        self._restart_task: asyncio.Task[str] | None = None
        self._stopped = asyncio.Event()
        self._channel: ControlChannel | None = None
        self._keys: KeyControls | None = None

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SupervisorState:
        return self._state

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def endpoint(self) -> ControlEndpoint:
        return self._endpoint

    @property
    def current(self) -> RunningService | None:
        """The live service, or None while nothing is bound."""
        return self._current

    @property
    def url(self) -> str | None:
        return self._current.url if self._current is not None else None

    @property
    def port(self) -> int | None:
        return self._current.port if self._current is not None else None

    def info(self) -> PeerInfo:
        """Status snapshot served to `info` queries."""
        return PeerInfo(
            id=self._identity.id,
            name=self._identity.name,
            port=self.port,
            url=self.url,
            socket=str(self._endpoint.socket_path),
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def start(self, base_port: int, allow_restart_existing: bool = True) -> RunningService:
        """Discover peers, then bind the first usable port from base_port.

        Args:
            base_port: First port to try.
            allow_restart_existing: Stop a running copy of this identity and
                take over instead of binding next to it. Only cold starts do
                this; restarts never evict anyone.

        Returns:
            The new current service.

        Raises:
            SupervisorStateError: If a service is already live or we are stopped.
            PortExhaustionError: If no port up to 65535 could be bound.
        """
        if self._current is not None:
            raise SupervisorStateError("Server is already running")
        if self._state in (SupervisorState.STOPPING, SupervisorState.STOPPED):
            raise SupervisorStateError(f"Cannot start: supervisor is {self._state.value}")

        self._state = SupervisorState.STARTING
        try:
            peers = await self._discover()
            if allow_restart_existing and await self._evict_same_identity(peers):
                peers = await self._discover()

            async def bind(port: int) -> RunningService:
                peer = peers.get(port)
                if peer is not None:
                    self._log_peer_conflict(port, peer)
                    raise BindConflictError(port, peer)
                sock = bind_tcp_socket(self._host, port)
                try:
                    return await self._factory(sock)
                except BaseException:
                    sock.close()
                    raise

            service = await allocate(base_port, bind)
        except BaseException:
            if self._state == SupervisorState.STARTING:
                self._state = SupervisorState.IDLE
            raise

        if self._state in (SupervisorState.STOPPING, SupervisorState.STOPPED):
            # stop() ran while we were binding; do not leave a live server behind
            await service.stop()
            raise SupervisorStateError("Supervisor stopped during startup")

        self._current = service
        self._state = SupervisorState.LISTENING
        log_event(
            logging.INFO,
            SystemEvent(
                event="server_started",
                message=f"Server running at {service.url}",
                identity=self._identity.id,
                port=service.port,
                url=service.url,
            ),
            _logger,
        )
        return service

    def _log_peer_conflict(self, port: int, peer: PeerInfo) -> None:
        log_event(
            logging.INFO,
            SystemEvent(
                event="peer_port_skipped",
                message=f"Port {port} is used by {peer.id}, trying {port + 1}",
                identity=self._identity.id,
                port=port,
                socket_path=peer.socket,
            ),
            _logger,
        )

    async def restart(self) -> str:
        """Restart the server in place, preferring the port it had.

        A restart requested while another is in flight joins that restart
        and returns its URL instead of starting a second cycle.

        Returns:
            URL of the new server.

        Raises:
            SupervisorStateError: If the server is not running.
        """
        if self._restart_task is not None and not self._restart_task.done():
            return await asyncio.shield(self._restart_task)
        if self._state != SupervisorState.LISTENING or self._current is None:
            raise SupervisorStateError(f"Cannot restart: supervisor is {self._state.value}")

        self._restart_task = asyncio.create_task(self._do_restart())
        return await asyncio.shield(self._restart_task)

    async def _do_restart(self) -> str:
        assert self._current is not None
        preferred_port = self._current.port
        self._state = SupervisorState.RESTARTING

        old, self._current = self._current, None
        # The old listener must be gone before we try to bind its port again
        await old.stop()

        if self._state != SupervisorState.RESTARTING:
            raise SupervisorStateError("Supervisor stopped during restart")

        service = await self.start(preferred_port, allow_restart_existing=False)
        self._say(f"Server restarted at {service.url}")
        return service.url

    async def stop(self) -> None:
        """Stop the server. Terminal: the supervisor cannot be started again."""
        if self._state in (SupervisorState.STOPPING, SupervisorState.STOPPED):
            await self._stopped.wait()
            return
        self._state = SupervisorState.STOPPING

        current, self._current = self._current, None
        try:
            if current is not None:
                await current.stop()
        finally:
            self._state = SupervisorState.STOPPED
            self._stopped.set()
            log_event(
                logging.INFO,
                SystemEvent(event="server_stopped", message="Server stopped", identity=self._identity.id),
                _logger,
            )

    async def wait_stopped(self) -> None:
        """Wait until stop() has completed."""
        await self._stopped.wait()

    def open_browser(self) -> None:
        """Open the current URL in a browser (best-effort)."""
        url = self.url
        if url is None:
            _logger.info("No server URL yet")
            return
        try:
            self._opener(url)
        except Exception as e:
            _logger.debug("Browser launcher failed for %s: %s", url, e)

    # ------------------------------------------------------------------
    # Peers
    # ------------------------------------------------------------------

    async def _discover(self) -> dict[int, PeerInfo]:
        # Before our channel is open, a socket at our own path belongs to a
        # previous copy of this identity and must be seen.
        own_socket = self._endpoint.socket_path if self._channel is not None and self._channel.is_open else None
        return await discover(
            self._endpoint.directory,
            exclude=own_socket,
            timeout=self._peer_timeout,
        )

    async def _peer_released(self, port: int, peer_socket: Path) -> bool:
        if peer_socket.exists():
            return False
        return not await asyncio.to_thread(is_port_in_use, port, self._host)

    async def _evict_same_identity(self, peers: dict[int, PeerInfo]) -> bool:
        """Ask running copies of this identity to stop and wait for them.

        Returns:
            True if any peer was asked to stop.
        """
        evicted = False
        for port, peer in sorted(peers.items()):
            if peer.id != self._identity.id or peer.socket is None:
                continue
            reply = await send_command(peer.socket, CMD_STOP, timeout=self._peer_timeout)
            log_event(
                logging.INFO,
                SystemEvent(
                    event="peer_evicted",
                    message=f"Stopping existing {peer.id} on port {port}",
                    identity=self._identity.id,
                    port=port,
                    socket_path=peer.socket,
                    details={"reply": reply},
                ),
                _logger,
            )
            if reply != REPLY_OK:
                continue
            evicted = True
            peer_socket = Path(peer.socket)
            released = await wait_for_condition_async(
                lambda: self._peer_released(port, peer_socket),
                self._peer_shutdown_timeout,
            )
            if not released:
                log_event(
                    logging.WARNING,
                    SystemEvent(
                        event="peer_shutdown_slow",
                        message=f"{peer.id} still holds port {port}, a later port will be used",
                        identity=self._identity.id,
                        port=port,
                    ),
                    _logger,
                )
        return evicted

    async def notify_existing(self) -> str | None:
        """Ask an instance already serving this endpoint to restart.

        Returns:
            The restarted instance's URL, or None if no instance answered.

        Raises:
            ControlProtocolError: If the instance answered with an error.
        """
        reply = await send_command(self._endpoint.socket_path, CMD_RESTART, timeout=RESTART_REPLY_TIMEOUT_SECONDS)
        if reply is None:
            return None
        ok, payload = parse_reply(reply)
        if not ok:
            raise ControlProtocolError(payload)
        return payload

    # ------------------------------------------------------------------
    # Full lifecycle
    # ------------------------------------------------------------------

    async def run(self, base_port: int, *, keys: bool = True, handle_signals: bool = True) -> None:
        """Start, serve control commands until stopped, then tear down.

        Args:
            base_port: First port to try.
            keys: Enable r/q/o key controls on the terminal.
            handle_signals: Map SIGINT/SIGTERM to stop().

        Raises:
            PortExhaustionError: If no port could be bound (fatal).
        """
        await self.start(base_port, allow_restart_existing=True)
        loop = asyncio.get_running_loop()
        installed: list[int] = []
        try:
            self._channel = await ControlChannel.open(self._endpoint, self)
            if handle_signals:
                for signum in (signal.SIGINT, signal.SIGTERM):
                    try:
                        loop.add_signal_handler(signum, self._on_signal, signum)
                        installed.append(signum)
                    except (NotImplementedError, RuntimeError):
                        pass  # Not the main thread / unsupported platform
            if keys:
                self._keys = KeyControls(
                    {
                        "r": self.restart,
                        "q": self.stop,
                        CTRL_C: self.stop,
                        "o": self.open_browser,
                    }
                )
                if self._keys.start():
                    self._say("Controls: press r to restart, o to open, q to quit")
            await self.wait_stopped()
        finally:
            for signum in installed:
                loop.remove_signal_handler(signum)
            if self._keys is not None:
                self._keys.close()
            if self._state not in (SupervisorState.STOPPING, SupervisorState.STOPPED):
                await self.stop()
            if self._channel is not None:
                await self._channel.close()

    def _on_signal(self, signum: int) -> None:
        log_event(
            logging.INFO,
            SystemEvent(
                event="shutdown_signal_received",
                message=f"Received signal {signum}, shutting down",
                details={"signal": signum},
            ),
            _logger,
        )
        asyncio.ensure_future(self.stop())

    def _say(self, line: str) -> None:
        if self._announce is not None:
            self._announce(line)
        else:
            _logger.info(line)
