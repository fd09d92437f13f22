"""Supervise a set of workspace dev processes behind one control socket.

The orchestrator is the multi-process counterpart of ServerSupervisor. It
speaks the same control protocol (restart, stop, info) and binds the same
keys. The difference is that the children own their ports, so `info`
reports no port and discovery never treats an orchestrator as holding one.

A second `devctl dev` over the same set of workspaces finds the first
instance through the shared socket, asks it to restart, and exits.
"""

from __future__ import annotations

__all__ = [
    "WorkspaceOrchestrator",
]

import asyncio
import logging
import signal
import sys
from collections.abc import Callable, Sequence

from devctl.constants import APP_NAME, CHILD_STOP_TIMEOUT_SECONDS, RESTART_REPLY_TIMEOUT_SECONDS
from devctl.control.channel import ControlChannel
from devctl.control.client import send_command
from devctl.control.protocol import CMD_RESTART, parse_reply
from devctl.exceptions import ChildProcessFailure, ControlProtocolError, SupervisorStateError
from devctl.keys import CTRL_C, KeyControls
from devctl.log_config import log_event
from devctl.models import ControlEndpoint, Identity, PeerInfo, SystemEvent, Workspace
from devctl.orchestrator.process import WorkspaceProcess
from devctl.supervisor import open_url

_logger = logging.getLogger(f"{APP_NAME}.orchestrator")


def _write_line(line: str) -> None:
    sys.stdout.write(line + "\n")
    sys.stdout.flush()


class WorkspaceOrchestrator:
    """Run one child per workspace and multiplex their output.

    Usage:
        orchestrator = WorkspaceOrchestrator(workspaces, identity, endpoint)
        await orchestrator.run()
    """

    def __init__(
        self,
        workspaces: Sequence[Workspace],
        identity: Identity,
        endpoint: ControlEndpoint,
        *,
        emit: Callable[[str], None] = _write_line,
        opener: Callable[[str], object] = open_url,
        announce: Callable[[str], None] | None = None,
        stop_timeout: float = CHILD_STOP_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            workspaces: Workspaces to run, in display order.
            identity: Shared identity of this workspace set.
            endpoint: Control socket location.
            emit: Sink for labelled child output.
            opener: Browser launcher used by the `o` key.
            announce: Sink for status lines (default: log at INFO).
            stop_timeout: Per-child grace period before SIGKILL.
        """
        if not workspaces:
            raise ValueError("At least one workspace is required")
        self._workspaces = list(workspaces)
        self._identity = identity
        self._endpoint = endpoint
        self._emit = emit
        self._opener = opener
        self._announce = announce

        self.latest_urls: dict[str, str] = {}
        self.children: list[WorkspaceProcess] = [
            WorkspaceProcess(
                workspace,
                emit=emit,
                on_url=self._record_url,
                on_failure=self._record_failure,
                stop_timeout=stop_timeout,
            )
            for workspace in self._workspaces
        ]
        self.failures: list[ChildProcessFailure] = []

        self._restart_task: asyncio.Task[str] | None = None
        self._stopping = False
        self._stopped = asyncio.Event()
        self._channel: ControlChannel | None = None
        self._keys: KeyControls | None = None

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def endpoint(self) -> ControlEndpoint:
        return self._endpoint

    @property
    def stopped(self) -> bool:
        return self._stopped.is_set()

    def _record_url(self, name: str, url: str) -> None:
        if self.latest_urls.get(name) == url:
            return
        self.latest_urls[name] = url
        log_event(
            logging.DEBUG,
            SystemEvent(event="workspace_url", message=f"{name} is at {url}", workspace=name, url=url),
            _logger,
        )

    def _record_failure(self, failure: ChildProcessFailure) -> None:
        self.failures.append(failure)

    def first_url(self) -> str | None:
        """First known URL in workspace order."""
        for workspace in self._workspaces:
            url = self.latest_urls.get(workspace.name)
            if url is not None:
                return url
        return None

    def info(self) -> PeerInfo:
        return PeerInfo(
            id=self._identity.id,
            name=self._identity.name,
            port=None,
            url=self.first_url(),
            socket=str(self._endpoint.socket_path),
        )

    # ------------------------------------------------------------------
    # Children
    # ------------------------------------------------------------------

    async def start_all(self) -> None:
        """Spawn every child. A child that fails to spawn does not stop the rest."""
        for child in self.children:
            await child.start()
        log_event(
            logging.INFO,
            SystemEvent(
                event="workspaces_started",
                message=f"Started {', '.join(c.name for c in self.children)}",
                identity=self._identity.id,
            ),
            _logger,
        )

    async def stop_all(self) -> None:
        """Stop every child concurrently and wait for all of them to exit."""
        results = await asyncio.gather(*(child.stop() for child in self.children), return_exceptions=True)
        for child, result in zip(self.children, results):
            if isinstance(result, BaseException):
                log_event(
                    logging.WARNING,
                    SystemEvent(
                        event="workspace_stop_failed",
                        message=f"Failed to stop {child.name}: {result}",
                        workspace=child.name,
                        error_type=type(result).__name__,
                        error_message=str(result),
                    ),
                    _logger,
                )

    async def restart_all(self) -> str:
        """Stop every child, then start every child.

        A restart requested while another is in flight joins that restart.

        Returns:
            First known URL, or "" if no child has printed one.

        Raises:
            SupervisorStateError: If the orchestrator has been stopped.
        """
        if self._restart_task is not None and not self._restart_task.done():
            return await asyncio.shield(self._restart_task)
        if self._stopping:
            raise SupervisorStateError("Cannot restart: orchestrator is stopped")

        self._restart_task = asyncio.create_task(self._do_restart())
        return await asyncio.shield(self._restart_task)

    async def _do_restart(self) -> str:
        self._say("Restarting workspaces...")
        await self.stop_all()
        if self._stopping:
            raise SupervisorStateError("Orchestrator stopped during restart")
        # Failures describe the current round of children only
        self.failures.clear()
        await self.start_all()
        return self.first_url() or ""

    # ControlHandlers.restart
    async def restart(self) -> str:
        return await self.restart_all()

    async def stop(self) -> None:
        """Stop every child. Terminal."""
        if self._stopping:
            await self._stopped.wait()
            return
        self._stopping = True
        try:
            if self._restart_task is not None and not self._restart_task.done():
                # Let the restart finish spawning so no child is left behind
                await asyncio.wait([self._restart_task])
            await self.stop_all()
        finally:
            self._stopped.set()
            log_event(
                logging.INFO,
                SystemEvent(event="workspaces_stopped", message="Workspaces stopped", identity=self._identity.id),
                _logger,
            )

    async def wait_stopped(self) -> None:
        await self._stopped.wait()

    def open_first_url(self) -> None:
        """Open the first known URL in a browser (best-effort)."""
        url = self.first_url()
        if url is None:
            _logger.info("No workspace URL seen yet")
            return
        try:
            self._opener(url)
        except Exception as e:
            _logger.debug("Browser launcher failed for %s: %s", url, e)

    # ------------------------------------------------------------------
    # Full lifecycle
    # ------------------------------------------------------------------

    async def notify_existing(self) -> str | None:
        """Ask an orchestrator already serving this endpoint to restart.

        Returns:
            Its reply payload (first URL or ""), or None if nothing answered.

        Raises:
            ControlProtocolError: If it answered with an error.
        """
        reply = await send_command(self._endpoint.socket_path, CMD_RESTART, timeout=RESTART_REPLY_TIMEOUT_SECONDS)
        if reply is None:
            return None
        ok, payload = parse_reply(reply)
        if not ok:
            raise ControlProtocolError(payload)
        return payload

    async def run(self, *, keys: bool = True, handle_signals: bool = True) -> str | None:
        """Run until stopped, or hand off to an instance that is already running.

        Args:
            keys: Enable r/q/o key controls on the terminal.
            handle_signals: Map SIGINT/SIGTERM to stop().

        Returns:
            The existing instance's restart reply if one answered, else None
            once this orchestrator has stopped.
        """
        existing = await self.notify_existing()
        if existing is not None:
            log_event(
                logging.INFO,
                SystemEvent(
                    event="existing_instance_restarted",
                    message=f"Restarted running {self._identity.id}",
                    identity=self._identity.id,
                    url=existing or None,
                    socket_path=str(self._endpoint.socket_path),
                ),
                _logger,
            )
            return existing

        loop = asyncio.get_running_loop()
        installed: list[int] = []
        try:
            await self.start_all()
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
                        "r": self.restart_all,
                        "q": self.stop,
                        CTRL_C: self.stop,
                        "o": self.open_first_url,
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
            if not self._stopping:
                await self.stop()
            if self._channel is not None:
                await self._channel.close()
        return None

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
