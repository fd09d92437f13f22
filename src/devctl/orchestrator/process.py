"""One supervised workspace child process.

Spawns the workspace command with stdout and stderr merged, then pumps
the output line by line. Each line is re-emitted as `[name] line` and
scanned for a URL so the orchestrator can open the workspace in a browser.
"""

from __future__ import annotations

__all__ = [
    "URL_PATTERN",
    "WorkspaceProcess",
    "extract_url",
    "read_output_line",
]

import asyncio
import contextlib
import logging
import os
import re
import signal
from collections.abc import Callable

from devctl.constants import APP_NAME, CHILD_STOP_TIMEOUT_SECONDS
from devctl.exceptions import ChildProcessFailure
from devctl.log_config import log_event
from devctl.models import SystemEvent, Workspace

_logger = logging.getLogger(f"{APP_NAME}.orchestrator.process")

URL_PATTERN = re.compile(r"https?://\S+")

# Closing punctuation that commonly trails a URL in log output
_URL_TRAILING = ".,;:!?)]}>\"'"

# Strip terminal color codes before matching
_ANSI_ESCAPE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")


def extract_url(line: str) -> str | None:
    """Return the first URL-shaped substring of a line, if any.

    Example:
        >>> extract_url("Server running at http://localhost:4100/.")
        'http://localhost:4100/'
    """
    match = URL_PATTERN.search(_ANSI_ESCAPE.sub("", line))
    if match is None:
        return None
    return match.group(0).rstrip(_URL_TRAILING) or None


async def read_output_line(stream: asyncio.StreamReader) -> bytes:
    """Read one line, or one buffer-sized chunk of an oversized line.

    A line longer than the stream limit comes back in pieces, each emitted
    as its own line, so the pipe keeps draining.

    Returns:
        Line bytes including any newline, or b"" at end of stream.
    """
    try:
        return await stream.readuntil(b"\n")
    except asyncio.IncompleteReadError as e:
        # EOF with an unterminated last line
        return e.partial
    except asyncio.LimitOverrunError as e:
        return await stream.read(e.consumed)


class WorkspaceProcess:
    """A running (or stopped) workspace child.

    Usage:
        child = WorkspaceProcess(workspace, emit=click.echo, on_url=record)
        await child.start()
        ...
        await child.stop()
    """

    def __init__(
        self,
        workspace: Workspace,
        emit: Callable[[str], None],
        on_url: Callable[[str, str], None] | None = None,
        on_failure: Callable[[ChildProcessFailure], None] | None = None,
        stop_timeout: float = CHILD_STOP_TIMEOUT_SECONDS,
    ) -> None:
        """Initialize the child wrapper.

        Args:
            workspace: What to run, and where.
            emit: Sink for labelled output lines.
            on_url: Called with (workspace name, url) for each URL seen.
            on_failure: Called when the child fails to spawn or exits non-zero.
            stop_timeout: Grace period between SIGTERM and SIGKILL.
        """
        self.workspace = workspace
        self._emit = emit
        self._on_url = on_url
        self._on_failure = on_failure
        self._stop_timeout = stop_timeout
        self._process: asyncio.subprocess.Process | None = None
        self._pump_task: asyncio.Task[None] | None = None
        self._stopping = False

    @property
    def name(self) -> str:
        return self.workspace.name

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    @property
    def returncode(self) -> int | None:
        return self._process.returncode if self._process is not None else None

    def _label(self, line: str) -> str:
        return f"[{self.name}] {line}"

    async def start(self) -> bool:
        """Spawn the workspace command.

        Returns:
            True if the process was spawned. A spawn failure is reported
            through the labelled output and on_failure, not raised.
        """
        self._stopping = False
        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.workspace.command,
                cwd=str(self.workspace.dir),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                start_new_session=True,
            )
        except OSError as e:
            self._fail(ChildProcessFailure(self.name, None, f"failed to start: {e}"))
            return False

        log_event(
            logging.DEBUG,
            SystemEvent(
                event="workspace_started",
                message=f"Started {self.name} (pid {self._process.pid}): {' '.join(self.workspace.command)}",
                workspace=self.name,
                details={"pid": self._process.pid, "cwd": str(self.workspace.dir)},
            ),
            _logger,
        )
        self._pump_task = asyncio.create_task(self._pump(self._process))
        return True

    async def _pump(self, process: asyncio.subprocess.Process) -> None:
        assert process.stdout is not None
        while True:
            raw = await read_output_line(process.stdout)
            if not raw:
                break
            line = raw.decode("utf-8", errors="replace").rstrip("\r\n")
            self._emit(self._label(line))
            url = extract_url(line)
            if url is not None and self._on_url is not None:
                self._on_url(self.name, url)

        returncode = await process.wait()
        if returncode != 0 and not self._stopping:
            self._fail(ChildProcessFailure(self.name, returncode))

    def _fail(self, failure: ChildProcessFailure) -> None:
        self._emit(self._label(failure.reason))
        log_event(
            logging.WARNING,
            SystemEvent(
                event="workspace_failed",
                message=str(failure),
                workspace=self.name,
                details={"returncode": failure.returncode},
            ),
            _logger,
        )
        if self._on_failure is not None:
            self._on_failure(failure)

    def _signal(self, signum: int) -> None:
        assert self._process is not None
        try:
            # start_new_session made the child a group leader; reach its children too
            os.killpg(self._process.pid, signum)
        except ProcessLookupError:
            pass
        except PermissionError:
            with contextlib.suppress(ProcessLookupError):
                self._process.send_signal(signum)

    async def stop(self) -> int | None:
        """Terminate the child and wait for it to exit.

        Sends SIGTERM, then SIGKILL after the grace period. Always waits for
        the exit and for the output pump to drain.

        Returns:
            Exit code, or None if the child never started.
        """
        process = self._process
        if process is None:
            return None
        self._stopping = True

        if process.returncode is None:
            self._signal(signal.SIGTERM)
            try:
                await asyncio.wait_for(process.wait(), self._stop_timeout)
            except asyncio.TimeoutError:
                log_event(
                    logging.WARNING,
                    SystemEvent(
                        event="workspace_kill",
                        message=f"{self.name} did not exit after SIGTERM, killing",
                        workspace=self.name,
                    ),
                    _logger,
                )
                self._signal(signal.SIGKILL)
                await process.wait()

        if self._pump_task is not None:
            try:
                await asyncio.wait_for(self._pump_task, self._stop_timeout)
            except asyncio.TimeoutError:
                # A grandchild still holds the pipe open
                self._pump_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await self._pump_task
            self._pump_task = None
        return process.returncode

    async def wait(self) -> int | None:
        """Wait for the child to exit on its own."""
        if self._process is None:
            return None
        returncode = await self._process.wait()
        if self._pump_task is not None:
            await self._pump_task
        return returncode
