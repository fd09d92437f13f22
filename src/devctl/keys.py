"""Single-key interactive controls on the controlling terminal.

Puts the terminal in cbreak mode and reads key presses from the event
loop, so key handling never blocks socket or child-process work. When
stdin is not a TTY (piped, or run under a task runner), /dev/tty is
used instead; with no terminal at all, key controls are simply off.

Default bindings used by the supervisor and orchestrator:
- r: restart
- q, Ctrl-C: stop
- o: open the URL in a browser
"""

from __future__ import annotations

__all__ = [
    "CTRL_C",
    "KeyControls",
]

import asyncio
import inspect
import logging
import os
import sys
import termios
import tty
from collections.abc import Awaitable, Callable, Mapping
from typing import IO

from devctl.constants import APP_NAME
from devctl.log_config import log_event
from devctl.models import SystemEvent

_logger = logging.getLogger(f"{APP_NAME}.keys")

CTRL_C = "\x03"

KeyAction = Callable[[], Awaitable[object] | object]


class KeyControls:
    """Dispatch single key presses to actions.

    Actions may be sync or async. Async actions run as tasks so a slow
    restart does not stop further keys from being read; the task set is
    kept so tasks are not garbage-collected mid-flight.

    Usage:
        keys = KeyControls({"r": supervisor.restart, "q": supervisor.stop})
        keys.start()
        ...
        keys.close()
    """

    def __init__(self, bindings: Mapping[str, KeyAction]) -> None:
        self._bindings = dict(bindings)
        self._tasks: set[asyncio.Task[object]] = set()
        self._stream: IO[bytes] | None = None
        self._owns_stream = False
        self._fd: int | None = None
        self._saved_attrs: list | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    @property
    def active(self) -> bool:
        """True while reading keys from a terminal."""
        return self._fd is not None

    def start(self) -> bool:
        """Start reading keys from the terminal.

        Returns:
            True if a terminal was found and key controls are active.
        """
        if self._fd is not None:
            return True
        stream, owned = self._open_terminal()
        if stream is None:
            return False

        fd = stream.fileno()
        try:
            self._saved_attrs = termios.tcgetattr(fd)
            tty.setcbreak(fd)
        except termios.error as e:
            _logger.debug("Terminal does not support cbreak mode: %s", e)
            if owned:
                stream.close()
            return False

        self._stream, self._owns_stream, self._fd = stream, owned, fd
        self._loop = asyncio.get_running_loop()
        self._loop.add_reader(fd, self._on_readable)
        return True

    @staticmethod
    def _open_terminal() -> tuple[IO[bytes] | None, bool]:
        if sys.stdin is not None and sys.stdin.isatty():
            return sys.stdin.buffer, False
        try:
            return open("/dev/tty", "rb", buffering=0), True
        except OSError:
            return None, False

    def _on_readable(self) -> None:
        assert self._fd is not None
        try:
            data = os.read(self._fd, 32)
        except OSError:
            return
        if not data:
            # Terminal went away
            self.close()
            return
        for key in data.decode("utf-8", errors="ignore"):
            self.dispatch(key)

    def dispatch(self, key: str) -> None:
        """Run the action bound to key, if any."""
        action = self._bindings.get(key)
        if action is None:
            return
        try:
            result = action()
        except Exception as e:
            self._report_failure(key, e)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._on_task_done(key))

    def _on_task_done(self, key: str) -> Callable[[asyncio.Task[object]], None]:
        def callback(task: asyncio.Task[object]) -> None:
            self._tasks.discard(task)
            if task.cancelled():
                return
            error = task.exception()
            if error is not None:
                self._report_failure(key, error)

        return callback

    @staticmethod
    def _report_failure(key: str, error: BaseException) -> None:
        log_event(
            logging.WARNING,
            SystemEvent(
                event="key_action_failed",
                message=f"Action for key '{key}' failed: {error}",
                error_type=type(error).__name__,
                error_message=str(error),
            ),
            _logger,
        )

    def close(self) -> None:
        """Stop reading keys and restore the terminal. Safe to call more than once."""
        if self._fd is None:
            return
        fd, self._fd = self._fd, None
        if self._loop is not None:
            self._loop.remove_reader(fd)
        if self._saved_attrs is not None:
            try:
                termios.tcsetattr(fd, termios.TCSADRAIN, self._saved_attrs)
            except termios.error:
                pass  # Terminal already gone
        if self._owns_stream and self._stream is not None:
            self._stream.close()
        self._stream = None
