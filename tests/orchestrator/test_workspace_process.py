"""Tests for WorkspaceProcess (one workspace child)."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from devctl.exceptions import ChildProcessFailure
from devctl.models import Workspace
from devctl.orchestrator.process import WorkspaceProcess, extract_url
from devctl.utils.waiting import wait_for_condition_async


def python_workspace(name: str, directory: Path, script: str) -> Workspace:
    """Workspace running an inline Python script (unbuffered)."""
    return Workspace(name=name, dir=directory, command=(sys.executable, "-u", "-c", script))


SERVE_SCRIPT = "import time; print('ready on http://localhost:4100/.'); time.sleep(60)"


class TestExtractUrl:
    """Tests for extract_url()."""

    @pytest.mark.parametrize(
        ("line", "expected"),
        [
            ("Local:   http://localhost:5173/", "http://localhost:5173/"),
            ("Server running at http://127.0.0.1:4100.", "http://127.0.0.1:4100"),
            ("(see https://example.test/docs)", "https://example.test/docs"),
            ("\x1b[32mhttp://localhost:3000\x1b[0m", "http://localhost:3000"),
            ("compiled in 120ms", None),
        ],
    )
    def test_extract(self, line: str, expected: str | None) -> None:
        assert extract_url(line) == expected


class TestWorkspaceProcess:
    """Tests for spawning, output pumping and stopping."""

    async def test_labels_output_and_reports_url(self, tmp_path: Path) -> None:
        lines: list[str] = []
        urls: list[tuple[str, str]] = []
        child = WorkspaceProcess(
            python_workspace("web", tmp_path, SERVE_SCRIPT),
            emit=lines.append,
            on_url=lambda name, url: urls.append((name, url)),
        )
        assert await child.start()
        try:
            assert await wait_for_condition_async(lambda: bool(urls), 10.0)
            assert lines[0] == "[web] ready on http://localhost:4100/."
            assert urls == [("web", "http://localhost:4100/")]
        finally:
            await child.stop()
        assert not child.running

    async def test_stop_is_not_a_failure(self, tmp_path: Path) -> None:
        """Exit caused by stop() is not reported as a failure."""
        failures: list[ChildProcessFailure] = []
        child = WorkspaceProcess(
            python_workspace("web", tmp_path, SERVE_SCRIPT),
            emit=lambda line: None,
            on_failure=failures.append,
        )
        await child.start()
        returncode = await child.stop()
        assert returncode is not None and returncode != 0
        assert failures == []

    async def test_nonzero_exit_reported(self, tmp_path: Path) -> None:
        """A crash prints `[name] exited with code N` and calls on_failure."""
        lines: list[str] = []
        failures: list[ChildProcessFailure] = []
        child = WorkspaceProcess(
            python_workspace("api", tmp_path, "import sys; print('boom'); sys.exit(3)"),
            emit=lines.append,
            on_failure=failures.append,
        )
        await child.start()
        assert await child.wait() == 3
        assert lines == ["[api] boom", "[api] exited with code 3"]
        assert failures[0].returncode == 3

    async def test_spawn_failure_reported(self, tmp_path: Path) -> None:
        """A missing executable is reported, not raised."""
        lines: list[str] = []
        workspace = Workspace(name="ghost", dir=tmp_path, command=("/nonexistent/devctl-test-binary",))
        child = WorkspaceProcess(workspace, emit=lines.append)
        assert await child.start() is False
        assert lines[0].startswith("[ghost] failed to start:")
        assert await child.stop() is None

    async def test_sigkill_after_grace_period(self, tmp_path: Path) -> None:
        """A child ignoring SIGTERM is killed."""
        script = (
            "import signal, time; signal.signal(signal.SIGTERM, signal.SIG_IGN); "
            "print('ignoring', flush=True); time.sleep(60)"
        )
        lines: list[str] = []
        child = WorkspaceProcess(python_workspace("stubborn", tmp_path, script), emit=lines.append, stop_timeout=0.5)
        await child.start()
        assert await wait_for_condition_async(lambda: bool(lines), 10.0)
        assert await child.stop() == -9

    async def test_oversized_line_does_not_stop_output(self, tmp_path: Path) -> None:
        """A line longer than the stream buffer is split; later lines and URLs still arrive."""
        script = (
            "import sys, time; sys.stdout.write('x' * 200000 + '\\n'); "
            "print('after http://localhost:4100'); time.sleep(60)"
        )
        lines: list[str] = []
        urls: list[tuple[str, str]] = []
        child = WorkspaceProcess(
            python_workspace("bundler", tmp_path, script),
            emit=lines.append,
            on_url=lambda name, url: urls.append((name, url)),
        )
        await child.start()
        try:
            assert await wait_for_condition_async(lambda: bool(urls), 10.0)
            assert lines[-1] == "[bundler] after http://localhost:4100"
            long_chunks = [line.removeprefix("[bundler] ") for line in lines[:-1]]
            assert "".join(long_chunks) == "x" * 200000
            assert urls == [("bundler", "http://localhost:4100")]
        finally:
            await child.stop()
        assert not child.running
