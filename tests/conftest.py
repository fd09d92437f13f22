"""Shared fixtures for devctl tests."""

from __future__ import annotations

import shutil
import socket
import tempfile
from collections.abc import Iterator
from pathlib import Path

import pytest

from devctl.models import ControlEndpoint, PeerInfo


@pytest.fixture
def short_dir() -> Iterator[Path]:
    """Create a temporary directory with a short path (Unix socket limit ~104 chars)."""
    # Use /tmp directly for shorter paths (pytest tmp_path is too long for Unix sockets)
    tmpdir = tempfile.mkdtemp(prefix="dv_", dir="/tmp")
    yield Path(tmpdir)
    shutil.rmtree(tmpdir, ignore_errors=True)


@pytest.fixture
def control_dir(short_dir: Path) -> Path:
    """Control directory inside short_dir (not created yet)."""
    return short_dir / ".dev"


def make_endpoint(control_dir: Path, ident: str) -> ControlEndpoint:
    """Endpoint for identity id `ident` in control_dir."""
    return ControlEndpoint(directory=control_dir, socket_path=control_dir / f"{ident}.sock")


def free_port() -> int:
    """Ask the OS for a port that is free right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return s.getsockname()[1]


class StaticHandlers:
    """ControlHandlers double with canned replies that records calls."""

    def __init__(self, info: PeerInfo, url: str = "http://localhost:4000") -> None:
        self._info = info
        self.url = url
        self.restarts = 0
        self.stops = 0

    async def restart(self) -> str:
        self.restarts += 1
        return self.url

    async def stop(self) -> None:
        self.stops += 1

    def info(self) -> PeerInfo:
        return self._info
