"""Tests for send_command and peer discovery."""

from __future__ import annotations

import asyncio
from pathlib import Path

from devctl.control.channel import ControlChannel
from devctl.control.client import send_command
from devctl.control.registry import Responsive, Unresponsive, discover, list_control_sockets, scan
from devctl.models import PeerInfo

from conftest import StaticHandlers, make_endpoint


async def _silent_server(socket_path: Path) -> asyncio.AbstractServer:
    """Accept connections and never reply (until the client hangs up)."""

    async def handle(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        await reader.read()
        writer.close()

    return await asyncio.start_unix_server(handle, path=str(socket_path))


class TestSendCommand:
    """Tests for send_command()."""

    async def test_missing_socket(self, control_dir: Path) -> None:
        """No socket file -> None, without connecting."""
        assert await send_command(control_dir / "nope.sock", "info") is None

    async def test_refused(self, control_dir: Path) -> None:
        """A plain file where a socket should be -> None."""
        control_dir.mkdir()
        fake = control_dir / "dead.sock"
        fake.touch()
        assert await send_command(fake, "info") is None

    async def test_timeout(self, control_dir: Path) -> None:
        """A peer that never answers -> None after the timeout."""
        control_dir.mkdir()
        socket_path = control_dir / "silent.sock"
        server = await _silent_server(socket_path)
        try:
            assert await send_command(socket_path, "info", timeout=0.2) is None
        finally:
            server.close()
            await server.wait_closed()


class TestDiscover:
    """Tests for scan() and discover()."""

    async def test_missing_directory(self, control_dir: Path) -> None:
        """A control directory that doesn't exist means no peers."""
        assert list_control_sockets(control_dir) == []
        assert await discover(control_dir) == {}

    async def test_maps_ports_and_skips_silent_peers(self, control_dir: Path) -> None:
        """Responsive peers map by port; silent and portless peers are excluded."""
        web = PeerInfo(id="web-aaaaaa", name="web", port=4000, url="http://localhost:4000")
        orchestrator = PeerInfo(id="workspaces-bbbbbb", name="workspaces", port=None)
        web_channel = await ControlChannel.open(make_endpoint(control_dir, web.id), StaticHandlers(web))
        orch_channel = await ControlChannel.open(
            make_endpoint(control_dir, orchestrator.id), StaticHandlers(orchestrator)
        )
        silent = await _silent_server(control_dir / "zombie-cccccc.sock")
        try:
            peers = await discover(control_dir, timeout=0.3)
            assert set(peers) == {4000}
            assert peers[4000].id == "web-aaaaaa"
            assert peers[4000].socket == str(web_channel.socket_path)

            results = await scan(control_dir, timeout=0.3)
            assert sum(isinstance(r, Responsive) for r in results) == 2
            assert [r.socket for r in results if isinstance(r, Unresponsive)] == [
                str(control_dir / "zombie-cccccc.sock")
            ]
        finally:
            silent.close()
            await silent.wait_closed()
            await web_channel.close()
            await orch_channel.close()

    async def test_exclude_own_socket(self, control_dir: Path) -> None:
        """The caller's own socket can be skipped."""
        web = PeerInfo(id="web-aaaaaa", name="web", port=4000)
        endpoint = make_endpoint(control_dir, web.id)
        async with await ControlChannel.open(endpoint, StaticHandlers(web)):
            assert await discover(control_dir, exclude=endpoint.socket_path) == {}
            assert set(await discover(control_dir)) == {4000}
