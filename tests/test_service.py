"""Tests for the uvicorn-backed service and the demo app."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from devctl.demo import create_demo_app
from devctl.ports import bind_tcp_socket, is_port_in_use
from devctl.service import UvicornService, format_url

from conftest import free_port


class TestFormatUrl:
    """Tests for format_url()."""

    @pytest.mark.parametrize("host", ["127.0.0.1", "0.0.0.0", "::"])
    def test_local_binds_show_localhost(self, host: str) -> None:
        assert format_url(host, 3000) == "http://localhost:3000"

    def test_ipv6_is_bracketed(self) -> None:
        assert format_url("fe80::1", 3000) == "http://[fe80::1]:3000"

    def test_named_host(self) -> None:
        assert format_url("devbox.local", 8080) == "http://devbox.local:8080"


class TestDemoApp:
    """Tests for the built-in demo app."""

    def test_routes(self) -> None:
        client = TestClient(create_demo_app())
        assert client.get("/api/hello").json() == {"message": "Hello, world!", "method": "GET"}
        assert client.put("/api/hello").json()["method"] == "PUT"
        assert client.get("/api/hello/ada").json() == {"message": "Hello, ada!"}


class TestUvicornService:
    """Tests for UvicornService start/stop."""

    async def test_start_serve_stop(self) -> None:
        """Serves on the pre-bound socket and releases the port on stop."""
        port = free_port()
        service = await UvicornService.start(create_demo_app(), bind_tcp_socket("127.0.0.1", port), log_level="warning")
        try:
            assert service.port == port
            assert service.url == f"http://localhost:{port}"
            async with httpx.AsyncClient() as client:
                response = await client.get(f"http://127.0.0.1:{port}/api/hello/devctl")
            assert response.json() == {"message": "Hello, devctl!"}
        finally:
            await service.stop()
            await service.stop()
        assert is_port_in_use(port) is False

    async def test_caller_cancellation_propagates(self) -> None:
        """Cancelling the task that awaits stop() is not swallowed; the socket is still closed."""
        sock = bind_tcp_socket("127.0.0.1", free_port())
        service = UvicornService(MagicMock(), sock)
        service._task = asyncio.create_task(asyncio.sleep(30))
        stopper = asyncio.create_task(service.stop())
        await asyncio.sleep(0.05)
        stopper.cancel()
        try:
            with pytest.raises(asyncio.CancelledError):
                await stopper
            assert sock.fileno() == -1
        finally:
            service._task.cancel()

    async def test_cancelled_server_task_is_tolerated(self) -> None:
        """A server task cancelled elsewhere ends stop() normally."""
        sock = bind_tcp_socket("127.0.0.1", free_port())
        service = UvicornService(MagicMock(), sock)
        service._task = asyncio.create_task(asyncio.sleep(30))
        stopper = asyncio.create_task(service.stop())
        await asyncio.sleep(0.05)
        service._task.cancel()
        await asyncio.wait_for(stopper, 2.0)
        assert sock.fileno() == -1
