"""Tests for single-key controls."""

from __future__ import annotations

import asyncio
from unittest.mock import MagicMock, patch

from devctl.keys import CTRL_C, KeyControls


class TestDispatch:
    """Tests for KeyControls.dispatch()."""

    async def test_sync_action(self) -> None:
        """Sync actions run immediately."""
        action = MagicMock()
        KeyControls({"o": action}).dispatch("o")
        action.assert_called_once_with()

    async def test_async_action_runs_as_task(self) -> None:
        """Async actions are scheduled without blocking dispatch."""
        done = asyncio.Event()

        async def restart() -> None:
            done.set()

        KeyControls({"r": restart}).dispatch("r")
        await asyncio.wait_for(done.wait(), 1.0)

    async def test_unbound_key_is_ignored(self) -> None:
        action = MagicMock()
        KeyControls({"q": action, CTRL_C: action}).dispatch("x")
        action.assert_not_called()

    async def test_failing_action_is_logged(self) -> None:
        """A failing async action logs key_action_failed instead of raising."""

        async def boom() -> None:
            raise RuntimeError("boom")

        with patch("devctl.keys.log_event") as mock_log:
            KeyControls({"r": boom}).dispatch("r")
            for _ in range(5):
                await asyncio.sleep(0)
        assert mock_log.call_args.args[1].event == "key_action_failed"


class TestTerminal:
    """Tests for terminal handling."""

    async def test_no_terminal_means_inactive(self) -> None:
        """Without a terminal, start() reports False and close() is a no-op."""
        keys = KeyControls({})
        with patch.object(KeyControls, "_open_terminal", return_value=(None, False)):
            assert keys.start() is False
        assert keys.active is False
        keys.close()
