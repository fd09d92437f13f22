"""Polling helpers.

Async counterpart of the sync wait loop used by the CLI: polls a
condition on the event loop without blocking other tasks.
"""

from __future__ import annotations

__all__ = [
    "wait_for_condition",
    "wait_for_condition_async",
]

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable

# Default poll interval for condition waiting (seconds)
DEFAULT_POLL_INTERVAL_SECONDS = 0.1


def wait_for_condition(
    condition_fn: Callable[[], bool],
    timeout_seconds: float,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> bool:
    """Wait for a condition to become true.

    Polls the condition function until it returns True or timeout is reached.

    Args:
        condition_fn: Function that returns True when condition is met.
        timeout_seconds: Maximum time to wait.
        poll_interval: Time between condition checks.

    Returns:
        True if condition was met within timeout, False otherwise.
    """
    start_time = time.monotonic()
    while time.monotonic() - start_time < timeout_seconds:
        if condition_fn():
            return True
        time.sleep(poll_interval)
    return condition_fn()


async def wait_for_condition_async(
    condition_fn: Callable[[], bool | Awaitable[bool]],
    timeout_seconds: float,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
) -> bool:
    """Async version of wait_for_condition().

    The condition may be a coroutine function, for checks that must not
    block the event loop.

    Returns:
        True if condition was met within timeout, False otherwise.
    """
    start_time = time.monotonic()
    while time.monotonic() - start_time < timeout_seconds:
        if await _check(condition_fn):
            return True
        await asyncio.sleep(poll_interval)
    return await _check(condition_fn)


async def _check(condition_fn: Callable[[], bool | Awaitable[bool]]) -> bool:
    result = condition_fn()
    if inspect.isawaitable(result):
        result = await result
    return bool(result)
