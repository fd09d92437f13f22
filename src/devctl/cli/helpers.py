"""Shared helpers for devctl CLI commands."""

from __future__ import annotations

__all__ = [
    "ProjectContext",
    "resolve_project",
    "run_async",
]

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

from devctl.config import DevConfig, load_dev_config
from devctl.identity import control_endpoint, resolve_identity
from devctl.models import ControlEndpoint, Identity

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class ProjectContext:
    """Everything a command needs to know about the project in cwd."""

    root: Path
    config: DevConfig
    identity: Identity
    endpoint: ControlEndpoint


def resolve_project(control_socket: Path | None = None, root: Path | None = None) -> ProjectContext:
    """Resolve config, identity and control endpoint for a project directory.

    Args:
        control_socket: Explicit socket path (overrides the computed one).
        root: Project directory (default: current directory).
    """
    root = (root or Path.cwd()).resolve()
    config = load_dev_config(root)
    identity = resolve_identity(root)
    endpoint = control_endpoint(root, identity, control_socket=control_socket, control_dir=config.control_dir)
    return ProjectContext(root=root, config=config, identity=identity, endpoint=endpoint)


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine to completion from a sync click command."""
    return asyncio.run(coro)
