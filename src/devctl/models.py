"""Pydantic models for devctl.

This module contains two categories of models:

Domain Models (FrozenModel-based):
- FrozenModel: Base class for immutable models
- Identity: Stable name + directory hash for one project instance
- ControlEndpoint: Control directory and socket path of a supervised unit
- PeerInfo: Status snapshot reported by an instance over its control socket
- Workspace: A named child process definition for the orchestrator

Logging Models:
- SystemEvent: Structured log entries
"""

from __future__ import annotations

__all__ = [
    # Domain Models
    "ControlEndpoint",
    "FrozenModel",
    "Identity",
    "PeerInfo",
    "Workspace",
    # Logging Models
    "SystemEvent",
]

from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# Domain Models
# =============================================================================


class FrozenModel(BaseModel):
    """Base class for immutable Pydantic models.

    All domain models in this module inherit from this class to ensure
    immutability after creation.
    """

    model_config = ConfigDict(frozen=True)


class Identity(FrozenModel):
    """Stable identity of a project instance.

    Attributes:
        id: Name followed by a short hash of the working directory
            (e.g., "web-3f9a1c"). Also the control socket filename stem.
        name: Human-readable project name.
    """

    id: str
    name: str


class ControlEndpoint(FrozenModel):
    """Location of a control socket.

    Attributes:
        directory: Directory holding control sockets (created on open).
        socket_path: Full path of this unit's socket file.
    """

    directory: Path
    socket_path: Path


class PeerInfo(FrozenModel):
    """Status snapshot of a running instance.

    Returned by the `info` control command. Port and URL are None while
    the instance has nothing bound (mid-restart, or an orchestrator).

    Attributes:
        id: Identity id of the instance.
        name: Identity name of the instance.
        port: Bound TCP port, if any.
        url: Service URL, if known.
        socket: Control socket the snapshot was obtained from.
    """

    id: str
    name: str
    port: int | None = None
    url: str | None = None
    socket: str | None = None

    def wire_dict(self) -> dict[str, Any]:
        """Fields sent over the control socket in reply to `info`."""
        return {"id": self.id, "name": self.name, "port": self.port, "url": self.url}


class Workspace(FrozenModel):
    """A workspace supervised by the orchestrator.

    Attributes:
        name: Label used as the output prefix and selection key.
        dir: Working directory for the child process.
        command: Argument vector to spawn.
    """

    name: str
    dir: Path
    command: tuple[str, ...] = Field(min_length=1)


# =============================================================================
# Logging Models
# =============================================================================


class SystemEvent(BaseModel):
    """System log entry for devctl.

    Serialized with exclude_none, so only populated fields reach the log.

    Attributes:
        event: Machine-readable event name (e.g., "server_started").
        message: Human-readable message shown on the console.
        identity: Identity id of the supervised unit.
        port: Port involved, if any.
        url: URL involved, if any.
        socket_path: Control socket involved, if any.
        workspace: Workspace name, if any.
        error_type: Exception class name for failures.
        error_message: Exception message for failures.
        details: Free-form extra context.
    """

    event: str
    message: str | None = None
    identity: str | None = None
    port: int | None = None
    url: str | None = None
    socket_path: str | None = None
    workspace: str | None = None
    error_type: str | None = None
    error_message: str | None = None
    details: dict[str, Any] | None = None
