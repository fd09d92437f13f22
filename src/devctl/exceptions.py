"""Custom exceptions for devctl.

This module contains all custom exceptions used throughout the package.
Exceptions are organized by how far they are allowed to propagate:

Fatal (abort startup, CLI exits non-zero):
    - PortExhaustionError: No bindable port up to 65535
    - ConfigurationError: Strictly loaded config is invalid
    - WorkspaceSelectionError: No usable workspace selection

Retryable (handled inside port allocation):
    - BindConflictError: Candidate port is held by a known peer

Contained (converted to a protocol reply or a log line):
    - ControlProtocolError: Malformed command or reply on a control socket
    - SupervisorStateError: Command not valid in the current state
    - ChildProcessFailure: One workspace child failed

Usage:
    from devctl.exceptions import PortExhaustionError, BindConflictError
"""

from __future__ import annotations

__all__ = [
    "BindConflictError",
    "ChildProcessFailure",
    "ConfigurationError",
    "ControlProtocolError",
    "DevctlError",
    "PortExhaustionError",
    "SupervisorStateError",
    "WorkspaceSelectionError",
]

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from devctl.models import PeerInfo


class DevctlError(Exception):
    """Base class for all devctl errors."""


# =============================================================================
# Fatal
# =============================================================================


class PortExhaustionError(DevctlError):
    """Raised when no port from the starting port up to 65535 could be bound.

    Attributes:
        start_port: First port that was attempted.
    """

    def __init__(self, start_port: int) -> None:
        self.start_port = start_port
        super().__init__(f"No available port found starting from {start_port}")


class ConfigurationError(DevctlError):
    """Raised when project configuration cannot be loaded or validated."""


class WorkspaceSelectionError(DevctlError):
    """Raised when no workspace can be selected for orchestration."""


# =============================================================================
# Retryable
# =============================================================================


class BindConflictError(DevctlError):
    """Raised when a candidate port is already owned by a discovered peer.

    Treated exactly like an OS-level "address in use": the allocator
    moves on to the next port.

    Attributes:
        port: The conflicting port.
        peer: The peer that owns it.
    """

    def __init__(self, port: int, peer: "PeerInfo") -> None:
        self.port = port
        self.peer = peer
        super().__init__(f"Port {port} is in use by {peer.id}")


# =============================================================================
# Contained
# =============================================================================


class ControlProtocolError(DevctlError):
    """Raised for a malformed command or reply on a control socket."""


class SupervisorStateError(DevctlError):
    """Raised when an operation is not valid in the supervisor's current state."""


class ChildProcessFailure(DevctlError):
    """A workspace child process failed to start or exited non-zero.

    Attributes:
        name: Workspace name.
        returncode: Exit code, or None if the process never started.
    """

    def __init__(self, name: str, returncode: int | None, reason: str | None = None) -> None:
        self.name = name
        self.returncode = returncode
        if reason is None:
            reason = f"exited with code {returncode}"
        self.reason = reason
        super().__init__(f"{name} {reason}")
