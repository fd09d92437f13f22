"""Instance identity and control endpoint resolution.

An identity is `<name>-<hash>` where the hash is a short sha1 of the
absolute working directory. It names the control socket
(`.dev/<id>.sock`) and is how a peer recognizes "another copy of me".

The hash is not a security boundary: collisions across distinct
directories are possible in principle and accepted for a local dev tool.
"""

from __future__ import annotations

__all__ = [
    "control_endpoint",
    "directory_hash",
    "resolve_identity",
    "resolve_project_name",
    "workspace_set_identity",
]

import hashlib
import json
import logging
import os
import tomllib
from collections.abc import Iterable
from pathlib import Path

from devctl.config import read_pyproject
from devctl.constants import (
    APP_NAME,
    CONTROL_DIR_NAME,
    CONTROL_SOCKET_SUFFIX,
    IDENTITY_HASH_LENGTH,
    WORKSPACE_SET_NAME,
)
from devctl.models import ControlEndpoint, Identity

_logger = logging.getLogger(f"{APP_NAME}.identity")


def directory_hash(value: str) -> str:
    """Short, stable hex digest of a path string (or joined path strings)."""
    return hashlib.sha1(value.encode("utf-8")).hexdigest()[:IDENTITY_HASH_LENGTH]


def _name_from_pyproject(cwd: Path) -> str | None:
    document = read_pyproject(cwd)
    if not document:
        return None
    project = document.get("project")
    if isinstance(project, dict):
        name = project.get("name")
        if isinstance(name, str) and name.strip():
            return name.strip()
    return None


def _name_from_package_json(cwd: Path) -> str | None:
    path = cwd / "package.json"
    if not path.is_file():
        return None
    with path.open(encoding="utf-8") as f:
        data = json.load(f)
    if isinstance(data, dict):
        name = data.get("name")
        if isinstance(name, str) and name.strip():
            return name.strip()
    return None


def resolve_project_name(cwd: Path) -> str:
    """Read a human name for the project in cwd.

    Checks pyproject.toml `[project].name`, then package.json `name`.
    An unreadable or malformed descriptor is skipped silently; the last
    path segment of cwd is the final fallback.

    Args:
        cwd: Project directory.

    Returns:
        Project name.
    """
    for reader in (_name_from_pyproject, _name_from_package_json):
        try:
            name = reader(cwd)
        except (OSError, ValueError, tomllib.TOMLDecodeError) as e:
            # json.JSONDecodeError and UnicodeDecodeError are ValueErrors
            _logger.debug("Ignoring unreadable project descriptor in %s: %s", cwd, e)
            continue
        if name:
            return name
    return cwd.name or "root"


def resolve_identity(cwd: Path | str | None = None) -> Identity:
    """Derive the identity of the project instance rooted at cwd.

    Args:
        cwd: Project directory. Defaults to the process working directory.

    Returns:
        Identity whose id is `<name>-<sha1(abs cwd)[:6]>`.
    """
    root = Path(os.path.abspath(cwd if cwd is not None else os.getcwd()))
    name = resolve_project_name(root)
    return Identity(id=f"{name}-{directory_hash(str(root))}", name=name)


def workspace_set_identity(dirs: Iterable[Path | str]) -> Identity:
    """Derive the shared identity of an orchestrated set of workspaces.

    Order-independent: the same set of directories always maps to the same
    id, so repeated invocations over one set share a control socket.

    Args:
        dirs: Workspace directories.

    Returns:
        Identity named "workspaces".
    """
    joined = "\n".join(sorted(os.path.abspath(d) for d in dirs))
    return Identity(
        id=f"{WORKSPACE_SET_NAME}-{directory_hash(joined)}",
        name=WORKSPACE_SET_NAME,
    )


def control_endpoint(
    cwd: Path | str,
    identity: Identity,
    control_socket: Path | str | None = None,
    control_dir: Path | str | None = None,
) -> ControlEndpoint:
    """Build the control endpoint for an identity.

    Args:
        cwd: Project directory used to resolve relative paths.
        identity: Identity naming the socket file.
        control_socket: Explicit socket path; its parent becomes the directory.
        control_dir: Control directory (default: `<cwd>/.dev`).

    Returns:
        ControlEndpoint.
    """
    root = Path(os.path.abspath(cwd))
    if control_socket is not None:
        socket_path = Path(control_socket).expanduser()
        if not socket_path.is_absolute():
            socket_path = root / socket_path
        return ControlEndpoint(directory=socket_path.parent, socket_path=socket_path)

    directory = Path(control_dir).expanduser() if control_dir is not None else Path(CONTROL_DIR_NAME)
    if not directory.is_absolute():
        directory = root / directory
    return ControlEndpoint(
        directory=directory,
        socket_path=directory / f"{identity.id}{CONTROL_SOCKET_SUFFIX}",
    )
