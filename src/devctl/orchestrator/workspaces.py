"""Workspace discovery and selection.

A workspace is any directory with a dev command. Candidates come from:
- `[tool.devctl.workspaces.<name>]` tables in the root pyproject.toml
- directories matching `workspace_globs` (default apps/*, packages/*) that
  have a package.json `dev` script or a `[tool.devctl] dev` command

Explicit tables come first, then discovered directories in sorted order.
A discovered workspace whose name is already declared explicitly is skipped.
"""

from __future__ import annotations

__all__ = [
    "find_workspaces",
    "select_workspaces",
    "workspace_from_dir",
]

import json
import logging
from collections.abc import Callable, Sequence
from pathlib import Path

from devctl.config import DevConfig, load_dev_config
from devctl.constants import APP_NAME
from devctl.exceptions import WorkspaceSelectionError
from devctl.identity import resolve_project_name
from devctl.log_config import log_event
from devctl.models import SystemEvent, Workspace

_logger = logging.getLogger(f"{APP_NAME}.orchestrator.workspaces")

# Picks one or more workspaces from candidates (interactive prompt)
Chooser = Callable[[Sequence[Workspace]], Sequence[Workspace]]


def _dev_script_command(directory: Path, package_manager: str) -> list[str] | None:
    path = directory / "package.json"
    if not path.is_file():
        return None
    with path.open(encoding="utf-8") as f:
        data = json.load(f)
    scripts = data.get("scripts") if isinstance(data, dict) else None
    if isinstance(scripts, dict) and isinstance(scripts.get("dev"), str):
        return [package_manager, "run", "dev"]
    return None


def workspace_from_dir(directory: Path, package_manager: str) -> Workspace | None:
    """Build a Workspace for a directory if it exposes a dev command.

    `[tool.devctl] dev` in the directory's pyproject.toml wins over a
    package.json `dev` script. Unreadable descriptors are skipped with a
    warning.

    Args:
        directory: Candidate directory.
        package_manager: Runner for package.json scripts (e.g., "npm").

    Returns:
        Workspace, or None if the directory has no dev command.
    """
    try:
        config = load_dev_config(directory)
        command = config.dev or _dev_script_command(directory, package_manager)
    except (OSError, ValueError) as e:
        log_event(
            logging.WARNING,
            SystemEvent(
                event="workspace_unreadable",
                message=f"Skipping {directory}: {e}",
                error_type=type(e).__name__,
                error_message=str(e),
            ),
            _logger,
        )
        return None
    if not command:
        return None
    return Workspace(name=resolve_project_name(directory), dir=directory, command=tuple(command))


def find_workspaces(root: Path, config: DevConfig | None = None) -> list[Workspace]:
    """List every workspace under root that can be run.

    Args:
        root: Repository root.
        config: Root configuration (loaded from root when None).

    Returns:
        Candidate workspaces, explicit ones first.
    """
    root = root.resolve()
    config = config if config is not None else load_dev_config(root)

    found: list[Workspace] = []
    names: set[str] = set()
    for name, declared in config.workspaces.items():
        directory = Path(declared.dir).expanduser()
        if not directory.is_absolute():
            directory = root / directory
        found.append(Workspace(name=name, dir=directory.resolve(), command=tuple(declared.command)))
        names.add(name)

    seen_dirs = {w.dir for w in found}
    candidates: set[Path] = set()
    for pattern in config.workspace_globs:
        candidates.update(p.resolve() for p in root.glob(pattern) if p.is_dir())

    for directory in sorted(candidates):
        if directory in seen_dirs:
            continue
        workspace = workspace_from_dir(directory, config.package_manager)
        if workspace is None or workspace.name in names:
            continue
        found.append(workspace)
        names.add(workspace.name)
    return found


def select_workspaces(
    candidates: Sequence[Workspace],
    names: Sequence[str] = (),
    chooser: Chooser | None = None,
) -> list[Workspace]:
    """Pick the workspaces to run.

    1. Explicit names select exactly those workspaces, in the order given.
    2. Otherwise, with several candidates and a chooser, the chooser decides.
    3. Otherwise the first candidate is used.

    Args:
        candidates: Workspaces from find_workspaces().
        names: Names requested on the command line.
        chooser: Interactive picker (None when not on a terminal).

    Returns:
        Non-empty list of workspaces.

    Raises:
        WorkspaceSelectionError: If there are no candidates, a name is
            unknown, or the chooser picked nothing.
    """
    if not candidates:
        raise WorkspaceSelectionError("No workspaces with a dev command were found")

    if names:
        by_name = {w.name: w for w in candidates}
        unknown = [n for n in names if n not in by_name]
        if unknown:
            available = ", ".join(sorted(by_name))
            raise WorkspaceSelectionError(f"Unknown workspace(s): {', '.join(unknown)} (available: {available})")
        selected: list[Workspace] = []
        for n in names:
            if by_name[n] not in selected:
                selected.append(by_name[n])
        return selected

    if chooser is not None and len(candidates) > 1:
        chosen = list(chooser(candidates))
        if not chosen:
            raise WorkspaceSelectionError("No workspace selected")
        return chosen

    return [candidates[0]]
