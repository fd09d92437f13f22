"""Interactive prompt helpers for CLI commands."""

from __future__ import annotations

__all__ = [
    "prompt_workspaces",
]

from collections.abc import Sequence

import click

from devctl.cli.styling import style_error, style_header
from devctl.models import Workspace

# Typed at the prompt to select every workspace
ALL_CHOICE = "all"


def _parse_choice(value: str, count: int) -> int | None:
    """Parse a workspace choice: 1-based index, 0 for all.

    Returns:
        Index into the candidates, -1 for "all", None if invalid.
    """
    value = value.strip().lower()
    if value in (ALL_CHOICE, "0"):
        return -1
    try:
        index = int(value)
    except ValueError:
        return None
    if 1 <= index <= count:
        return index - 1
    return None


def prompt_workspaces(candidates: Sequence[Workspace]) -> list[Workspace]:
    """Ask which workspace to run.

    Shows a numbered list and loops until a valid number or "all" is typed.

    Args:
        candidates: Workspaces to choose from.

    Returns:
        The chosen workspace, or every workspace for "all".
    """
    click.echo(style_header("Workspaces"))
    for i, workspace in enumerate(candidates, start=1):
        click.echo(f"  {i}. {workspace.name}  ({workspace.dir})")
    click.echo(f"  0. {ALL_CHOICE}")
    click.echo()

    while True:
        value: str = click.prompt("Select a workspace", type=str, default="1")
        choice = _parse_choice(value, len(candidates))
        if choice == -1:
            return list(candidates)
        if choice is not None:
            return [candidates[choice]]
        click.echo(style_error(f"Enter a number between 1 and {len(candidates)}, or '{ALL_CHOICE}'"))
