"""Dev command for devctl CLI.

Runs the dev command of one or more workspaces side by side, with output
labelled per workspace and a shared control socket for the set.
"""

from __future__ import annotations

__all__ = ["dev"]

import sys
from pathlib import Path

import click

from devctl.cli.helpers import run_async
from devctl.cli.prompts import prompt_workspaces
from devctl.cli.styling import style_error, style_success
from devctl.config import load_dev_config
from devctl.exceptions import ControlProtocolError, WorkspaceSelectionError
from devctl.identity import control_endpoint, workspace_set_identity
from devctl.log_config import configure_logging
from devctl.orchestrator import WorkspaceOrchestrator, find_workspaces, select_workspaces


@click.command()
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Repository root (default: current directory)",
)
@click.option("--workspace", "-w", "names", multiple=True, help="Workspace to run (repeatable)")
@click.option("--no-keys", is_flag=True, help="Disable r/o/q key controls")
@click.option("--verbose", is_flag=True, help="Show debug output")
def dev(root: Path | None, names: tuple[str, ...], no_keys: bool, verbose: bool) -> None:
    """Run workspace dev servers together.

    Workspaces are declared under [tool.devctl.workspaces.<name>] in
    pyproject.toml, or discovered under apps/* and packages/*.

    Running the same selection again restarts the running set instead of
    starting a second copy.

    Examples:
        devctl dev                   # Pick interactively (or the first one)
        devctl dev -w web -w docs    # Run web and docs
    """
    configure_logging(verbose=verbose)
    root = (root or Path.cwd()).resolve()
    config = load_dev_config(root)

    chooser = prompt_workspaces if sys.stdin.isatty() else None
    try:
        selected = select_workspaces(find_workspaces(root, config), names, chooser)
    except WorkspaceSelectionError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)

    identity = workspace_set_identity(w.dir for w in selected)
    orchestrator = WorkspaceOrchestrator(
        selected,
        identity,
        control_endpoint(root, identity, control_dir=config.control_dir),
        emit=click.echo,
        announce=click.echo,
    )

    existing = None
    try:
        existing = run_async(orchestrator.run(keys=not no_keys))
    except ControlProtocolError as e:
        click.echo(style_error(f"Running workspaces failed to restart: {e}"), err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo()

    if existing is not None:
        suffix = f" ({existing})" if existing else ""
        click.echo(style_success(f"Restarted running {identity.id}{suffix}"))
