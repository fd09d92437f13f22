"""Main CLI entry point for devctl.

Defines the CLI group and registers all subcommands.

Commands:
    serve    - Serve an ASGI app with restart/stop control
    dev      - Run workspace dev servers together
    restart  - Restart this project's running instance
    stop     - Stop this project's running instance
    info     - Show this project's running instance
    peers    - List running instances in the control directory

Subcommand help:
    devctl COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli"]

import sys

import click

from devctl import __version__

from .commands.control import info, restart, stop
from .commands.dev import dev
from .commands.peers import peers
from .commands.serve import serve


class ReorderedGroup(click.Group):
    """Custom group that shows commands before custom help text."""

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        """Add extra help after commands section."""
        formatter.write(
            """
Quick Start:
  devctl serve                     Run the demo app (port 3000 or next free)
  devctl serve myapp.main:app      Run your ASGI app
  devctl restart                   Restart it from another terminal
  devctl dev -w web                Run a workspace's dev command

Control socket (no devctl needed):
  printf restart | nc -U .dev/<id>.sock

Environment:
  PORT          First port to try
  PORT_OFFSET   Added to the configured port when PORT is unset
"""
        )


@click.group(
    cls=ReorderedGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """devctl: local dev-server supervisor with a control socket."""
    if version:
        click.echo(f"devctl {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(serve)
cli.add_command(dev)
cli.add_command(restart)
cli.add_command(stop)
cli.add_command(info)
cli.add_command(peers)


def main() -> None:
    """CLI entry point."""
    cli()
