"""Serve command for devctl CLI.

Runs one ASGI app under the supervisor: picks a port after checking the
control directory for peers, then serves restart/stop/info on the project's
control socket until stopped.
"""

from __future__ import annotations

__all__ = ["serve"]

import sys
from pathlib import Path
from typing import Any

import click
from uvicorn.importer import ImportFromStringError, import_from_string

from devctl.cli.helpers import resolve_project, run_async
from devctl.cli.styling import style_error, style_success
from devctl.config import resolve_base_port
from devctl.constants import DEFAULT_APP, MAX_PORT
from devctl.exceptions import ControlProtocolError, PortExhaustionError
from devctl.log_config import configure_logging
from devctl.service import uvicorn_service_factory
from devctl.supervisor import ServerSupervisor


def _load_app(app: str) -> Any:
    try:
        return import_from_string(app)
    except ImportFromStringError as e:
        click.echo(style_error(f"Cannot load app '{app}': {e}"), err=True)
        sys.exit(1)


async def _serve(supervisor: ServerSupervisor, base_port: int, reuse_existing: bool, keys: bool) -> str | None:
    if reuse_existing:
        url = await supervisor.notify_existing()
        if url is not None:
            return url
    await supervisor.run(base_port, keys=keys)
    return None


@click.command()
@click.argument("app", required=False, default=DEFAULT_APP)
@click.option(
    "--port",
    "-p",
    type=click.IntRange(1, MAX_PORT),
    default=None,
    help="First port to try (default: $PORT, else config port + $PORT_OFFSET)",
)
@click.option("--host", default=None, help="Interface to bind (default: config host, 127.0.0.1)")
@click.option(
    "--control-socket",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Control socket path (default: .dev/<id>.sock)",
)
@click.option(
    "--reuse-existing/--replace-existing",
    default=False,
    help="Restart an instance that is already running and exit, or replace it (default)",
)
@click.option("--no-keys", is_flag=True, help="Disable r/o/q key controls")
@click.option("--verbose", is_flag=True, help="Show debug output (port collisions, peers)")
def serve(
    app: str,
    port: int | None,
    host: str | None,
    control_socket: Path | None,
    reuse_existing: bool,
    no_keys: bool,
    verbose: bool,
) -> None:
    """Serve an ASGI app with restart/stop control.

    APP is a "module:attribute" import string (default: the built-in demo app).

    While running:
      r  restart the server (prefers the same port)
      o  open the server URL in a browser
      q  stop

    Examples:
        devctl serve                          # Demo app on port 3000 or next free
        devctl serve myapp.main:app -p 8000   # Your app, starting at 8000
        PORT_OFFSET=10 devctl serve           # Start at 3010
    """
    configure_logging(verbose=verbose)
    project = resolve_project(control_socket)
    base_port = resolve_base_port(project.config, explicit=port)

    supervisor = ServerSupervisor(
        uvicorn_service_factory(_load_app(app), log_level="warning"),
        project.identity,
        project.endpoint,
        host=host or project.config.host,
        peer_timeout=project.config.peer_timeout,
        announce=click.echo,
    )

    url = None
    try:
        url = run_async(_serve(supervisor, base_port, reuse_existing, keys=not no_keys))
    except PortExhaustionError as e:
        click.echo(style_error(str(e)), err=True)
        sys.exit(1)
    except ControlProtocolError as e:
        click.echo(style_error(f"Running instance failed to restart: {e}"), err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo()

    if url is not None:
        click.echo(style_success(f"Restarted running {project.identity.id} at {url}"))
