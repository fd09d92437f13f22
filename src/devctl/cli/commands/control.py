"""Control commands for devctl CLI.

One-shot clients for a running instance's control socket:
restart, stop and info.
"""

from __future__ import annotations

__all__ = [
    "info",
    "restart",
    "stop",
]

import json
import sys
from pathlib import Path

import click

from devctl.cli.helpers import resolve_project, run_async
from devctl.cli.styling import style_error, style_label, style_success, style_warning
from devctl.constants import PEER_SHUTDOWN_TIMEOUT_SECONDS, RESTART_REPLY_TIMEOUT_SECONDS
from devctl.control.client import send_command
from devctl.control.protocol import CMD_INFO, CMD_RESTART, CMD_STOP, decode_info, parse_reply
from devctl.exceptions import ControlProtocolError
from devctl.utils.waiting import wait_for_condition

socket_option = click.option(
    "--socket",
    "socket_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Control socket (default: this project's .dev/<id>.sock)",
)


def _target(socket_path: Path | None) -> Path:
    return resolve_project(socket_path).endpoint.socket_path


def _send_or_exit(socket_path: Path, command: str, timeout: float) -> str:
    """Send a command, exiting with a warning if nothing is listening."""
    reply = run_async(send_command(socket_path, command, timeout=timeout))
    if reply is None:
        click.echo(style_warning(f"No running instance at {socket_path}"), err=True)
        sys.exit(1)
    return reply


@click.command()
@socket_option
def restart(socket_path: Path | None) -> None:
    """Restart the running instance for this project."""
    target = _target(socket_path)
    ok, payload = parse_reply(_send_or_exit(target, CMD_RESTART, RESTART_REPLY_TIMEOUT_SECONDS))
    if not ok:
        click.echo(style_error(f"Restart failed: {payload}"), err=True)
        sys.exit(1)
    click.echo(style_success(f"Restarted at {payload}" if payload else "Restarted"))


@click.command()
@socket_option
def stop(socket_path: Path | None) -> None:
    """Stop the running instance for this project."""
    target = _target(socket_path)
    ok, payload = parse_reply(_send_or_exit(target, CMD_STOP, RESTART_REPLY_TIMEOUT_SECONDS))
    if not ok:
        click.echo(style_error(f"Stop failed: {payload}"), err=True)
        sys.exit(1)

    # The instance removes its socket once it has shut down
    if wait_for_condition(lambda: not target.exists(), PEER_SHUTDOWN_TIMEOUT_SECONDS):
        click.echo(style_success("Stopped"))
    else:
        click.echo(style_warning("Stop requested but the instance is still shutting down"))


@click.command()
@socket_option
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def info(socket_path: Path | None, as_json: bool) -> None:
    """Show what the running instance for this project is serving."""
    target = _target(socket_path)
    reply = _send_or_exit(target, CMD_INFO, RESTART_REPLY_TIMEOUT_SECONDS)
    try:
        peer = decode_info(reply, socket=str(target))
    except ControlProtocolError as e:
        click.echo(style_error(f"Unexpected reply from {target}: {e}"), err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(peer.model_dump(), indent=2))
        return
    click.echo(style_label("Id") + f" {peer.id}")
    click.echo(style_label("Name") + f" {peer.name}")
    click.echo(style_label("Port") + f" {peer.port if peer.port is not None else '-'}")
    click.echo(style_label("URL") + f" {peer.url or '-'}")
    click.echo(style_label("Socket") + f" {target}")
