"""Peers command for devctl CLI.

Lists every instance with a control socket in this project's control
directory, the same view a starting server uses to pick its port.
"""

from __future__ import annotations

__all__ = ["peers"]

import json

import click

from devctl.cli.helpers import resolve_project, run_async
from devctl.cli.styling import style_dim, style_header
from devctl.control.registry import Responsive, Unresponsive, scan


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def peers(as_json: bool) -> None:
    """List running instances in this project's control directory."""
    project = resolve_project()
    control_dir = project.endpoint.directory
    results = run_async(scan(control_dir, timeout=project.config.peer_timeout))

    responsive = [r.peer for r in results if isinstance(r, Responsive)]
    unresponsive = [r for r in results if isinstance(r, Unresponsive)]

    if as_json:
        data = {
            "control_dir": str(control_dir),
            "peers": [p.model_dump() for p in responsive],
            "unresponsive": [{"socket": r.socket, "reason": r.reason} for r in unresponsive],
        }
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(style_header(f"Peers in {control_dir}"))
    if not responsive and not unresponsive:
        click.echo(style_dim("No running instances."))
        return
    for peer in responsive:
        marker = "*" if peer.id == project.identity.id else " "
        port = str(peer.port) if peer.port is not None else "-"
        click.echo(f"{marker} {peer.id:<32} {port:>5}  {peer.url or '-'}")
    for result in unresponsive:
        click.echo(style_dim(f"  {result.socket} (not responding: {result.reason})"))
