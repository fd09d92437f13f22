"""Terminal styling for devctl commands.

Every command prints through these helpers so `serve`, `dev` and the
one-shot control commands look alike. Status lines carry a marker
(✓, ✗, Warning:) as well as a colour, so output stays readable when
click strips the styling from piped output.
"""

from __future__ import annotations

__all__ = [
    "style_dim",
    "style_error",
    "style_header",
    "style_label",
    "style_success",
    "style_warning",
]

import click


def style_header(title: str) -> str:
    """Heading above a listing, e.g. the peers table or the workspace picker.

    Example:
        >>> click.echo(style_header("Peers in .dev"))
        --- Peers in .dev ---
    """
    return click.style(f"--- {title} ---", fg="cyan", bold=True)


def style_label(label: str) -> str:
    """Field name in `info` output.

    Example:
        >>> click.echo(style_label("URL") + " http://localhost:3000")
        URL: http://localhost:3000
    """
    return click.style(f"{label}:", fg="cyan", bold=True)


def style_success(message: str) -> str:
    """Outcome of a control command that the instance acknowledged.

    Example:
        >>> click.echo(style_success("Restarted at http://localhost:3000"))
        ✓ Restarted at http://localhost:3000
    """
    return click.style(f"✓ {message}", fg="green")


def style_error(message: str) -> str:
    """Fatal condition reported just before exiting with status 1.

    Example:
        >>> click.echo(style_error("No available port found starting from 3000"), err=True)
        ✗ No available port found starting from 3000
    """
    return click.style(f"✗ {message}", fg="red")


def style_dim(message: str) -> str:
    # Empty listings and unresponsive sockets
    return click.style(message, dim=True)


def style_warning(message: str) -> str:
    """Non-fatal problem, such as no instance answering on the socket.

    Example:
        >>> click.echo(style_warning("No running instance at .dev/web-1a2b3c.sock"))
        Warning: No running instance at .dev/web-1a2b3c.sock
    """
    return click.style(f"Warning: {message}", fg="yellow", bold=True)
