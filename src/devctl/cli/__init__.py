"""Command-line interface for devctl.

Provides commands for serving an app under the supervisor, running
workspace dev servers, and talking to running instances.
"""

from .main import cli, main

__all__ = ["cli", "main"]
