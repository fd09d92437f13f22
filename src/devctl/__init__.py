"""devctl: local dev-server supervisor with a control socket.

Runs a dev server (or a set of workspace dev processes), picks a free port
after checking for sibling instances, and accepts restart/stop/info
commands over a Unix socket under `.dev/`.
"""

__version__ = "0.4.0"
