"""Application-wide constants for devctl.

Constants that define application behavior.
For user-configurable settings per project, see config.py.
"""

__all__ = [
    # Application identity
    "APP_NAME",
    # Ports
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    "MAX_PORT",
    "PORT_ENV_VAR",
    "PORT_OFFSET_ENV_VAR",
    "HTTP_LISTEN_BACKLOG",
    # Identity
    "IDENTITY_HASH_LENGTH",
    "WORKSPACE_SET_NAME",
    # Control socket
    "CONTROL_DIR_NAME",
    "CONTROL_SOCKET_SUFFIX",
    "CONTROL_SOCKET_MODE",
    "MAX_COMMAND_BYTES",
    "COMMAND_READ_TIMEOUT_SECONDS",
    "CHANNEL_CLOSE_TIMEOUT_SECONDS",
    "PEER_QUERY_TIMEOUT_SECONDS",
    "PEER_SHUTDOWN_TIMEOUT_SECONDS",
    "RESTART_REPLY_TIMEOUT_SECONDS",
    # Supervised service
    "SERVICE_STARTUP_TIMEOUT_SECONDS",
    "SERVICE_SHUTDOWN_TIMEOUT_SECONDS",
    "DEFAULT_APP",
    # Orchestrator
    "CHILD_STOP_TIMEOUT_SECONDS",
    "DEFAULT_WORKSPACE_GLOBS",
    "DEFAULT_PACKAGE_MANAGER",
    # Logging
    "SYSTEM_LOG_FILENAME",
]

# ============================================================================
# Application Identity
# ============================================================================

# Application name used for logger names, log directories, config tables
APP_NAME: str = "devctl"

# ============================================================================
# Ports
# ============================================================================

DEFAULT_HOST: str = "127.0.0.1"
DEFAULT_PORT: int = 3000
MAX_PORT: int = 65_535

# Environment overrides for the base port.
# PORT wins outright; PORT_OFFSET is added to the configured default.
PORT_ENV_VAR: str = "PORT"
PORT_OFFSET_ENV_VAR: str = "PORT_OFFSET"

# Listen backlog for the supervised HTTP socket
HTTP_LISTEN_BACKLOG: int = 100

# ============================================================================
# Identity
# ============================================================================

# Hex characters of sha1(cwd) appended to the project name
IDENTITY_HASH_LENGTH: int = 6

# Name used for the shared identity of an orchestrated workspace set
WORKSPACE_SET_NAME: str = "workspaces"

# ============================================================================
# Control Socket
# ============================================================================

# Per-project control directory (relative to the project root)
CONTROL_DIR_NAME: str = ".dev"
CONTROL_SOCKET_SUFFIX: str = ".sock"

# Only the owning user may talk to a control socket
CONTROL_SOCKET_MODE: int = 0o600

# Commands are single short words; anything longer is garbage
MAX_COMMAND_BYTES: int = 1024

# Idle connections are dropped after this long without a command
COMMAND_READ_TIMEOUT_SECONDS: float = 5.0

# Upper bound on waiting for in-flight connections when closing the channel
CHANNEL_CLOSE_TIMEOUT_SECONDS: float = 5.0

# Round-trip budget for one `info` query during discovery
PEER_QUERY_TIMEOUT_SECONDS: float = 1.0

# Round-trip budget for `restart`, which includes rebinding the service
RESTART_REPLY_TIMEOUT_SECONDS: float = 15.0

# How long to wait for an evicted same-identity peer to release its port
PEER_SHUTDOWN_TIMEOUT_SECONDS: float = 5.0

# ============================================================================
# Supervised Service
# ============================================================================

SERVICE_STARTUP_TIMEOUT_SECONDS: float = 10.0
SERVICE_SHUTDOWN_TIMEOUT_SECONDS: float = 5.0

# ASGI app served by `devctl serve` when none is given
DEFAULT_APP: str = "devctl.demo:app"

# ============================================================================
# Orchestrator
# ============================================================================

# Grace period between SIGTERM and SIGKILL for a workspace child
CHILD_STOP_TIMEOUT_SECONDS: float = 5.0

DEFAULT_WORKSPACE_GLOBS: tuple[str, ...] = ("apps/*", "packages/*")
DEFAULT_PACKAGE_MANAGER: str = "npm"

# ============================================================================
# Logging
# ============================================================================

SYSTEM_LOG_FILENAME: str = "system.jsonl"
