"""Project configuration for devctl.

Configuration lives in the `[tool.devctl]` table of the project's
pyproject.toml. Every field has a default, so a project without the table
(or without a pyproject.toml at all) works out of the box.

Port environment overrides (PORT, PORT_OFFSET) are read separately by
resolve_base_port() because they change per invocation, not per project.

Example usage:
    # Load from pyproject.toml (defaults if missing or invalid)
    config = load_dev_config(Path.cwd())

    # Resolve the first port to try
    base_port = resolve_base_port(config)
"""

from __future__ import annotations

__all__ = [
    "DevConfig",
    "WorkspaceConfig",
    "load_dev_config",
    "load_dev_config_strict",
    "parse_port",
    "read_pyproject",
    "resolve_base_port",
]

import logging
import os
import shlex
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from devctl.constants import (
    APP_NAME,
    CONTROL_DIR_NAME,
    DEFAULT_HOST,
    DEFAULT_PACKAGE_MANAGER,
    DEFAULT_PORT,
    DEFAULT_WORKSPACE_GLOBS,
    MAX_PORT,
    PEER_QUERY_TIMEOUT_SECONDS,
    PORT_ENV_VAR,
    PORT_OFFSET_ENV_VAR,
)
from devctl.exceptions import ConfigurationError
from devctl.log_config import log_event
from devctl.models import SystemEvent

_logger = logging.getLogger(f"{APP_NAME}.config")

PYPROJECT_FILENAME = "pyproject.toml"


def _split_command(value: str | list[str]) -> list[str]:
    """Normalize a command given either as a shell-like string or argv list."""
    if isinstance(value, str):
        return shlex.split(value)
    return list(value)


class WorkspaceConfig(BaseModel):
    """Explicit workspace declared under `[tool.devctl.workspaces.<name>]`.

    Attributes:
        dir: Workspace directory, relative to the project root.
        command: Command to run, as a string (shlex-split) or argv list.
    """

    dir: str = Field(min_length=1)
    command: list[str] = Field(min_length=1)

    model_config = {"extra": "ignore"}

    @field_validator("command", mode="before")
    @classmethod
    def _normalize_command(cls, value: Any) -> Any:
        if isinstance(value, (str, list)):
            return _split_command(value)
        return value


class DevConfig(BaseModel):
    """Per-project devctl configuration.

    Attributes:
        host: Interface the supervised server binds to.
        port: Default first port to try (before PORT_OFFSET).
        control_dir: Directory for control sockets, relative to the project root.
        peer_timeout: Round-trip timeout for peer `info` queries (seconds).
        package_manager: Runner used for package.json `dev` scripts.
        workspace_globs: Globs (relative to the root) searched for workspaces.
        workspaces: Explicitly declared workspaces, keyed by name.
        dev: Dev command of this project when it is itself a workspace.
    """

    host: str = Field(default=DEFAULT_HOST, min_length=1)
    port: int = Field(default=DEFAULT_PORT, ge=1, le=MAX_PORT)
    control_dir: str = Field(default=CONTROL_DIR_NAME, min_length=1)
    peer_timeout: float = Field(default=PEER_QUERY_TIMEOUT_SECONDS, gt=0, le=30)
    package_manager: str = Field(default=DEFAULT_PACKAGE_MANAGER, min_length=1)
    workspace_globs: list[str] = Field(default_factory=lambda: list(DEFAULT_WORKSPACE_GLOBS))
    workspaces: dict[str, WorkspaceConfig] = Field(default_factory=dict)
    dev: list[str] | None = None

    model_config = {"extra": "ignore"}  # Ignore unknown fields for forward compat

    @field_validator("dev", mode="before")
    @classmethod
    def _normalize_dev(cls, value: Any) -> Any:
        if isinstance(value, (str, list)):
            return _split_command(value)
        return value


def read_pyproject(root: Path) -> dict[str, Any] | None:
    """Read and parse `<root>/pyproject.toml`.

    Args:
        root: Project directory.

    Returns:
        Parsed TOML document, or None if the file does not exist.

    Raises:
        tomllib.TOMLDecodeError: If the file is not valid TOML.
        OSError: If the file exists but cannot be read.
    """
    path = root / PYPROJECT_FILENAME
    if not path.is_file():
        return None
    with path.open("rb") as f:
        return tomllib.load(f)


def _tool_table(document: Mapping[str, Any] | None) -> dict[str, Any]:
    if not document:
        return {}
    tool = document.get("tool")
    if not isinstance(tool, Mapping):
        return {}
    table = tool.get(APP_NAME)
    if not isinstance(table, Mapping):
        return {}
    return dict(table)


def load_dev_config(root: Path) -> DevConfig:
    """Load devctl configuration for a project.

    If pyproject.toml or its `[tool.devctl]` table doesn't exist, returns
    the default configuration. Invalid TOML or validation errors return
    the default config with a warning.

    Args:
        root: Project directory.

    Returns:
        DevConfig: Loaded or default configuration.
    """
    config_path = root / PYPROJECT_FILENAME
    try:
        return DevConfig.model_validate(_tool_table(read_pyproject(root)))
    except tomllib.TOMLDecodeError as e:
        log_event(
            logging.WARNING,
            SystemEvent(
                event="config_invalid_toml",
                message=f"Invalid TOML in {config_path}, using defaults: {e}",
                error_type=type(e).__name__,
                error_message=str(e),
                details={"config_path": str(config_path)},
            ),
            _logger,
        )
    except ValidationError as e:
        log_event(
            logging.WARNING,
            SystemEvent(
                event="config_validation_failed",
                message=f"Invalid [tool.{APP_NAME}] values in {config_path}, using defaults: {e}",
                error_type=type(e).__name__,
                error_message=str(e),
                details={"config_path": str(config_path)},
            ),
            _logger,
        )
    except OSError as e:
        log_event(
            logging.WARNING,
            SystemEvent(
                event="config_read_failed",
                message=f"Failed to read {config_path}, using defaults: {e}",
                error_type=type(e).__name__,
                error_message=str(e),
                details={"config_path": str(config_path)},
            ),
            _logger,
        )
    return DevConfig()


def load_dev_config_strict(root: Path) -> DevConfig:
    """Load devctl configuration, raising on any error.

    Unlike load_dev_config(), this function raises ConfigurationError
    instead of falling back to defaults. A missing file or table is still
    fine (defaults apply).

    Args:
        root: Project directory.

    Returns:
        DevConfig: Validated configuration.

    Raises:
        ConfigurationError: If pyproject.toml is unreadable or invalid.
    """
    config_path = root / PYPROJECT_FILENAME
    try:
        return DevConfig.model_validate(_tool_table(read_pyproject(root)))
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid TOML in {config_path}: {e}") from e
    except ValidationError as e:
        raise ConfigurationError(f"Invalid [tool.{APP_NAME}] configuration in {config_path}:\n{e}") from e
    except OSError as e:
        raise ConfigurationError(f"Failed to read {config_path}: {e}") from e


def parse_port(value: str | None, label: str) -> int | None:
    """Parse a port from an environment value.

    Valid ports are integers in 1..65535. Anything else is ignored with
    a warning rather than treated as fatal.

    Args:
        value: Raw environment value (None or "" means unset).
        label: Variable name, for the warning.

    Returns:
        The port, or None if unset or invalid.
    """
    if not value:
        return None
    try:
        port = int(value.strip())
    except ValueError:
        port = None
    if port is None or port <= 0 or port > MAX_PORT:
        log_event(
            logging.WARNING,
            SystemEvent(
                event="invalid_port_env",
                message=f"Ignoring invalid {label}: {value}",
                details={"variable": label, "value": value},
            ),
            _logger,
        )
        return None
    return port


def resolve_base_port(
    config: DevConfig | None = None,
    explicit: int | None = None,
    environ: Mapping[str, str] | None = None,
) -> int:
    """Resolve the first port to try.

    Precedence: explicit argument, then PORT, then config.port + PORT_OFFSET.

    Args:
        config: Project config (defaults when None).
        explicit: Port given on the command line.
        environ: Environment mapping (defaults to os.environ).

    Returns:
        Base port.
    """
    if explicit:
        return explicit
    env = os.environ if environ is None else environ
    port = parse_port(env.get(PORT_ENV_VAR), PORT_ENV_VAR)
    if port is not None:
        return port
    offset = parse_port(env.get(PORT_OFFSET_ENV_VAR), PORT_OFFSET_ENV_VAR) or 0
    default_port = config.port if config is not None else DEFAULT_PORT
    return min(default_port + offset, MAX_PORT)
