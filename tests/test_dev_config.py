"""Tests for project configuration and port environment handling."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from devctl.config import (
    DevConfig,
    WorkspaceConfig,
    load_dev_config,
    load_dev_config_strict,
    parse_port,
    resolve_base_port,
)
from devctl.exceptions import ConfigurationError


def _write_pyproject(root: Path, body: str) -> None:
    (root / "pyproject.toml").write_text(body)


class TestDevConfigModel:
    """Tests for DevConfig validation."""

    def test_defaults(self) -> None:
        """Defaults need no config file."""
        config = DevConfig()
        assert config.host == "127.0.0.1"
        assert config.port == 3000
        assert config.control_dir == ".dev"
        assert config.workspace_globs == ["apps/*", "packages/*"]
        assert config.workspaces == {}
        assert config.dev is None

    def test_port_range(self) -> None:
        """Port must be in 1..65535."""
        with pytest.raises(ValidationError):
            DevConfig(port=0)
        with pytest.raises(ValidationError):
            DevConfig(port=70000)

    def test_string_commands_are_split(self) -> None:
        """Commands given as strings are shell-split."""
        config = DevConfig(dev="uvicorn app:app --reload")
        assert config.dev == ["uvicorn", "app:app", "--reload"]
        workspace = WorkspaceConfig(dir="apps/web", command="npm run dev")
        assert workspace.command == ["npm", "run", "dev"]

    def test_empty_workspace_command_rejected(self) -> None:
        """A workspace needs a command."""
        with pytest.raises(ValidationError):
            WorkspaceConfig(dir="apps/web", command=[])


class TestLoadDevConfig:
    """Tests for load_dev_config() and load_dev_config_strict()."""

    def test_missing_file_gives_defaults(self, tmp_path: Path) -> None:
        """No pyproject.toml means defaults."""
        assert load_dev_config(tmp_path) == DevConfig()

    def test_reads_tool_table(self, tmp_path: Path) -> None:
        """Values come from [tool.devctl]."""
        _write_pyproject(
            tmp_path,
            """
[tool.devctl]
port = 8000
control_dir = "run"

[tool.devctl.workspaces.web]
dir = "apps/web"
command = ["npm", "run", "dev"]
""",
        )
        config = load_dev_config(tmp_path)
        assert config.port == 8000
        assert config.control_dir == "run"
        assert config.workspaces["web"].command == ["npm", "run", "dev"]

    def test_invalid_toml_warns_and_falls_back(self, tmp_path: Path) -> None:
        """Invalid TOML logs config_invalid_toml and returns defaults."""
        _write_pyproject(tmp_path, "[tool.devctl\nport = 1")
        with patch("devctl.config.log_event") as mock_log:
            config = load_dev_config(tmp_path)
        assert config == DevConfig()
        level, event = mock_log.call_args.args[:2]
        assert level == logging.WARNING
        assert event.event == "config_invalid_toml"

    def test_invalid_values_warn_and_fall_back(self, tmp_path: Path) -> None:
        """Out-of-range values log config_validation_failed and return defaults."""
        _write_pyproject(tmp_path, "[tool.devctl]\nport = 99999\n")
        with patch("devctl.config.log_event") as mock_log:
            config = load_dev_config(tmp_path)
        assert config.port == 3000
        assert mock_log.call_args.args[1].event == "config_validation_failed"

    def test_strict_raises(self, tmp_path: Path) -> None:
        """Strict loading raises ConfigurationError instead of falling back."""
        _write_pyproject(tmp_path, "[tool.devctl]\nport = 99999\n")
        with pytest.raises(ConfigurationError):
            load_dev_config_strict(tmp_path)


class TestPortEnvironment:
    """Tests for parse_port() and resolve_base_port()."""

    @pytest.mark.parametrize("value", ["abc", "0", "-1", "65536", "3.5"])
    def test_invalid_port_ignored_with_warning(self, value: str) -> None:
        """Invalid values log invalid_port_env and are ignored."""
        with patch("devctl.config.log_event") as mock_log:
            assert parse_port(value, "PORT") is None
        assert mock_log.call_args.args[1].event == "invalid_port_env"

    def test_unset_is_silent(self) -> None:
        """Unset and empty values are not warnings."""
        with patch("devctl.config.log_event") as mock_log:
            assert parse_port(None, "PORT") is None
            assert parse_port("", "PORT") is None
        mock_log.assert_not_called()

    def test_explicit_wins(self) -> None:
        """An explicit port beats the environment."""
        assert resolve_base_port(DevConfig(), explicit=5000, environ={"PORT": "4000"}) == 5000

    def test_port_env(self) -> None:
        """PORT beats config and offset."""
        assert resolve_base_port(DevConfig(), environ={"PORT": "4000", "PORT_OFFSET": "5"}) == 4000

    def test_offset_added_to_config_port(self) -> None:
        """PORT_OFFSET shifts the configured port."""
        assert resolve_base_port(DevConfig(port=3000), environ={"PORT_OFFSET": "10"}) == 3010

    def test_invalid_env_falls_back_to_config(self) -> None:
        """Invalid PORT and PORT_OFFSET are ignored."""
        with patch("devctl.config.log_event"):
            assert resolve_base_port(DevConfig(), environ={"PORT": "x", "PORT_OFFSET": "y"}) == 3000
