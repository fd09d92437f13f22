"""Tests for identity and control endpoint resolution."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path

from devctl.identity import (
    control_endpoint,
    resolve_identity,
    resolve_project_name,
    workspace_set_identity,
)
from devctl.models import Identity


def _hash(path: Path) -> str:
    return hashlib.sha1(str(path).encode("utf-8")).hexdigest()[:6]


class TestResolveProjectName:
    """Tests for resolve_project_name()."""

    def test_prefers_pyproject_name(self, tmp_path: Path) -> None:
        """[project].name wins over package.json."""
        (tmp_path / "pyproject.toml").write_text('[project]\nname = "api"\n')
        (tmp_path / "package.json").write_text(json.dumps({"name": "web"}))
        assert resolve_project_name(tmp_path) == "api"

    def test_package_json_name(self, tmp_path: Path) -> None:
        """package.json name is used when there is no pyproject name."""
        (tmp_path / "package.json").write_text(json.dumps({"name": "web"}))
        assert resolve_project_name(tmp_path) == "web"

    def test_falls_back_to_directory_name(self, tmp_path: Path) -> None:
        """Malformed descriptors are ignored silently."""
        project = tmp_path / "my-app"
        project.mkdir()
        (project / "package.json").write_text("{not json")
        (project / "pyproject.toml").write_text("[project\n")
        assert resolve_project_name(project) == "my-app"


class TestResolveIdentity:
    """Tests for resolve_identity()."""

    def test_id_is_name_and_directory_hash(self, tmp_path: Path) -> None:
        """Id is `<name>-<sha1(abs cwd)[:6]>`."""
        (tmp_path / "package.json").write_text(json.dumps({"name": "web"}))
        identity = resolve_identity(tmp_path)
        assert identity == Identity(id=f"web-{_hash(tmp_path)}", name="web")

    def test_stable_across_calls(self, tmp_path: Path) -> None:
        """The same directory always yields the same identity."""
        assert resolve_identity(tmp_path) == resolve_identity(tmp_path)

    def test_same_name_different_directories(self, tmp_path: Path) -> None:
        """Projects sharing a name in different directories get distinct ids."""
        a, b = tmp_path / "a" / "web", tmp_path / "b" / "web"
        a.mkdir(parents=True)
        b.mkdir(parents=True)
        ident_a, ident_b = resolve_identity(a), resolve_identity(b)
        assert ident_a.name == ident_b.name == "web"
        assert ident_a.id != ident_b.id


class TestWorkspaceSetIdentity:
    """Tests for workspace_set_identity()."""

    def test_order_independent(self, tmp_path: Path) -> None:
        """The same set of directories maps to one id in any order."""
        web, docs = tmp_path / "web", tmp_path / "docs"
        assert workspace_set_identity([web, docs]) == workspace_set_identity([docs, web])
        assert workspace_set_identity([web]).id.startswith("workspaces-")

    def test_different_sets_differ(self, tmp_path: Path) -> None:
        """Different selections get different sockets."""
        web, docs = tmp_path / "web", tmp_path / "docs"
        assert workspace_set_identity([web]).id != workspace_set_identity([web, docs]).id


class TestControlEndpoint:
    """Tests for control_endpoint()."""

    def test_default_location(self, tmp_path: Path) -> None:
        """Socket is `<cwd>/.dev/<id>.sock`."""
        identity = Identity(id="web-abc123", name="web")
        endpoint = control_endpoint(tmp_path, identity)
        assert endpoint.directory == tmp_path / ".dev"
        assert endpoint.socket_path == tmp_path / ".dev" / "web-abc123.sock"

    def test_custom_control_dir(self, tmp_path: Path) -> None:
        """A relative control_dir resolves against cwd."""
        identity = Identity(id="web-abc123", name="web")
        endpoint = control_endpoint(tmp_path, identity, control_dir="run/sockets")
        assert endpoint.socket_path == tmp_path / "run" / "sockets" / "web-abc123.sock"

    def test_explicit_socket(self, tmp_path: Path) -> None:
        """An explicit socket path sets both the directory and the socket."""
        identity = Identity(id="web-abc123", name="web")
        endpoint = control_endpoint(tmp_path, identity, control_socket="/tmp/x/ctl.sock")
        assert endpoint.socket_path == Path("/tmp/x/ctl.sock")
        assert endpoint.directory == Path("/tmp/x")
