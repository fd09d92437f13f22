"""Workspace orchestration: one child process per workspace behind one control socket."""

from devctl.orchestrator.orchestrator import WorkspaceOrchestrator
from devctl.orchestrator.process import WorkspaceProcess, extract_url
from devctl.orchestrator.workspaces import find_workspaces, select_workspaces, workspace_from_dir

__all__ = [
    "WorkspaceOrchestrator",
    "WorkspaceProcess",
    "extract_url",
    "find_workspaces",
    "select_workspaces",
    "workspace_from_dir",
]
