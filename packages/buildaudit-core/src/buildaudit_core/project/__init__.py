"""Project model: workspaces, dependency descriptors, and the previous-run log."""

from buildaudit_core.project.models import (
    Descriptor,
    Project,
    ProjectNotFoundError,
    Workspace,
)
from buildaudit_core.project.run_log import RunLog, RunLogEntry, build_key
from buildaudit_core.project.workspaces import WorkspaceProject

__all__ = [
    "Descriptor",
    "Project",
    "ProjectNotFoundError",
    "RunLog",
    "RunLogEntry",
    "Workspace",
    "WorkspaceProject",
    "build_key",
]
