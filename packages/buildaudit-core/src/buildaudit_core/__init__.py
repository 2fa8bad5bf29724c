"""buildaudit core - freshness auditing for monorepo workspaces."""

from buildaudit_core.audit import (
    BuildInstruction,
    FreshnessCache,
    ProjectAuditor,
    ReportInspector,
    UnitAuditor,
    UnitReport,
)
from buildaudit_core.config import BuildAuditConfig, load_config
from buildaudit_core.project import ProjectNotFoundError, RunLog, WorkspaceProject

__version__ = "0.1.0"

__all__ = [
    "BuildAuditConfig",
    "BuildInstruction",
    "FreshnessCache",
    "ProjectAuditor",
    "ProjectNotFoundError",
    "ReportInspector",
    "RunLog",
    "UnitAuditor",
    "UnitReport",
    "WorkspaceProject",
    "load_config",
]
