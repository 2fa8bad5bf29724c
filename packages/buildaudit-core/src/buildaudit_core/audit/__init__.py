"""Freshness audit: which workspaces changed since their last build."""

from buildaudit_core.audit.cache import FreshnessCache
from buildaudit_core.audit.detector import (
    FileTreeOracle,
    FreshnessOracle,
    ScanError,
    latest_modification,
)
from buildaudit_core.audit.inspector import ReportInspector, dedupe
from buildaudit_core.audit.project_auditor import ProjectAuditor
from buildaudit_core.audit.report import BuildInstruction, ProjectReport, UnitReport
from buildaudit_core.audit.unit_auditor import UnitAuditor

__all__ = [
    "BuildInstruction",
    "FileTreeOracle",
    "FreshnessCache",
    "FreshnessOracle",
    "ProjectAuditor",
    "ProjectReport",
    "ReportInspector",
    "ScanError",
    "UnitAuditor",
    "UnitReport",
    "dedupe",
    "latest_modification",
]
