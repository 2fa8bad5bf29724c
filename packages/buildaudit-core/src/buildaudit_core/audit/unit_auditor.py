"""Audits a single workspace and its dependency workspaces for freshness."""

from __future__ import annotations

import logging

from buildaudit_core.audit.cache import FreshnessCache
from buildaudit_core.audit.report import UnitReport
from buildaudit_core.project.models import Descriptor, Project, Workspace

logger = logging.getLogger(__name__)


class UnitAuditor:
    """Walks one workspace's dependency graph depth-first and builds its report tree."""

    def __init__(self, workspace: Workspace, project: Project) -> None:
        self._workspace = workspace
        self._project = project

    async def audit(self, cache: FreshnessCache) -> UnitReport:
        """Audit the workspace and return a report of the findings."""
        report = UnitReport(self._workspace)
        report.is_fresh = await self._audit_dependency_workspace(
            self._workspace, cache, [], report
        )
        return report

    async def _audit_dependency_workspace(
        self,
        workspace: Workspace,
        cache: FreshnessCache,
        path: list[Descriptor],
        report: UnitReport,
    ) -> bool:
        """Fill *report* for *workspace* and return whether its whole branch is fresh.

        *path* holds the descriptors followed from the root to here. A
        descriptor already on it closes a cycle; that branch is recorded and
        left out of the verdict.
        """
        # Assume fresh until checked.
        report.is_fresh = True

        report.file_freshness_from_cache = cache.was_checked(workspace)
        report.files_were_fresh = await cache.is_fresh(workspace)
        if not report.files_were_fresh:
            report.is_fresh = False

        report.dependencies_were_fresh = True
        for descriptor in list(workspace.dependencies.values()):
            dependency = self._project.try_workspace_by_descriptor(descriptor)
            # Only local workspaces have files the user could have changed.
            if dependency is None:
                continue

            dependency_report = UnitReport(dependency)
            report.dependencies[str(descriptor)] = dependency_report

            if descriptor in path:
                logger.debug(
                    "%s -> %s loops back to a parent", workspace.relative_cwd, descriptor
                )
                dependency_report.loops_back_to_parent = True
                continue
            dependency_report.loops_back_to_parent = False

            path.append(descriptor)
            try:
                dependency_fresh = await self._audit_dependency_workspace(
                    dependency, cache, path, dependency_report
                )
            finally:
                path.pop()

            # The recursive call already folded the dependency's own files in.
            dependency_report.is_fresh = dependency_fresh
            if not dependency_fresh:
                report.dependencies_were_fresh = False

        report.is_fresh = report.dependencies_were_fresh and report.files_were_fresh
        return report.is_fresh
