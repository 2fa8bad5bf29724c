"""Audits the workspaces of a project for changes since their last build."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

from buildaudit_core.audit.cache import FreshnessCache
from buildaudit_core.audit.detector import FileTreeOracle, FreshnessOracle
from buildaudit_core.audit.report import ProjectReport, UnitReport
from buildaudit_core.audit.unit_auditor import UnitAuditor
from buildaudit_core.config.models import AuditSettings, BuildAuditConfig
from buildaudit_core.project.models import Project, Workspace
from buildaudit_core.project.run_log import RunLog
from buildaudit_core.project.workspaces import WorkspaceProject

logger = logging.getLogger(__name__)


class ProjectAuditor:
    """Runs a UnitAuditor over every targeted workspace of a project.

    All audits of one run share a single FreshnessCache, so a workspace
    reached from several targets is only scanned once.
    """

    def __init__(
        self,
        project: Project,
        targets: list[str] | None = None,
        settings: AuditSettings | None = None,
        oracle: FreshnessOracle | None = None,
        run_log: RunLog | None = None,
    ) -> None:
        self._project = project
        self._targets = targets
        self.settings = settings or AuditSettings()
        self._oracle = oracle or FileTreeOracle(self.settings)
        self._run_log = run_log
        self.cache: FreshnessCache | None = None

    @classmethod
    def for_project_path(
        cls,
        path: Path | str,
        config: BuildAuditConfig | None = None,
        oracle: FreshnessOracle | None = None,
    ) -> ProjectAuditor:
        """Build an auditor for the project at *path*.

        A path inside the top-level workspace targets every workspace; a
        path inside any other workspace targets just that one.
        """
        config = config or BuildAuditConfig()
        project = WorkspaceProject.find(path, config.project)

        targets: list[str] = []
        workspace = project.workspace_by_cwd(Path(path))
        if workspace is project.top_level_workspace:
            targets.extend(w.relative_cwd for w in project.workspaces)
        elif workspace is not None:
            targets.append(workspace.relative_cwd)

        return cls(project, targets, settings=config.audit, oracle=oracle)

    @property
    def project(self) -> Project:
        return self._project

    def target_workspaces(self) -> list[Workspace]:
        """Workspaces this auditor will report on, in project order."""
        top_level = self._project.top_level_workspace
        selected: list[Workspace] = []
        for workspace in self._project.workspaces:
            # The top-level workspace only aggregates the others.
            if workspace is top_level:
                continue
            if self._targets is not None and workspace.relative_cwd not in self._targets:
                continue
            selected.append(workspace)
        return selected

    async def audit(self, sequential: bool | None = None) -> ProjectReport:
        """Audit the targeted workspaces and return one report per target."""
        if sequential is None:
            sequential = self.settings.sequential

        await self._project.restore_install_state()

        cache = FreshnessCache(self._oracle)
        cache.load_previous_state(await self._load_run_log())
        self.cache = cache

        targets = self.target_workspaces()
        logger.info(
            "Auditing %d workspace(s) %s",
            len(targets), "sequentially" if sequential else "concurrently",
        )

        if sequential:
            reports: ProjectReport = {}
            for workspace in targets:
                reports[workspace] = await UnitAuditor(workspace, self._project).audit(cache)
        else:
            reports = await self._audit_concurrently(targets, cache)

        stale = sum(1 for report in reports.values() if not report.is_fresh)
        logger.info("Audit finished: %d of %d workspace(s) not fresh", stale, len(reports))
        return reports

    async def _audit_concurrently(
        self, targets: list[Workspace], cache: FreshnessCache
    ) -> ProjectReport:
        """Start every audit at once; the first failure cancels the rest."""
        pending: dict[Workspace, asyncio.Task[UnitReport]] = {}
        try:
            async with asyncio.TaskGroup() as group:
                for workspace in targets:
                    auditor = UnitAuditor(workspace, self._project)
                    pending[workspace] = group.create_task(auditor.audit(cache))
        except ExceptionGroup as eg:
            # Surface the same error, with its own cause, as a sequential run would.
            raise eg.exceptions[0]
        return {workspace: task.result() for workspace, task in pending.items()}

    async def _load_run_log(self) -> RunLog:
        if self._run_log is not None:
            return self._run_log
        path = Path(self._project.cwd) / self.settings.run_log
        return await asyncio.to_thread(RunLog.load, path)
