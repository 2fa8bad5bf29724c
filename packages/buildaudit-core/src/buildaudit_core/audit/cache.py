"""Per-run memoization of own-file freshness verdicts."""

from __future__ import annotations

import asyncio
import logging
import time

from buildaudit_core.audit.detector import FreshnessOracle
from buildaudit_core.project.models import Workspace
from buildaudit_core.project.run_log import RunLog, build_key

logger = logging.getLogger(__name__)


class FreshnessCache:
    """Holds freshness information for one audit run and serves as a cache.

    Each workspace is handed to the oracle at most once. Concurrent first
    requests for the same workspace await the same in-flight task instead
    of scanning the file system twice.
    """

    def __init__(self, oracle: FreshnessOracle, run_log: RunLog | None = None) -> None:
        self._oracle = oracle
        self._previous_state = run_log
        self._checks: dict[Workspace, asyncio.Task[bool]] = {}

    def load_previous_state(self, run_log: RunLog) -> None:
        """Use *run_log* as the source of baseline timestamps."""
        self._previous_state = run_log

    def was_checked(self, workspace: Workspace) -> bool:
        """True once a check for *workspace* has been started in this run."""
        return workspace in self._checks

    def baseline_for(self, workspace: Workspace) -> float:
        """Last recorded build timestamp, or now (in ms) for a workspace never built."""
        if self._previous_state is not None:
            entry = self._previous_state.get(build_key(workspace))
            if entry is not None:
                return entry.last_modified
        return time.time() * 1000

    async def is_fresh(self, workspace: Workspace) -> bool:
        """Whether *workspace*'s own files are unchanged since its last build."""
        check = self._checks.get(workspace)
        if check is None:
            check = asyncio.create_task(self._check(workspace))
            self._checks[workspace] = check
        else:
            logger.debug("Freshness of %s served from cache", workspace.relative_cwd)
        return await check

    async def _check(self, workspace: Workspace) -> bool:
        baseline = self.baseline_for(workspace)
        fresh = await self._oracle.is_fresh(workspace, baseline)
        logger.debug("Own files of %s fresh=%s", workspace.relative_cwd, fresh)
        return fresh

    def verdicts(self) -> dict[Workspace, bool]:
        """Snapshot of every verdict that completed successfully."""
        return {
            workspace: check.result()
            for workspace, check in self._checks.items()
            if check.done() and not check.cancelled() and check.exception() is None
        }
