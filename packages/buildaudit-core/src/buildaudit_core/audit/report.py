"""Report and instruction models produced by an audit."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from buildaudit_core.project.models import Workspace


@dataclass(eq=False)
class UnitReport:
    """Everything collected about one workspace during an audit.

    Fields stay ``None`` until the auditor gets to them. A report that
    loops back to a parent never gets any other field set.

    ``file_freshness_from_cache`` is read once, before the workspace's own
    files are checked, so it tells whether this particular visit was
    served from the cache. It is not refreshed after recursing into the
    workspace, where it would always read ``True``.
    """

    workspace: Workspace
    is_fresh: bool | None = None
    loops_back_to_parent: bool | None = None
    dependencies_were_fresh: bool | None = None
    files_were_fresh: bool | None = None
    file_freshness_from_cache: bool | None = None
    dependencies: dict[str, UnitReport] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "workspace": self.workspace.relative_cwd,
            "isFresh": self.is_fresh,
            "loopsBackToParent": self.loops_back_to_parent,
            "dependenciesWereFresh": self.dependencies_were_fresh,
            "filesWereFresh": self.files_were_fresh,
            "fileFreshnessFromCache": self.file_freshness_from_cache,
        }
        data["dependencies"] = {
            key: report.to_dict() for key, report in self.dependencies.items()
        }
        return data


@dataclass(frozen=True)
class BuildInstruction:
    """A workspace that must be rebuilt."""

    workspace: Workspace


ProjectReport = dict[Workspace, UnitReport]
