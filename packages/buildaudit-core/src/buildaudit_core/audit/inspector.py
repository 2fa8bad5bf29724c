"""Turns an audit report into build instructions."""

from __future__ import annotations

from collections.abc import Iterable

from buildaudit_core.audit.report import BuildInstruction, ProjectReport, UnitReport
from buildaudit_core.project.models import Workspace


class ReportInspector:
    """Inspects a project report and lists the workspaces that must be rebuilt.

    A workspace that isn't fresh needs a rebuild, and so does every stale
    workspace it depends on. Instructions come out in walk order and are
    not deduplicated.
    """

    def __init__(self, report: ProjectReport) -> None:
        self._report = report

    def unroll(self) -> list[BuildInstruction]:
        """Unroll the report into individual build instructions."""
        instructions: list[BuildInstruction] = []
        for unit_report in self._report.values():
            self._unroll_unit_report(unit_report, instructions)
        return instructions

    def _unroll_unit_report(
        self, unit_report: UnitReport, instructions: list[BuildInstruction]
    ) -> None:
        if unit_report.loops_back_to_parent:
            return

        if unit_report.is_fresh:
            return

        if not unit_report.dependencies_were_fresh:
            instructions.append(BuildInstruction(unit_report.workspace))
            # And the dependencies that caused this.
            for dependency_report in unit_report.dependencies.values():
                self._unroll_unit_report(dependency_report, instructions)
        else:
            # Dependencies are fresh, so only our own files changed.
            instructions.append(BuildInstruction(unit_report.workspace))


def dedupe(instructions: Iterable[BuildInstruction]) -> list[BuildInstruction]:
    """Drop repeated workspaces, keeping the first occurrence of each."""
    seen: set[Workspace] = set()
    unique: list[BuildInstruction] = []
    for instruction in instructions:
        if instruction.workspace in seen:
            continue
        seen.add(instruction.workspace)
        unique.append(instruction)
    return unique
