"""CLI entry point for buildaudit."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Annotated

import typer
import yaml
from rich import print as rprint
from rich.syntax import Syntax
from rich.table import Table
from rich.tree import Tree

from buildaudit_core.audit import (
    FileTreeOracle,
    ProjectAuditor,
    ProjectReport,
    ReportInspector,
    ScanError,
    UnitReport,
    dedupe,
)
from buildaudit_core.config import BuildAuditConfig, load_config
from buildaudit_core.config.loader import DEFAULT_CONFIG_TEMPLATE
from buildaudit_core.project import ProjectNotFoundError, RunLog, Workspace, WorkspaceProject

app = typer.Typer(
    name="buildaudit",
    help="Find the workspaces of a monorepo that changed since their last build.",
)

config_app = typer.Typer(help="Manage buildaudit configuration.")
app.add_typer(config_app, name="config")

# Global state
_config: BuildAuditConfig | None = None

_LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def _configure_logging(cfg: BuildAuditConfig) -> None:
    """Route buildaudit and buildaudit_core logs to stderr."""
    level = _LOG_LEVELS[cfg.log_level]
    if cfg.log_format == "json":
        formatter: logging.Formatter = _JsonFormatter()
    else:
        formatter = logging.Formatter("[buildaudit] %(levelname)s %(name)s: %(message)s")

    for name in ("buildaudit", "buildaudit_core"):
        logger = logging.getLogger(name)
        logger.setLevel(level)
        logger.propagate = False
        # Reset handlers so repeated invocations don't duplicate output.
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        logger.addHandler(handler)


def _get_config() -> BuildAuditConfig:
    if _config is None:
        return load_config()
    return _config


@app.callback()
def main(
    config: Annotated[
        str | None, typer.Option("--config", "-c", help="Path to buildaudit.yaml")
    ] = None,
) -> None:
    """Global options."""
    global _config
    try:
        _config = load_config(config)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    _configure_logging(_config)


# ---------------------------------------------------------------------------
# audit
# ---------------------------------------------------------------------------


def _rebuild_reasons(reports: ProjectReport) -> dict[Workspace, str]:
    """First reason each stale workspace was found stale, in walk order."""
    reasons: dict[Workspace, str] = {}

    def _walk(report: UnitReport) -> None:
        if report.loops_back_to_parent or report.is_fresh:
            return
        if report.workspace not in reasons:
            if not report.files_were_fresh and not report.dependencies_were_fresh:
                reasons[report.workspace] = "files + dependencies changed"
            elif not report.files_were_fresh:
                reasons[report.workspace] = "files changed"
            else:
                reasons[report.workspace] = "dependencies changed"
        for child in report.dependencies.values():
            _walk(child)

    for report in reports.values():
        _walk(report)
    return reasons


def _report_tree(report: UnitReport, tree: Tree) -> None:
    for key, child in report.dependencies.items():
        if child.loops_back_to_parent:
            tree.add(f"[dim]{key} ↺ loops back[/dim]")
            continue
        status = "[green]fresh[/green]" if child.is_fresh else "[red]stale[/red]"
        branch = tree.add(f"{key} ({child.workspace.relative_cwd}) {status}")
        _report_tree(child, branch)


@app.command()
def audit(
    path: Annotated[str, typer.Argument(help="Path to the project or one of its workspaces")] = ".",
    parallel: Annotated[
        bool | None,
        typer.Option("--parallel/--sequential", help="Audit workspaces concurrently"),
    ] = None,
    ci: Annotated[bool, typer.Option("--ci", help="Machine-readable output")] = False,
    as_json: Annotated[bool, typer.Option("--json", help="Print reports as JSON")] = False,
    show_tree: Annotated[bool, typer.Option("--tree", help="Show the dependency report tree")] = False,
    fail_on_stale: Annotated[
        bool, typer.Option("--fail-on-stale", help="Exit 1 if anything must be rebuilt")
    ] = False,
) -> None:
    """Audit workspaces and list the ones that must be rebuilt."""
    cfg = _get_config()
    root = Path(path).resolve()

    try:
        auditor = ProjectAuditor.for_project_path(root, cfg)
    except (ProjectNotFoundError, ValueError) as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    sequential = None if parallel is None else not parallel
    try:
        reports = asyncio.run(auditor.audit(sequential=sequential))
    except (ScanError, ValueError) as e:
        rprint(f"[red]Audit failed:[/red] {e}")
        raise typer.Exit(1)

    instructions = ReportInspector(reports).unroll()
    unique = dedupe(instructions)

    if as_json:
        payload = {
            "reports": {ws.relative_cwd: r.to_dict() for ws, r in reports.items()},
            "instructions": [i.workspace.relative_cwd for i in instructions],
        }
        typer.echo(json.dumps(payload, indent=2))
    elif ci:
        for instruction in unique:
            typer.echo(f"REBUILD {instruction.workspace.relative_cwd}")
        if not unique:
            typer.echo("OK: all workspaces fresh")
    else:
        if show_tree:
            for workspace, report in reports.items():
                status = "[green]fresh[/green]" if report.is_fresh else "[red]stale[/red]"
                tree = Tree(f"[bold]{workspace.relative_cwd}[/bold] {status}")
                _report_tree(report, tree)
                rprint(tree)

        if unique:
            reasons = _rebuild_reasons(reports)
            table = Table(title="Rebuild Plan")
            table.add_column("Workspace", style="cyan")
            table.add_column("Name")
            table.add_column("Reason", style="yellow")
            for instruction in unique:
                ws = instruction.workspace
                table.add_row(ws.relative_cwd, ws.name, reasons.get(ws, "-"))
            rprint(table)
            rprint(f"\n[red]{len(unique)} workspace(s) must be rebuilt.[/red]")
        else:
            rprint(f"[green]All {len(reports)} workspace(s) up to date.[/green]")

    if fail_on_stale and instructions:
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# record
# ---------------------------------------------------------------------------


async def _scan_all(oracle: FileTreeOracle, workspaces: list[Workspace]) -> list[float]:
    return list(await asyncio.gather(*(oracle.scan(ws) for ws in workspaces)))


@app.command()
def record(
    path: Annotated[str, typer.Argument(help="Path to the project root")] = ".",
    workspace: Annotated[
        list[str] | None,
        typer.Option("--workspace", "-w", help="Workspace path to record (repeatable)"),
    ] = None,
) -> None:
    """Record the current source timestamps as the last successful build."""
    cfg = _get_config()
    try:
        project = WorkspaceProject.find(Path(path), cfg.project)
    except (ProjectNotFoundError, ValueError) as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    members = [w for w in project.workspaces if w is not project.top_level_workspace]
    if workspace:
        known = {w.relative_cwd for w in members}
        unknown = sorted(set(workspace) - known)
        if unknown:
            rprint(f"[red]Error:[/red] unknown workspace(s): {', '.join(unknown)}")
            raise typer.Exit(1)
        members = [w for w in members if w.relative_cwd in workspace]

    oracle = FileTreeOracle(cfg.audit)
    scannable = [w for w in members if oracle.source_directory(w).is_dir()]
    for skipped in members:
        if skipped not in scannable:
            rprint(f"[dim]Skipping {skipped.relative_cwd}: no {cfg.audit.source_dir}/ directory[/dim]")

    try:
        timestamps = asyncio.run(_scan_all(oracle, scannable))
    except ScanError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    log_path = project.cwd / cfg.audit.run_log
    try:
        run_log = RunLog.load(log_path)
    except ValueError as e:
        rprint(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    for ws, last_modified in zip(scannable, timestamps):
        run_log.record(ws, last_modified)
    run_log.save(log_path)
    rprint(f"[green]Recorded[/green] {len(scannable)} workspace(s) in {log_path}")


# ---------------------------------------------------------------------------
# config
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show() -> None:
    """Show current resolved configuration."""
    cfg = _get_config()
    rprint(Syntax(yaml.dump(cfg.model_dump(), default_flow_style=False), "yaml"))


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", help="Overwrite existing config"),
) -> None:
    """Create default buildaudit.yaml in current directory."""
    target = Path("buildaudit.yaml")
    if target.exists() and not force:
        rprint("[yellow]buildaudit.yaml already exists.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)
    target.write_text(DEFAULT_CONFIG_TEMPLATE)
    rprint(f"[green]Created[/green] {target}")


if __name__ == "__main__":
    app()
