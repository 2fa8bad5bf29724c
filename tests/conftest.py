"""Shared test fixtures for buildaudit."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest

from buildaudit_core.config.models import BuildAuditConfig
from buildaudit_core.project.models import Descriptor, Workspace
from buildaudit_core.project.workspaces import WorkspaceProject


class FakeOracle:
    """In-memory oracle: verdicts by workspace key, with a call log."""

    def __init__(self, stale: set[str] | None = None, delay: float = 0.0) -> None:
        self.stale = set(stale or ())
        self.delay = delay
        self.calls: list[tuple[str, float]] = []
        self.errors: dict[str, Exception] = {}

    def calls_for(self, key: str) -> int:
        return sum(1 for called, _ in self.calls if called == key)

    async def is_fresh(self, workspace: Workspace, baseline: float) -> bool:
        self.calls.append((workspace.relative_cwd, baseline))
        if self.delay:
            await asyncio.sleep(self.delay)
        if workspace.relative_cwd in self.errors:
            raise self.errors[workspace.relative_cwd]
        return workspace.relative_cwd not in self.stale


def make_project(graph: dict[str, list[str]], root: Path = Path("/repo")) -> WorkspaceProject:
    """Build an in-memory project from ``{name: [dependency names]}``.

    Workspace ``a`` lives at ``packages/a`` and depends on its neighbours
    through ``workspace:*`` descriptors.
    """
    top = Workspace(name="root", cwd=root, relative_cwd=".", version="0.0.0")
    members: list[Workspace] = []
    for name, deps in graph.items():
        members.append(Workspace(
            name=name,
            cwd=root / "packages" / name,
            relative_cwd=f"packages/{name}",
            version="1.0.0",
            dependencies={dep: Descriptor(dep, "workspace:*") for dep in deps},
        ))
    return WorkspaceProject(root, top, members)


def ws(project: WorkspaceProject, name: str) -> Workspace:
    """Look up a workspace of *project* by package name."""
    found = project.try_workspace_by_descriptor(Descriptor(name, "workspace:*"))
    assert found is not None, name
    return found


def write_workspace(
    root: Path,
    relative: str,
    name: str,
    dependencies: dict[str, str] | None = None,
    sources: dict[str, str] | None = None,
    version: str = "1.0.0",
) -> Path:
    """Create a workspace directory with a package.json and source files."""
    cwd = root / relative
    cwd.mkdir(parents=True, exist_ok=True)
    manifest = {"name": name, "version": version, "dependencies": dependencies or {}}
    (cwd / "package.json").write_text(json.dumps(manifest))
    for rel, content in (sources or {"index.js": "module.exports = 1;\n"}).items():
        target = cwd / "source" / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(content)
    return cwd


@pytest.fixture
def fake_oracle():
    return FakeOracle()


@pytest.fixture
def sample_config():
    return BuildAuditConfig()


@pytest.fixture
def monorepo(tmp_path: Path) -> Path:
    """On-disk monorepo: app -> lib -> util, plus an external dependency."""
    (tmp_path / "package.json").write_text(json.dumps({
        "name": "monorepo",
        "private": True,
        "workspaces": ["packages/*"],
    }))
    write_workspace(
        tmp_path, "packages/app", "@acme/app",
        {"@acme/lib": "workspace:*", "left-pad": "^1.3.0"},
    )
    write_workspace(tmp_path, "packages/lib", "@acme/lib", {"@acme/util": "^1.0.0"})
    write_workspace(tmp_path, "packages/util", "@acme/util")
    return tmp_path
