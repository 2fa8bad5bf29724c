"""Tests for package.json workspace discovery and descriptor resolution."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from buildaudit_core.config.models import ProjectSettings
from buildaudit_core.project import Descriptor, Project, ProjectNotFoundError, WorkspaceProject

from conftest import write_workspace


class TestFind:
    def test_discovers_workspaces(self, monorepo: Path):
        project = WorkspaceProject.find(monorepo)

        assert project.cwd == monorepo.resolve()
        assert project.top_level_workspace.relative_cwd == "."
        assert [w.relative_cwd for w in project.workspaces] == [
            ".", "packages/app", "packages/lib", "packages/util",
        ]
        assert isinstance(project, Project)

    def test_find_from_nested_path(self, monorepo: Path):
        project = WorkspaceProject.find(monorepo / "packages" / "app" / "source" / "index.js")
        assert project.cwd == monorepo.resolve()

    def test_dependencies_keep_manifest_order(self, monorepo: Path):
        project = WorkspaceProject.find(monorepo)
        app = project.workspace_by_cwd(monorepo / "packages" / "app")

        assert list(app.dependencies) == ["@acme/lib", "left-pad"]
        assert app.dependencies["@acme/lib"] == Descriptor("@acme/lib", "workspace:*")

    def test_workspaces_object_form(self, tmp_path: Path):
        (tmp_path / "package.json").write_text(
            json.dumps({"name": "root", "workspaces": {"packages": ["libs/*"]}})
        )
        write_workspace(tmp_path, "libs/one", "one")

        project = WorkspaceProject.find(tmp_path)
        assert [w.name for w in project.workspaces] == ["root", "one"]

    def test_settings_override_globs(self, monorepo: Path):
        settings = ProjectSettings(workspaces=["packages/u*"])
        project = WorkspaceProject.find(monorepo, settings)

        assert [w.relative_cwd for w in project.workspaces] == [".", "packages/util"]

    def test_single_package_project(self, tmp_path: Path):
        write_workspace(tmp_path, "solo", "solo")
        project = WorkspaceProject.find(tmp_path / "solo")

        assert [w.name for w in project.workspaces] == ["solo"]

    def test_node_modules_skipped(self, monorepo: Path):
        write_workspace(monorepo, "packages/node_modules", "vendored")
        project = WorkspaceProject.find(monorepo)
        assert "vendored" not in [w.name for w in project.workspaces]

    def test_no_manifest_raises(self, tmp_path: Path):
        with pytest.raises(ProjectNotFoundError) as exc_info:
            WorkspaceProject.find(tmp_path / "nowhere")
        assert "unable to find project" in str(exc_info.value)

    def test_invalid_manifest_raises(self, tmp_path: Path):
        (tmp_path / "package.json").write_text("{not json")
        with pytest.raises(ValueError, match="Invalid manifest"):
            WorkspaceProject.find(tmp_path)


class TestResolution:
    @pytest.fixture
    def project(self, monorepo: Path) -> WorkspaceProject:
        return WorkspaceProject.find(monorepo)

    @pytest.mark.parametrize("rng", [
        "workspace:*", "workspace:^", "workspace:packages/util", "*", "", "1.0.0", "^1.0.0", "~1.0.0",
    ])
    def test_local_ranges_resolve(self, project, rng):
        found = project.try_workspace_by_descriptor(Descriptor("@acme/util", rng))
        assert found is not None
        assert found.relative_cwd == "packages/util"

    @pytest.mark.parametrize("rng", ["^2.0.0", "npm:@acme/util@1.0.0", "file:../util", "github:acme/util"])
    def test_foreign_ranges_are_external(self, project, rng):
        assert project.try_workspace_by_descriptor(Descriptor("@acme/util", rng)) is None

    def test_unknown_name_is_external(self, project):
        assert project.try_workspace_by_descriptor(Descriptor("left-pad", "^1.3.0")) is None

    def test_workspace_by_cwd_picks_innermost(self, project, monorepo: Path):
        inner = project.workspace_by_cwd(monorepo / "packages" / "lib" / "source")
        assert inner.relative_cwd == "packages/lib"
        assert project.workspace_by_cwd(monorepo) is project.top_level_workspace
        assert project.workspace_by_cwd(monorepo.parent) is None


class TestRestoreInstallState:
    @pytest.mark.asyncio
    async def test_rereads_manifests(self, monorepo: Path):
        project = WorkspaceProject.find(monorepo)
        util = project.workspace_by_cwd(monorepo / "packages" / "util")
        assert util.dependencies == {}

        write_workspace(monorepo, "packages/util", "@acme/util", {"@acme/app": "workspace:*"})
        await project.restore_install_state()

        assert util.dependencies == {"@acme/app": Descriptor("@acme/app", "workspace:*")}


class TestRangeResolution:
    @pytest.fixture
    def project(self, tmp_path: Path) -> WorkspaceProject:
        (tmp_path / "package.json").write_text(
            json.dumps({"name": "root", "workspaces": ["packages/*"]})
        )
        write_workspace(tmp_path, "packages/core", "@acme/core", version="1.2.5")
        return WorkspaceProject.find(tmp_path)

    @pytest.mark.parametrize("rng", [
        "^1.0.0", "~1.2.0", ">=1.0.0", "1.x", ">=1.0.0 <2.0.0", "^0.9.0 || ^1.1.0", "=1.2.5",
    ])
    def test_npm_ranges_match_newer_versions(self, project, rng):
        found = project.try_workspace_by_descriptor(Descriptor("@acme/core", rng))
        assert found is not None
        assert found.relative_cwd == "packages/core"

    @pytest.mark.parametrize("rng", ["^2.0.0", "~1.1.0", "<1.0.0", "not-a-range"])
    def test_unsatisfied_ranges_are_external(self, project, rng):
        assert project.try_workspace_by_descriptor(Descriptor("@acme/core", rng)) is None

    def test_invalid_workspace_version_is_external(self, tmp_path: Path):
        write_workspace(tmp_path, "odd", "odd", version="one")
        project = WorkspaceProject.find(tmp_path / "odd")

        assert project.try_workspace_by_descriptor(Descriptor("odd", "^1.0.0")) is None
