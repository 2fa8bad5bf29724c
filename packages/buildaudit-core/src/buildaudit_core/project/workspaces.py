"""Workspace discovery for package.json based monorepos."""

from __future__ import annotations

import asyncio
import json
import logging
import re
from pathlib import Path

from semantic_version import NpmSpec, Version

from buildaudit_core.config.models import ProjectSettings
from buildaudit_core.project.models import Descriptor, ProjectNotFoundError, Workspace

logger = logging.getLogger(__name__)

# Directories never searched for workspace manifests
_IGNORE_PARTS = {"node_modules", ".git", ".yarn"}

# Ranges pointing somewhere other than the registry never resolve to a workspace
_FOREIGN_PROTOCOL_RE = re.compile(r"^(npm|file|link|portal|patch|git|git\+\w+|github|https?):")


def _read_manifest(path: Path) -> dict:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid manifest {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError(f"Invalid manifest {path}: expected a JSON object")
    return data


def _workspace_globs(manifest: dict) -> list[str] | None:
    """Return the declared workspace globs, or None if the manifest declares none."""
    declared = manifest.get("workspaces")
    if isinstance(declared, dict):
        declared = declared.get("packages")
    if isinstance(declared, list):
        return [g for g in declared if isinstance(g, str)]
    return None


def _parse_dependencies(manifest: dict, fields: list[str]) -> dict[str, Descriptor]:
    """Collect descriptors in manifest order; the first field naming a package wins."""
    deps: dict[str, Descriptor] = {}
    for field_name in fields:
        section = manifest.get(field_name)
        if not isinstance(section, dict):
            continue
        for name, rng in section.items():
            if name in deps:
                continue
            deps[name] = Descriptor(name=name, range=str(rng))
    return deps


def _satisfies(rng: str, version: str | None) -> bool:
    """Whether a dependency range can be served by a workspace at *version*."""
    rng = rng.strip()
    if rng.startswith("workspace:"):
        return True
    if _FOREIGN_PROTOCOL_RE.match(rng) or "/" in rng:
        return False
    if rng in ("", "*", "latest"):
        return True
    if version is None:
        return False
    try:
        return NpmSpec(rng).match(Version(version))
    except ValueError:
        logger.debug("Cannot match range %r against version %r", rng, version)
        return False


class WorkspaceProject:
    """A project read from a root manifest and its workspace member manifests."""

    def __init__(
        self,
        cwd: Path,
        top_level_workspace: Workspace,
        workspaces: list[Workspace] | None = None,
        settings: ProjectSettings | None = None,
    ) -> None:
        self.cwd = Path(cwd)
        self.settings = settings or ProjectSettings()
        self._top_level = top_level_workspace
        members = [w for w in (workspaces or []) if w is not top_level_workspace]
        self._workspaces = [top_level_workspace, *members]
        self._by_name = {w.name: w for w in self._workspaces}

    @property
    def workspaces(self) -> list[Workspace]:
        return list(self._workspaces)

    @property
    def top_level_workspace(self) -> Workspace:
        return self._top_level

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    @classmethod
    def find(cls, path: Path | str, settings: ProjectSettings | None = None) -> WorkspaceProject:
        """Locate the project owning *path* and load all of its workspaces.

        Walks upward from *path*. The first manifest declaring workspaces is
        the project root; without one, the nearest manifest is a
        single-workspace project.
        """
        settings = settings or ProjectSettings()
        start = Path(path).resolve()
        if start.is_file():
            start = start.parent

        nearest: Path | None = None
        root: Path | None = None
        for candidate in (start, *start.parents):
            manifest_path = candidate / settings.manifest
            if not manifest_path.is_file():
                continue
            if nearest is None:
                nearest = candidate
            if _workspace_globs(_read_manifest(manifest_path)) is not None:
                root = candidate
                break

        root = root or nearest
        if root is None:
            raise ProjectNotFoundError(start)

        root_manifest = _read_manifest(root / settings.manifest)
        globs = settings.workspaces if settings.workspaces is not None else (
            _workspace_globs(root_manifest) or []
        )

        top = cls._load_workspace(root, root, root_manifest, settings)
        members: list[Workspace] = []
        for member_dir in cls._expand_globs(root, globs, settings.manifest):
            manifest = _read_manifest(member_dir / settings.manifest)
            members.append(cls._load_workspace(root, member_dir, manifest, settings))

        logger.info("Found project at %s with %d workspace(s)", root, len(members))
        return cls(root, top, members, settings)

    @staticmethod
    def _expand_globs(root: Path, globs: list[str], manifest_name: str) -> list[Path]:
        found: dict[Path, None] = {}
        for pattern in globs:
            for candidate in sorted(root.glob(pattern)):
                rel = candidate.relative_to(root)
                if any(part in _IGNORE_PARTS for part in rel.parts):
                    continue
                if candidate == root or not (candidate / manifest_name).is_file():
                    continue
                found[candidate.resolve()] = None
        return list(found)

    @staticmethod
    def _load_workspace(
        root: Path, cwd: Path, manifest: dict, settings: ProjectSettings
    ) -> Workspace:
        relative = cwd.relative_to(root).as_posix()
        return Workspace(
            name=str(manifest.get("name") or relative),
            cwd=cwd,
            relative_cwd=relative,
            version=manifest.get("version"),
            dependencies=_parse_dependencies(manifest, settings.dependency_fields),
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def try_workspace_by_descriptor(self, descriptor: Descriptor) -> Workspace | None:
        """Resolve a descriptor to a workspace of this project, or None if external."""
        workspace = self._by_name.get(descriptor.name)
        if workspace is None:
            return None
        if not _satisfies(descriptor.range, workspace.version):
            return None
        return workspace

    def workspace_by_cwd(self, path: Path | str) -> Workspace | None:
        """Return the innermost workspace containing *path*."""
        target = Path(path).resolve()
        best: Workspace | None = None
        for workspace in self._workspaces:
            cwd = workspace.cwd.resolve()
            if target == cwd or target.is_relative_to(cwd):
                if best is None or len(cwd.parts) > len(best.cwd.resolve().parts):
                    best = workspace
        return best

    async def restore_install_state(self) -> None:
        """Re-read every manifest so dependency lists match what is on disk."""

        def _sync() -> None:
            for workspace in self._workspaces:
                manifest_path = workspace.cwd / self.settings.manifest
                if not manifest_path.is_file():
                    continue
                manifest = _read_manifest(manifest_path)
                workspace.version = manifest.get("version")
                workspace.dependencies = _parse_dependencies(
                    manifest, self.settings.dependency_fields
                )

        await asyncio.to_thread(_sync)
