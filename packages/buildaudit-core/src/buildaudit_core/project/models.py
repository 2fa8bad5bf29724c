"""Data models for the project model: workspaces and dependency descriptors."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable


class ProjectNotFoundError(LookupError):
    """No project manifest could be found at or above a path."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(f"unable to find project at {self.path}")


@dataclass(frozen=True)
class Descriptor:
    """A dependency reference: a package name and the range it is requested at."""

    name: str
    range: str = "*"

    def __str__(self) -> str:
        return f"{self.name}@{self.range}"


@dataclass(eq=False)
class Workspace:
    """A buildable unit of the project.

    Hashed by identity: two workspaces with the same data are still
    distinct handles, the same way the project model hands them out.
    """

    name: str
    cwd: Path
    relative_cwd: str
    version: str | None = None
    dependencies: dict[str, Descriptor] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"Workspace({self.relative_cwd!r})"


@runtime_checkable
class Project(Protocol):
    """What the auditors need from a project model."""

    cwd: Path

    @property
    def workspaces(self) -> list[Workspace]: ...

    @property
    def top_level_workspace(self) -> Workspace: ...

    def try_workspace_by_descriptor(self, descriptor: Descriptor) -> Workspace | None: ...

    def workspace_by_cwd(self, path: Path) -> Workspace | None: ...

    async def restore_install_state(self) -> None: ...
