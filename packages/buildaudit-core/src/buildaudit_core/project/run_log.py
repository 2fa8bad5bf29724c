"""The previous-run log: last recorded build timestamps per workspace."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from buildaudit_core.project.models import Workspace

logger = logging.getLogger(__name__)


def build_key(workspace: Workspace) -> str:
    """Run log key for a workspace's build step."""
    return f"{workspace.relative_cwd}#build"


class RunLogEntry(BaseModel):
    """What was recorded the last time a workspace was built."""

    model_config = ConfigDict(populate_by_name=True)

    last_modified: float = Field(alias="lastModified")
    status: str | None = None


class RunLog(BaseModel):
    """Key-value store of run log entries, keyed by ``<relative_cwd>#build``."""

    version: int = 1
    updated_at: datetime | None = None
    entries: dict[str, RunLogEntry] = Field(default_factory=dict)

    def get(self, key: str) -> RunLogEntry | None:
        return self.entries.get(key)

    def record(
        self, workspace: Workspace, last_modified: float, status: str | None = "succeeded"
    ) -> None:
        """Store the timestamp a workspace was built at."""
        self.entries[build_key(workspace)] = RunLogEntry(
            last_modified=last_modified, status=status
        )
        self.updated_at = datetime.now(timezone.utc)

    def save(self, path: Path) -> None:
        """Write the log to a JSON file."""
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2, by_alias=True))

    @classmethod
    def load(cls, path: Path) -> RunLog:
        """Read a log from a JSON file. A missing file is an empty log."""
        if not path.is_file():
            logger.debug("No run log at %s, starting empty", path)
            return cls()
        try:
            return cls.model_validate_json(path.read_text())
        except ValidationError as e:
            raise ValueError(f"Invalid run log {path}: {e}") from e
