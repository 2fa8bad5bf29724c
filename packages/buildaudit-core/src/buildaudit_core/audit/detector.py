"""Detects whether a workspace's own files changed since a point in time."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from stat import S_ISDIR, S_ISREG
from typing import Protocol, runtime_checkable

from buildaudit_core.config.models import AuditSettings
from buildaudit_core.project.models import Workspace

logger = logging.getLogger(__name__)


class ScanError(OSError):
    """Wraps a failed source tree scan with the workspace it was for."""

    def __init__(
        self, workspace_key: str, directory: Path, cause: Exception, retryable: bool = False
    ) -> None:
        self.workspace_key = workspace_key
        self.directory = directory
        self.retryable = retryable
        super().__init__(f"scan of {directory} for {workspace_key} failed: {cause}")
        self.__cause__ = cause


def latest_modification(folder: Path) -> float:
    """Most recent file modification time under *folder*, in milliseconds.

    Directories are recursed into; only files contribute a timestamp.
    Symlinks are followed, but each directory is walked once, so link
    loops terminate. Returns 0.0 for a tree without files.
    """
    root = folder.stat()
    return _walk(folder, {(root.st_dev, root.st_ino)})


def _walk(folder: Path, seen: set[tuple[int, int]]) -> float:
    latest = 0.0
    for entry in folder.iterdir():
        st = entry.stat()
        if S_ISDIR(st.st_mode):
            key = (st.st_dev, st.st_ino)
            if key in seen:
                continue
            seen.add(key)
            latest = max(latest, _walk(entry, seen))
        elif S_ISREG(st.st_mode):
            latest = max(latest, st.st_mtime_ns / 1_000_000)
    return latest


@runtime_checkable
class FreshnessOracle(Protocol):
    """Answers whether a workspace's own content is unchanged since *baseline*."""

    async def is_fresh(self, workspace: Workspace, baseline: float) -> bool: ...


class FileTreeOracle:
    """Scans ``<workspace>/<source_dir>`` and compares its newest mtime to a baseline."""

    def __init__(self, settings: AuditSettings | None = None) -> None:
        self.settings = settings or AuditSettings()

    def source_directory(self, workspace: Workspace) -> Path:
        return workspace.cwd / self.settings.source_dir

    async def is_fresh(self, workspace: Workspace, baseline: float) -> bool:
        directory = self.source_directory(workspace)
        if not directory.is_dir():
            if self.settings.missing_source == "fresh":
                logger.warning("No source directory at %s, treating as fresh", directory)
                return True
            raise ScanError(
                workspace.relative_cwd, directory, FileNotFoundError(str(directory))
            )

        latest = await self.scan(workspace)
        if self.settings.comparison == "not-newer":
            fresh = latest <= baseline
        else:
            fresh = latest == baseline
        logger.debug(
            "%s: latest=%s baseline=%s fresh=%s",
            workspace.relative_cwd, latest, baseline, fresh,
        )
        return fresh

    async def scan(self, workspace: Workspace) -> float:
        """Run the stat walk off the event loop, with a deadline and bounded retries."""
        directory = self.source_directory(workspace)
        attempt = 0
        while True:
            try:
                return await asyncio.wait_for(
                    asyncio.to_thread(latest_modification, directory),
                    timeout=self.settings.scan_timeout,
                )
            except TimeoutError as e:
                raise ScanError(workspace.relative_cwd, directory, e) from e
            except OSError as e:
                if attempt >= self.settings.max_retries:
                    raise ScanError(
                        workspace.relative_cwd, directory, e, retryable=True
                    ) from e
                delay = self.settings.retry_delay * (2 ** attempt)
                logger.warning(
                    "Scanning %s failed (%s), retrying in %.2fs", directory, e, delay
                )
                await asyncio.sleep(delay)
                attempt += 1
