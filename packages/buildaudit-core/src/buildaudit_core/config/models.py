from pydantic import BaseModel, Field
from typing import Literal


class AuditSettings(BaseModel):
    source_dir: str = "source"
    run_log: str = ".buildaudit/run-log.json"
    sequential: bool = True
    comparison: Literal["exact", "not-newer"] = "exact"
    scan_timeout: float | None = Field(default=30.0, gt=0)
    max_retries: int = Field(default=2, ge=0)
    retry_delay: float = Field(default=0.05, gt=0)
    missing_source: Literal["fresh", "error"] = "fresh"


class ProjectSettings(BaseModel):
    manifest: str = "package.json"
    workspaces: list[str] | None = None
    dependency_fields: list[str] = Field(default_factory=lambda: [
        "dependencies", "devDependencies", "optionalDependencies"
    ])


class BuildAuditConfig(BaseModel):
    audit: AuditSettings = Field(default_factory=AuditSettings)
    project: ProjectSettings = Field(default_factory=ProjectSettings)
    log_level: Literal["debug", "info", "warn", "error"] = "info"
    log_format: Literal["text", "json"] = "text"
