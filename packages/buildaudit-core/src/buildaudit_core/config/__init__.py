from .loader import load_config
from .models import (
    AuditSettings,
    BuildAuditConfig,
    ProjectSettings,
)

__all__ = [
    "AuditSettings",
    "BuildAuditConfig",
    "ProjectSettings",
    "load_config",
]
