"""YAML config loading with env var expansion."""

import logging
import os
import re
from pathlib import Path

import yaml
from pydantic import ValidationError

from .models import BuildAuditConfig

logger = logging.getLogger(__name__)

# Names an explicit config file, below --config and above the search paths
CONFIG_ENV_VAR = "BUILDAUDIT_CONFIG"

_ENV_REF_RE = re.compile(r"\$\{(\w+)\}")


def config_candidates(cli_path: str | None = None) -> list[tuple[Path, bool]]:
    """Config files to try, highest priority first, each with an is-explicit flag.

    Explicitly named files (``--config`` or ``$BUILDAUDIT_CONFIG``) must
    exist; the project-local and user-global files are optional.
    """
    candidates: list[tuple[Path, bool]] = []
    if cli_path:
        candidates.append((Path(cli_path), True))
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        candidates.append((Path(env_path), True))
    candidates.append((Path("buildaudit.yaml"), False))
    candidates.append((Path.home() / ".buildaudit" / "config.yaml", False))
    return candidates


def load_config(cli_path: str | None = None) -> BuildAuditConfig:
    """Load the first config found, falling back to defaults."""
    for path, explicit in config_candidates(cli_path):
        if not path.is_file():
            if explicit:
                raise ValueError(f"Config file not found: {path}")
            continue
        raw = _read_yaml(path)
        if raw is None:
            continue
        try:
            config = BuildAuditConfig.model_validate(_expand_env_vars(raw))
        except ValidationError as e:
            raise ValueError(f"Invalid config in {path}: {e}") from e
        logger.debug("Loaded config from %s", path)
        return config

    return BuildAuditConfig()


def _read_yaml(path: Path) -> dict | None:
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e
    if raw is not None and not isinstance(raw, dict):
        raise ValueError(f"Invalid config in {path}: expected a mapping")
    return raw


def _expand_env_vars(obj: object) -> object:
    """Replace ${VAR} references in strings, recursing into dicts and lists."""
    if isinstance(obj, str):
        return _ENV_REF_RE.sub(lambda m: os.environ.get(m.group(1), ""), obj)
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


# Default YAML template for `buildaudit config init`
DEFAULT_CONFIG_TEMPLATE = """\
# buildaudit.yaml

# Freshness audit
audit:
  source_dir: "source"         # scanned inside every workspace
  run_log: ".buildaudit/run-log.json"
  sequential: true             # false = audit workspaces concurrently
  comparison: "exact"          # exact | not-newer
  scan_timeout: 30             # seconds per workspace scan
  max_retries: 2
  retry_delay: 0.05
  missing_source: "fresh"      # fresh | error

# Workspace discovery
project:
  manifest: "package.json"
  # workspaces: ["packages/*"]
  dependency_fields: [dependencies, devDependencies, optionalDependencies]

# Logging
log_level: "info"              # debug | info | warn | error
log_format: "text"             # text | json
"""
