"""Configuration hierarchy: merges sources in priority order.

Precedence (later overrides earlier):
  1. Package defaults
  2. Global config   (~/.firecomp/config.yaml)
  3. Project config   (./firecomp.yaml, searched upward)
  4. Environment variables (FIRECOMP_*)
  5. Runtime arguments
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from firecomp.config.defaults import get_defaults

logger = logging.getLogger(__name__)

_GLOBAL_CONFIG_PATH = Path.home() / ".firecomp" / "config.yaml"
_PROJECT_CONFIG_NAME = "firecomp.yaml"

# Map of environment variables to config keys
_ENV_MAP: dict[str, str] = {
    "FIRECOMP_RUN_DIR": "run_dir",
    "FIRECOMP_CACHE_ROOT": "cache_root",
    "FIRECOMP_DB_PATH": "db_path",
    "FIRECOMP_TEMP_DIR": "temp_dir",
    "FIRECOMP_OVERLAY_CLIP": "overlay_clip",
    "FIRECOMP_FFMPEG_PATH": "ffmpeg_path",
    "FIRECOMP_FFPROBE_PATH": "ffprobe_path",
    "FIRECOMP_OUTPUT_HEIGHT": "output_height",
    "FIRECOMP_DOWNLOAD_TIMEOUT": "download_timeout",
    "FIRECOMP_MAX_IMAGE_MB": "max_image_mb",
    "FIRECOMP_LOG_LEVEL": "log_level",
}

# Keys that should be parsed as specific types
_TYPE_MAP: dict[str, type] = {
    "output_height": int,
    "download_timeout": float,
    "max_image_mb": float,
}


def load_config_hierarchy(
    global_path: Path | None = None,
    **runtime_overrides: Any,
) -> dict[str, Any]:
    """Load and merge configuration from all sources.

    Returns a merged dict with the final resolved values.
    """
    config = get_defaults()

    # Layer 2: Global config
    global_cfg = _load_yaml_config(global_path or _GLOBAL_CONFIG_PATH)
    if global_cfg:
        config.update(global_cfg)

    # Layer 3: Project config (search from cwd upward)
    project_path = _find_project_config()
    if project_path:
        project_cfg = _load_yaml_config(project_path)
        if project_cfg:
            config.update(project_cfg)

    # Layer 4: Environment variables
    config.update(_load_env_vars())

    # Layer 5: Runtime arguments (highest priority), only when explicitly set
    for key, value in runtime_overrides.items():
        if value is not None:
            config[key] = value

    return config


def _load_yaml_config(path: Path) -> dict[str, Any] | None:
    """Load a YAML config file if it exists."""
    if not path.exists() or not path.is_file():
        return None
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
        if isinstance(data, dict):
            return data
        logger.warning("Config file %s is not a mapping, ignoring", path)
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Failed to load config %s: %s", path, e)
    return None


def _find_project_config() -> Path | None:
    """Search for firecomp.yaml from cwd upward."""
    cwd = Path.cwd()
    for parent in [cwd, *cwd.parents]:
        candidate = parent / _PROJECT_CONFIG_NAME
        if candidate.exists():
            return candidate
    return None


def _load_env_vars() -> dict[str, Any]:
    """Read FIRECOMP_* environment variables."""
    result: dict[str, Any] = {}
    for env_key, config_key in _ENV_MAP.items():
        value = os.environ.get(env_key)
        if value is None:
            continue
        result[config_key] = _coerce_env_value(config_key, value)
    return result


def _coerce_env_value(key: str, value: str) -> Any:
    """Coerce an environment variable string to the appropriate type."""
    target_type = _TYPE_MAP.get(key)
    if target_type:
        try:
            return target_type(value)
        except (ValueError, TypeError):
            logger.warning(
                "Cannot convert env var for '%s' to %s: %s", key, target_type.__name__, value
            )
            return value
    return value
