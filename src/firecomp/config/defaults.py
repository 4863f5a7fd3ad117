"""Package-level default configuration values."""

from __future__ import annotations

from pathlib import Path
from typing import Any

# Storage
DEFAULT_RUN_DIR = Path.home() / ".firecomp" / "run"
DEFAULT_CACHE_DIRNAME = ".cache"
DEFAULT_DB_FILENAME = "cache.db"

# Overlay clip composited over every image
DEFAULT_OVERLAY_CLIP = "assets/fire.mp4"

# Encoder binaries
DEFAULT_FFMPEG_PATH = "ffmpeg"
DEFAULT_FFPROBE_PATH = "ffprobe"

# Rendering
DEFAULT_OUTPUT_HEIGHT = 360

# Image sources
DEFAULT_DOWNLOAD_TIMEOUT = 30.0
DEFAULT_MAX_IMAGE_MB = 20.0

# Log level
DEFAULT_LOG_LEVEL = "WARNING"


def get_defaults() -> dict[str, Any]:
    """Return all defaults as a flat dictionary for merging."""
    return {
        "run_dir": str(DEFAULT_RUN_DIR),
        "cache_root": None,
        "db_path": None,
        "temp_dir": None,
        "overlay_clip": DEFAULT_OVERLAY_CLIP,
        "ffmpeg_path": DEFAULT_FFMPEG_PATH,
        "ffprobe_path": DEFAULT_FFPROBE_PATH,
        "output_height": DEFAULT_OUTPUT_HEIGHT,
        "download_timeout": DEFAULT_DOWNLOAD_TIMEOUT,
        "max_image_mb": DEFAULT_MAX_IMAGE_MB,
        "log_level": DEFAULT_LOG_LEVEL,
    }
