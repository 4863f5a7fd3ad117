"""Pydantic model for resolved runtime settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator

from firecomp.config.defaults import (
    DEFAULT_CACHE_DIRNAME,
    DEFAULT_DB_FILENAME,
    DEFAULT_DOWNLOAD_TIMEOUT,
    DEFAULT_FFMPEG_PATH,
    DEFAULT_FFPROBE_PATH,
    DEFAULT_LOG_LEVEL,
    DEFAULT_MAX_IMAGE_MB,
    DEFAULT_OUTPUT_HEIGHT,
    DEFAULT_OVERLAY_CLIP,
    DEFAULT_RUN_DIR,
)


class Settings(BaseModel):
    """Validated configuration for one firecomp process.

    ``cache_root`` and ``db_path`` default to locations under ``run_dir``.
    """

    run_dir: Path = DEFAULT_RUN_DIR
    cache_root: Path | None = None
    db_path: Path | None = None
    temp_dir: Path | None = None
    overlay_clip: Path = Path(DEFAULT_OVERLAY_CLIP)
    ffmpeg_path: str = DEFAULT_FFMPEG_PATH
    ffprobe_path: str = DEFAULT_FFPROBE_PATH
    output_height: int = Field(default=DEFAULT_OUTPUT_HEIGHT, gt=0)
    download_timeout: float = Field(default=DEFAULT_DOWNLOAD_TIMEOUT, gt=0)
    max_image_mb: float = Field(default=DEFAULT_MAX_IMAGE_MB, gt=0)
    log_level: str = DEFAULT_LOG_LEVEL

    model_config = {"extra": "ignore"}

    @model_validator(mode="after")
    def _derive_paths(self) -> Settings:
        if self.output_height % 2:
            raise ValueError(f"output_height must be even, got {self.output_height}")
        if self.cache_root is None:
            self.cache_root = self.run_dir / DEFAULT_CACHE_DIRNAME
        if self.db_path is None:
            self.db_path = self.run_dir / DEFAULT_DB_FILENAME
        return self

    @property
    def max_image_bytes(self) -> int:
        return int(self.max_image_mb * 1024 * 1024)

    @classmethod
    def from_mapping(cls, raw: dict[str, Any]) -> Settings:
        """Build settings from a merged config dict, ignoring unset keys."""
        return cls(**{k: v for k, v in raw.items() if v is not None})
