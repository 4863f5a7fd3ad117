"""Scoped temporary files with best-effort release."""

from __future__ import annotations

import contextlib
import logging
import os
import tempfile
import uuid
from collections.abc import Iterator
from pathlib import Path

logger = logging.getLogger(__name__)

TEMP_PREFIX = "firecomp-"


def new_temp_path(suffix: str, directory: Path | None = None) -> Path:
    """Return a fresh, unused path in the temp directory. Nothing is created."""
    base = Path(directory) if directory else Path(tempfile.gettempdir())
    return base / f"{TEMP_PREFIX}{uuid.uuid4().hex}{suffix}"


def release(path: Path) -> None:
    """Delete ``path`` if it exists; log instead of raising on failure."""
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning("Failed to remove temporary file %s: %s", path, e)


@contextlib.contextmanager
def scratch_path(suffix: str, directory: Path | None = None) -> Iterator[Path]:
    """Yield a temporary path that is removed on every exit path."""
    path = new_temp_path(suffix, directory)
    try:
        yield path
    finally:
        release(path)
