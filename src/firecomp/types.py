"""Shared Pydantic models for firecomp."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path
from types import TracebackType

from pydantic import BaseModel

from firecomp.utils.tempfiles import release

# ── Enums ──


class DeliveryFormat(StrEnum):
    GIF = "gif"
    MP4 = "mp4"

    @property
    def extension(self) -> str:
        return f".{self.value}"


# The animated GIF is what the index persists. MP4 is always re-derived from
# it on request and never stored.
CANONICAL_FORMAT = DeliveryFormat.GIF


# ── Runtime models ──


class RenderResult(BaseModel):
    """A ready artifact plus the caller's cleanup obligation.

    ``ephemeral`` results are derived files in the temp directory and must be
    released after use. Non-ephemeral results point into the cache root and
    must never be deleted by the caller; ``release()`` is a no-op for them.
    """

    path: Path
    format: DeliveryFormat
    cache_key: str
    cached: bool = False
    ephemeral: bool = False

    def release(self) -> None:
        """Delete the artifact if it is ephemeral. Failures are logged only."""
        if self.ephemeral:
            release(self.path)

    def __enter__(self) -> RenderResult:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
