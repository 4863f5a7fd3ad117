"""Cache entry and statistics models."""

from __future__ import annotations

from datetime import UTC, datetime

from pydantic import BaseModel, Field


def _utc_now() -> str:
    return datetime.now(UTC).isoformat()


class CacheEntry(BaseModel):
    """One row of the render index."""

    id: str
    image_hash: str
    low_quality: bool = False
    file_path: str  # relative to the cache root
    created_at: str = Field(default_factory=_utc_now)
    hit_count: int = 0


class IndexStats(BaseModel):
    """Aggregate index statistics."""

    entries: int = 0
    low_quality_entries: int = 0
    total_hits: int = 0
    size_mb: float = 0.0

    @property
    def average_hits(self) -> float:
        return self.total_hits / self.entries if self.entries > 0 else 0.0
