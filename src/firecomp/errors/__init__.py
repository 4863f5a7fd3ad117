"""Error handling: the firecomp exception hierarchy."""

from firecomp.errors.exceptions import (
    FireCompError,
    PipelineStageError,
    ProbeError,
    SourceError,
    StaleEntry,
    StorageError,
)

__all__ = [
    "FireCompError",
    "SourceError",
    "ProbeError",
    "PipelineStageError",
    "StorageError",
    "StaleEntry",
]
