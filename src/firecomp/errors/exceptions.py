"""Custom exception hierarchy for firecomp."""

from __future__ import annotations

from pathlib import Path
from typing import Any


class FireCompError(Exception):
    """Base exception for all firecomp errors."""

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        super().__init__(message)
        self.message = message


class SourceError(FireCompError):
    """The source image could not be read or downloaded."""

    def __init__(self, message: str = "", source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class ProbeError(FireCompError):
    """Source image has no decodable visual stream.

    Raised before any render stage runs, so the index is never touched.
    """

    def __init__(
        self,
        message: str = "",
        path: str | Path | None = None,
        diagnostic: str = "",
    ) -> None:
        super().__init__(message)
        self.path = str(path) if path is not None else None
        self.diagnostic = diagnostic


class PipelineStageError(FireCompError):
    """An external encoder stage failed.

    Examples: composite, transcode, derive. ``diagnostic`` holds the tail of
    the tool's stderr.
    """

    def __init__(
        self,
        message: str = "",
        stage: str = "",
        diagnostic: str = "",
        returncode: int | None = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.diagnostic = diagnostic
        self.returncode = returncode


class StorageError(FireCompError):
    """Index database or cache-root filesystem failure. Never retried."""

    def __init__(
        self,
        message: str = "",
        operation: str = "",
        original: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.operation = operation
        self.original = original


class StaleEntry(FireCompError):
    """Index row whose backing file no longer exists.

    Internal to the index: it is caught there, the row is deleted, and the
    lookup reports a miss.
    """

    def __init__(self, message: str = "", key: str = "", file_path: str = "") -> None:
        super().__init__(message)
        self.key = key
        self.file_path = file_path
