"""Source image loading and validation."""

from __future__ import annotations

from pathlib import Path

from firecomp.errors.exceptions import SourceError

SUPPORTED_EXTENSIONS = {".png", ".jpg", ".jpeg", ".webp", ".bmp", ".gif"}
_MAX_IMAGE_SIZE_BYTES = 20 * 1024 * 1024  # 20 MB


def load_image(path: str | Path, max_bytes: int = _MAX_IMAGE_SIZE_BYTES) -> bytes:
    """Load an image file and return raw bytes."""
    path = Path(path)
    _validate_path(path, max_bytes)
    try:
        return path.read_bytes()
    except OSError as e:
        raise SourceError(f"Cannot read {path}: {e}", source=str(path)) from e


def guess_extension(data: bytes) -> str:
    """Pick a file extension from the image's magic bytes, defaulting to PNG."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return ".png"
    if data.startswith(b"\xff\xd8\xff"):
        return ".jpg"
    if data[:6] in (b"GIF87a", b"GIF89a"):
        return ".gif"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return ".webp"
    if data.startswith(b"BM"):
        return ".bmp"
    return ".png"


def check_size(data: bytes, source: str, max_bytes: int = _MAX_IMAGE_SIZE_BYTES) -> bytes:
    """Reject empty or oversized image payloads."""
    if not data:
        raise SourceError(f"Empty image: {source}", source=source)
    if len(data) > max_bytes:
        raise SourceError(
            f"Image too large ({len(data)} bytes, max {max_bytes}): {source}", source=source
        )
    return data


def _validate_path(path: Path, max_bytes: int) -> None:
    if not path.exists():
        raise SourceError(f"File not found: {path}", source=str(path))
    if not path.is_file():
        raise SourceError(f"Not a file: {path}", source=str(path))
    if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise SourceError(f"Unsupported file type: {path.suffix}", source=str(path))
    size = path.stat().st_size
    if size > max_bytes:
        raise SourceError(f"File too large ({size} bytes, max {max_bytes})", source=str(path))
