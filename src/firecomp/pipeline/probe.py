"""Source image probing."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from firecomp.errors.exceptions import ProbeError

if TYPE_CHECKING:
    from firecomp.pipeline.encoder import Encoder


async def probe_dimensions(encoder: Encoder, image_path: Path) -> tuple[int, int]:
    """Return ``(width, height)`` of the first stream that has both."""
    data = await encoder.probe(image_path)
    for stream in data.get("streams", []):
        width = stream.get("width")
        height = stream.get("height")
        if width and height:
            return int(width), int(height)
    raise ProbeError("Failed to get stream info from image", path=image_path)
