"""Overlay compositing and format conversion stages."""

from __future__ import annotations

import logging
import math
import shutil
from pathlib import Path

from firecomp.errors.exceptions import PipelineStageError
from firecomp.pipeline.encoder import Encoder
from firecomp.pipeline.filters import FilterStep, build_filter_complex
from firecomp.pipeline.probe import probe_dimensions
from firecomp.types import CANONICAL_FORMAT, DeliveryFormat
from firecomp.utils.tempfiles import scratch_path

logger = logging.getLogger(__name__)

# Stage names carried on PipelineStageError
STAGE_COMPOSITE = "composite"
STAGE_TRANSCODE = "transcode"
STAGE_DERIVE = "derive"

DEFAULT_OUTPUT_HEIGHT = 360

# Overlay keying
KEY_COLOR = "black"
KEY_SIMILARITY = 0.01
KEY_BLEND = 0.5

# Video encoding
VIDEO_CODEC = "libx264"
VIDEO_PRESET = "ultrafast"
VIDEO_PIX_FMT = "yuv420p"
CRF_STANDARD = 35
LOW_QUALITY_CRF_DELTA = 8

# GIF encoding
GIF_FPS = 15
GIF_MAX_COLORS = 64
GIF_DITHER = "bayer"
GIF_BAYER_SCALE = 3


def output_width(width: int, height: int, output_height: int = DEFAULT_OUTPUT_HEIGHT) -> int:
    """Width matching ``output_height`` at the source aspect, rounded up to even."""
    if width <= 0 or height <= 0:
        raise ValueError(f"Invalid source dimensions: {width}x{height}")
    return math.ceil((width / height) * output_height / 2) * 2


def crf_for(low_quality: bool) -> int:
    return CRF_STANDARD + LOW_QUALITY_CRF_DELTA if low_quality else CRF_STANDARD


def composite_graph(width: int, height: int) -> list[FilterStep]:
    """Keyed overlay (input 1) covering the scaled background (input 0), centered."""
    return [
        FilterStep(
            filter="scale",
            options={"w": width, "h": height, "flags": "lanczos"},
            inputs=["0:v"],
            outputs=["bg"],
        ),
        FilterStep(
            filter="colorkey",
            options={"color": KEY_COLOR, "similarity": KEY_SIMILARITY, "blend": KEY_BLEND},
            inputs=["1:v"],
            outputs=["ck"],
        ),
        FilterStep(
            filter="scale",
            options={
                "w": width,
                "h": height,
                "force_original_aspect_ratio": "increase",
                "flags": "lanczos",
            },
            inputs=["ck"],
            outputs=["scaled"],
        ),
        FilterStep(
            filter="overlay",
            options={"x": "(W-w)/2", "y": "(H-h)/2"},
            inputs=["bg", "scaled"],
        ),
    ]


def palette_graph() -> list[FilterStep]:
    """Downsample, then build a palette from one branch and map the other onto it."""
    return [
        FilterStep(filter="fps", options={"fps": GIF_FPS}, inputs=["0:v"], outputs=["f"]),
        FilterStep(filter="split", inputs=["f"], outputs=["s0", "s1"]),
        FilterStep(
            filter="palettegen",
            options={"max_colors": GIF_MAX_COLORS},
            inputs=["s0"],
            outputs=["p"],
        ),
        FilterStep(
            filter="paletteuse",
            options={"dither": GIF_DITHER, "bayer_scale": GIF_BAYER_SCALE},
            inputs=["s1", "p"],
        ),
    ]


class RenderPipeline:
    """Produces canonical artifacts and derives delivery formats from them."""

    def __init__(
        self,
        encoder: Encoder | None = None,
        output_height: int = DEFAULT_OUTPUT_HEIGHT,
        temp_dir: Path | None = None,
    ) -> None:
        self._encoder = encoder or Encoder()
        self._output_height = output_height
        self._temp_dir = temp_dir

    @property
    def encoder(self) -> Encoder:
        return self._encoder

    async def render_canonical(
        self,
        source_image: Path,
        overlay_clip: Path,
        output_path: Path,
        low_quality: bool = False,
    ) -> Path:
        """Probe, composite to video, then transcode to the canonical GIF.

        The intermediate video lives in a scoped temp file and is removed
        whether or not the transcode succeeds.
        """
        width, height = await probe_dimensions(self._encoder, source_image)
        with scratch_path(DeliveryFormat.MP4.extension, self._temp_dir) as video:
            await self.composite(
                source_image, overlay_clip, video, width, height, low_quality
            )
            await self.transcode(video, output_path)
        return output_path

    async def composite(
        self,
        source_image: Path,
        overlay_clip: Path,
        output_path: Path,
        width: int,
        height: int,
        low_quality: bool = False,
    ) -> Path:
        out_w = output_width(width, height, self._output_height)
        graph = build_filter_complex(composite_graph(out_w, self._output_height))
        logger.info(
            "Compositing %s (%dx%d -> %dx%d, crf %d)",
            source_image.name, width, height, out_w, self._output_height, crf_for(low_quality),
        )
        args = [
            "-i", str(source_image),
            "-i", str(overlay_clip),
            "-filter_complex", graph,
            "-c:v", VIDEO_CODEC,
            "-preset", VIDEO_PRESET,
            "-crf", str(crf_for(low_quality)),
            "-pix_fmt", VIDEO_PIX_FMT,
            "-an",
        ]
        return await self._encoder.run(STAGE_COMPOSITE, args, output_path)

    async def transcode(self, video_path: Path, output_path: Path) -> Path:
        args = [
            "-i", str(video_path),
            "-filter_complex", build_filter_complex(palette_graph()),
            "-loop", "0",
            "-an",
        ]
        return await self._encoder.run(STAGE_TRANSCODE, args, output_path)

    async def derive_format(
        self,
        canonical_path: Path,
        target_format: DeliveryFormat,
        output_path: Path,
    ) -> Path:
        """Convert the canonical artifact into ``target_format`` at ``output_path``."""
        if target_format == CANONICAL_FORMAT:
            try:
                shutil.copyfile(canonical_path, output_path)
            except OSError as e:
                raise PipelineStageError(
                    f"Copying {canonical_path.name} failed: {e}",
                    stage=STAGE_DERIVE,
                    diagnostic=str(e),
                ) from e
            return output_path

        args = [
            "-i", str(canonical_path),
            "-c:v", VIDEO_CODEC,
            "-preset", VIDEO_PRESET,
            "-crf", str(CRF_STANDARD),
            "-pix_fmt", VIDEO_PIX_FMT,
            "-movflags", "+faststart",
            "-an",
        ]
        return await self._encoder.run(STAGE_DERIVE, args, output_path)
