"""Render pipeline: probe, composite, transcode, derive."""

from firecomp.pipeline.compose import RenderPipeline
from firecomp.pipeline.encoder import Encoder
from firecomp.pipeline.filters import FilterStep, build_filter_complex
from firecomp.pipeline.probe import probe_dimensions

__all__ = [
    "RenderPipeline",
    "Encoder",
    "FilterStep",
    "build_filter_complex",
    "probe_dimensions",
]
