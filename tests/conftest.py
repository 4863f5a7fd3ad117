import asyncio
import base64
import os
from pathlib import Path

import pytest

from firecomp.cache.index import RenderIndex
from firecomp.core import FireComposer
from firecomp.errors.exceptions import PipelineStageError, ProbeError
from firecomp.types import DeliveryFormat


@pytest.fixture(autouse=True)
def _isolated_config(tmp_path, monkeypatch):
    """Keep tests away from the user's global config and FIRECOMP_* env."""
    monkeypatch.setattr(
        "firecomp.config.hierarchy._GLOBAL_CONFIG_PATH", tmp_path / "no-global.yaml"
    )
    for key in list(os.environ):
        if key.startswith("FIRECOMP_"):
            monkeypatch.delenv(key)


@pytest.fixture
def sample_image_bytes():
    """Minimal valid PNG for testing (1x1 white pixel)."""
    return base64.b64decode(
        "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR4"
        "nGP4z8BQDwAEgAF/pooBPQAAAABJRU5ErkJggg=="
    )


@pytest.fixture
def overlay_clip(tmp_path):
    path = tmp_path / "fire.mp4"
    path.write_bytes(b"overlay clip")
    return path


@pytest.fixture
def scratch_dir(tmp_path):
    path = tmp_path / "scratch"
    path.mkdir()
    return path


@pytest.fixture
def index(tmp_path):
    idx = RenderIndex(db_path=tmp_path / "run" / "cache.db", cache_root=tmp_path / "run" / ".cache")
    idx.initialize()
    yield idx
    idx.close()


class FakePipeline:
    """Stands in for RenderPipeline; records stage calls instead of running ffmpeg."""

    def __init__(self, delay: float = 0.0) -> None:
        self.delay = delay
        self.composite_calls = 0
        self.derive_calls = 0
        self.fail_probe = False
        self.fail_stage: str | None = None

    async def render_canonical(
        self, source_image: Path, overlay_clip: Path, output_path: Path, low_quality: bool = False
    ) -> Path:
        if self.fail_probe:
            raise ProbeError("Failed to get stream info from image", path=source_image)
        self.composite_calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        output_path.write_bytes(b"GIF89a" + source_image.read_bytes())
        if self.fail_stage == "transcode":
            raise PipelineStageError("ffmpeg transcode error: boom", stage="transcode")
        return output_path

    async def derive_format(
        self, canonical_path: Path, target_format: DeliveryFormat, output_path: Path
    ) -> Path:
        self.derive_calls += 1
        output_path.write_bytes(b"MP4" + canonical_path.read_bytes())
        if self.fail_stage == "derive":
            raise PipelineStageError("ffmpeg derive error: boom", stage="derive")
        return output_path


@pytest.fixture
def fake_pipeline():
    return FakePipeline()


@pytest.fixture
def composer(index, fake_pipeline, overlay_clip, scratch_dir):
    return FireComposer(index, fake_pipeline, overlay_clip, temp_dir=scratch_dir)
