"""Top-level entry point: FireComposer, the render cache orchestrator."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from types import TracebackType
from typing import Protocol

from firecomp.cache.index import RenderIndex
from firecomp.cache.keys import fingerprint, hash_image
from firecomp.cache.stats import IndexStats
from firecomp.concurrency.singleflight import SingleFlight
from firecomp.config.schema import Settings
from firecomp.errors.exceptions import FireCompError, StorageError
from firecomp.pipeline.compose import RenderPipeline
from firecomp.pipeline.encoder import Encoder
from firecomp.types import CANONICAL_FORMAT, DeliveryFormat, RenderResult
from firecomp.utils.image import guess_extension
from firecomp.utils.tempfiles import new_temp_path, release, scratch_path

logger = logging.getLogger(__name__)


class ArtifactProvider(Protocol):
    """What every delivery surface calls, whatever triggered the request."""

    async def get_or_render(
        self,
        image_bytes: bytes,
        delivery_format: DeliveryFormat = CANONICAL_FORMAT,
        low_quality: bool = False,
    ) -> RenderResult: ...


class FireComposer:
    """Returns a ready artifact for an image, rendering it at most once.

    The canonical GIF for each (image content, quality) pair is rendered on
    the first request and stored in the index. Later requests are served
    from the index; an MP4 request is derived from the cached GIF into a
    temporary file that the caller must release.
    """

    def __init__(
        self,
        index: RenderIndex,
        pipeline: RenderPipeline,
        overlay_clip: Path,
        temp_dir: Path | None = None,
    ) -> None:
        self._index = index
        self._pipeline = pipeline
        self._overlay_clip = Path(overlay_clip)
        self._temp_dir = temp_dir
        self._flight: SingleFlight[Path] = SingleFlight()

    @classmethod
    def from_settings(cls, settings: Settings) -> FireComposer:
        index = RenderIndex(db_path=settings.db_path, cache_root=settings.cache_root)
        encoder = Encoder(ffmpeg_path=settings.ffmpeg_path, ffprobe_path=settings.ffprobe_path)
        pipeline = RenderPipeline(
            encoder,
            output_height=settings.output_height,
            temp_dir=settings.temp_dir,
        )
        return cls(index, pipeline, settings.overlay_clip, temp_dir=settings.temp_dir)

    @property
    def index(self) -> RenderIndex:
        return self._index

    @property
    def pipeline(self) -> RenderPipeline:
        return self._pipeline

    async def initialize(self) -> None:
        """Open the index and run its schema migration."""
        await asyncio.to_thread(self._index.initialize)

    async def close(self) -> None:
        await asyncio.to_thread(self._index.close)

    async def __aenter__(self) -> FireComposer:
        await self.initialize()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def get_or_render(
        self,
        image_bytes: bytes,
        delivery_format: DeliveryFormat = CANONICAL_FORMAT,
        low_quality: bool = False,
        overlay_clip: Path | None = None,
    ) -> RenderResult:
        """Return ``image_bytes`` composited in ``delivery_format``.

        Raises ProbeError, PipelineStageError or StorageError; the index is
        left unchanged on any failure and no temporary files survive.
        """
        delivery_format = DeliveryFormat(delivery_format)
        overlay = Path(overlay_clip) if overlay_clip else self._overlay_clip
        if not overlay.is_file():
            raise FireCompError(f"Overlay clip not found: {overlay}")

        key = fingerprint(image_bytes, low_quality)
        canonical = await asyncio.to_thread(self._index.lookup, key)
        cached = canonical is not None
        if canonical is None:
            canonical = await self._flight.run(
                key,
                lambda: self._render_and_store(key, image_bytes, overlay, low_quality),
            )

        if delivery_format == CANONICAL_FORMAT:
            return RenderResult(
                path=canonical,
                format=delivery_format,
                cache_key=key,
                cached=cached,
            )
        return await self._derive(key, canonical, delivery_format, cached)

    async def random_artifact(self) -> Path | None:
        """Pick a random cached artifact, healing a stale row if one is drawn."""
        return await asyncio.to_thread(self._index.random_artifact)

    async def stats(self) -> IndexStats:
        return await asyncio.to_thread(self._index.stats)

    async def _render_and_store(
        self,
        key: str,
        image_bytes: bytes,
        overlay: Path,
        low_quality: bool,
    ) -> Path:
        # Another request may have stored the key between our lookup and
        # entering the flight.
        existing = await asyncio.to_thread(self._index.lookup, key)
        if existing is not None:
            return existing

        logger.info("Cache MISS: %s, rendering", key)
        with (
            scratch_path(guess_extension(image_bytes), self._temp_dir) as source,
            scratch_path(CANONICAL_FORMAT.extension, self._temp_dir) as rendered,
        ):
            try:
                await asyncio.to_thread(source.write_bytes, image_bytes)
            except OSError as e:
                raise StorageError(
                    f"Cannot write source image to {source}: {e}",
                    operation="write_source",
                    original=e,
                ) from e
            await self._pipeline.render_canonical(source, overlay, rendered, low_quality)
            return await asyncio.to_thread(
                self._index.insert, key, hash_image(image_bytes), low_quality, rendered
            )

    async def _derive(
        self,
        key: str,
        canonical: Path,
        delivery_format: DeliveryFormat,
        cached: bool,
    ) -> RenderResult:
        output = new_temp_path(delivery_format.extension, self._temp_dir)
        try:
            await self._pipeline.derive_format(canonical, delivery_format, output)
        except BaseException:
            release(output)
            raise
        return RenderResult(
            path=output,
            format=delivery_format,
            cache_key=key,
            cached=cached,
            ephemeral=True,
        )
