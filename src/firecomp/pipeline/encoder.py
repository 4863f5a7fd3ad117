"""Async subprocess wrapper around the ffmpeg and ffprobe binaries."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from pathlib import Path
from typing import Any

from firecomp.errors.exceptions import PipelineStageError, ProbeError

logger = logging.getLogger(__name__)

_DIAGNOSTIC_TAIL = 500  # characters of stderr kept on the raised error


class Encoder:
    """Runs encoder invocations as independent child processes.

    Each call is one stage: a non-zero exit code, a missing binary, or an
    empty output file raises :class:`PipelineStageError` tagged with the
    stage name. Nothing is retried.
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", ffprobe_path: str = "ffprobe") -> None:
        self._ffmpeg = ffmpeg_path
        self._ffprobe = ffprobe_path

    async def run(self, stage: str, args: list[str], output_path: Path) -> Path:
        """Run ffmpeg with ``args`` writing ``output_path``; return the output path."""
        cmd = [
            self._ffmpeg,
            "-hide_banner",
            "-loglevel", "error",
            "-y",
            *args,
            str(output_path),
        ]
        logger.debug("ffmpeg %s cmd: %s", stage, " ".join(cmd))

        returncode, _, stderr = await self._exec(stage, cmd)
        if returncode != 0:
            diagnostic = stderr[-_DIAGNOSTIC_TAIL:].strip()
            logger.error("ffmpeg %s failed (rc=%d): %s", stage, returncode, stderr[-2000:])
            raise PipelineStageError(
                f"ffmpeg {stage} error: {diagnostic or f'exit code {returncode}'}",
                stage=stage,
                diagnostic=diagnostic,
                returncode=returncode,
            )

        if not output_path.is_file() or output_path.stat().st_size == 0:
            raise PipelineStageError(
                f"ffmpeg {stage} error: no output written to {output_path}",
                stage=stage,
                diagnostic=stderr[-_DIAGNOSTIC_TAIL:].strip(),
                returncode=returncode,
            )

        logger.info("ffmpeg %s finished: %s", stage, output_path.name)
        return output_path

    async def probe(self, path: Path) -> dict[str, Any]:
        """Return ffprobe's JSON stream listing for ``path``."""
        cmd = [
            self._ffprobe,
            "-v", "error",
            "-print_format", "json",
            "-show_streams",
            str(path),
        ]
        try:
            returncode, stdout, stderr = await self._exec("probe", cmd)
        except PipelineStageError as e:
            raise ProbeError(f"ffprobe error: {e.diagnostic}", path=path, diagnostic=e.diagnostic) from e

        if returncode != 0:
            diagnostic = stderr[-_DIAGNOSTIC_TAIL:].strip()
            raise ProbeError(
                f"ffprobe error: {diagnostic or f'exit code {returncode}'}",
                path=path,
                diagnostic=diagnostic,
            )
        try:
            data = json.loads(stdout or "{}")
        except json.JSONDecodeError as e:
            raise ProbeError(f"Failed to parse ffprobe output: {e}", path=path) from e
        if not isinstance(data, dict):
            raise ProbeError("Unexpected ffprobe output", path=path)
        return data

    async def _exec(self, stage: str, cmd: list[str]) -> tuple[int, str, str]:
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise PipelineStageError(
                f"Cannot start {cmd[0]} for {stage}: {e}",
                stage=stage,
                diagnostic=str(e),
            ) from e
        try:
            stdout, stderr = await process.communicate()
        except BaseException:
            if process.returncode is None:
                logger.warning("Killing %s for %s after interruption", cmd[0], stage)
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
                await asyncio.shield(process.wait())
            raise
        return (
            process.returncode if process.returncode is not None else -1,
            stdout.decode("utf-8", errors="ignore"),
            stderr.decode("utf-8", errors="ignore"),
        )
