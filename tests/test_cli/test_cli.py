"""Tests for CLI commands."""

import pytest
from click.testing import CliRunner

from firecomp.cache.index import RenderIndex
from firecomp.cache.keys import fingerprint, hash_image
from firecomp.cli import cli


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def run_dir(tmp_path):
    return tmp_path / "run"


@pytest.fixture
def source_image(tmp_path, sample_image_bytes):
    path = tmp_path / "photo.png"
    path.write_bytes(sample_image_bytes)
    return path


@pytest.fixture
def cached_render(run_dir, tmp_path, sample_image_bytes):
    """Pre-populate the index so rendering the sample image is a cache hit."""
    rendered = tmp_path / "rendered.gif"
    rendered.write_bytes(b"GIF89a-cached")
    key = fingerprint(sample_image_bytes, False)
    with RenderIndex(run_dir / "cache.db", run_dir / ".cache") as index:
        return index.insert(key, hash_image(sample_image_bytes), False, rendered)


class TestCLIGroup:
    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "firecomp" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0


class TestRenderCommand:
    def test_help(self, runner):
        result = runner.invoke(cli, ["render", "--help"])
        assert result.exit_code == 0
        assert "--format" in result.output
        assert "--low-quality" in result.output
        assert "--output" in result.output

    def test_missing_source(self, runner):
        result = runner.invoke(cli, ["render"])
        assert result.exit_code != 0

    def test_nonexistent_file(self, runner, run_dir):
        result = runner.invoke(cli, ["render", "nonexistent_file.png", "--run-dir", str(run_dir)])
        assert result.exit_code == 1

    def test_invalid_format(self, runner, source_image):
        result = runner.invoke(cli, ["render", str(source_image), "--format", "webm"])
        assert result.exit_code != 0

    def test_missing_overlay_clip(self, runner, source_image, run_dir, tmp_path):
        result = runner.invoke(
            cli,
            ["render", str(source_image), "--run-dir", str(run_dir)],
            env={"FIRECOMP_OVERLAY_CLIP": str(tmp_path / "missing.mp4")},
        )
        assert result.exit_code == 1

    def test_cache_hit_copies_artifact(
        self, runner, source_image, run_dir, overlay_clip, cached_render, tmp_path
    ):
        out = tmp_path / "out" / "fire.gif"
        result = runner.invoke(
            cli,
            [
                "render", str(source_image),
                "--run-dir", str(run_dir),
                "--overlay", str(overlay_clip),
                "-o", str(out),
            ],
        )
        assert result.exit_code == 0, result.output
        assert "(cached)" in result.output
        assert out.read_bytes() == b"GIF89a-cached"
        assert cached_render.exists()

    def test_unwritable_output_reports_error(
        self, runner, source_image, run_dir, overlay_clip, cached_render, tmp_path
    ):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("file")
        result = runner.invoke(
            cli,
            [
                "render", str(source_image),
                "--run-dir", str(run_dir),
                "--overlay", str(overlay_clip),
                "-o", str(blocker / "fire.gif"),
            ],
        )
        assert result.exit_code == 1
        assert "Error" in result.output
        assert not isinstance(result.exception, OSError)


class TestRandomCommand:
    def test_empty_cache(self, runner, run_dir):
        result = runner.invoke(cli, ["random", "--run-dir", str(run_dir)])
        assert result.exit_code == 0
        assert "No cached images" in result.output

    def test_copies_cached_artifact(self, runner, run_dir, cached_render, tmp_path):
        out = tmp_path / "random.gif"
        result = runner.invoke(cli, ["random", "--run-dir", str(run_dir), "-o", str(out)])
        assert result.exit_code == 0
        assert out.read_bytes() == b"GIF89a-cached"

    def test_output_in_missing_directory_reports_error(self, runner, run_dir, cached_render, tmp_path):
        out = tmp_path / "missing_dir" / "x.gif"
        result = runner.invoke(cli, ["random", "--run-dir", str(run_dir), "-o", str(out)])
        assert result.exit_code == 1
        assert "Error" in result.output
        assert not isinstance(result.exception, OSError)


class TestCacheCommands:
    def test_cache_help(self, runner):
        result = runner.invoke(cli, ["cache", "--help"])
        assert result.exit_code == 0
        assert "stats" in result.output

    def test_cache_stats(self, runner, run_dir):
        result = runner.invoke(cli, ["cache", "stats", "--run-dir", str(run_dir)])
        assert result.exit_code == 0
        assert "Cache Statistics" in result.output
        assert "Entries" in result.output

    def test_cache_stats_counts_entries(self, runner, run_dir, cached_render):
        result = runner.invoke(cli, ["cache", "stats", "--run-dir", str(run_dir)])
        assert result.exit_code == 0
        assert "1" in result.output
