"""Click CLI for firecomp: composite the fire overlay onto images."""

from __future__ import annotations

import asyncio
import logging
import shutil
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from firecomp.config.hierarchy import load_config_hierarchy
from firecomp.config.schema import Settings
from firecomp.errors.exceptions import FireCompError
from firecomp.types import CANONICAL_FORMAT, DeliveryFormat

console = Console()
error_console = Console(stderr=True)


def _setup_logging(verbosity: int, default_level: str = "WARNING") -> None:
    """Configure logging based on verbosity level."""
    level = logging.getLevelName(default_level.upper())
    if not isinstance(level, int):
        level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_time=False, show_path=False)],
    )


def _load_settings(**overrides: object) -> Settings:
    try:
        return Settings.from_mapping(load_config_hierarchy(**overrides))
    except ValueError as e:
        error_console.print(f"[red]Invalid configuration:[/red] {e}")
        sys.exit(1)


def _is_url(source: str) -> bool:
    return source.startswith(("http://", "https://"))


@click.group()
@click.version_option(package_name="firecomp")
def cli() -> None:
    """firecomp: cached fire-overlay compositor."""


@cli.command()
@click.argument("source", type=str)
@click.option(
    "-f",
    "--format",
    "fmt",
    type=click.Choice([f.value for f in DeliveryFormat]),
    default=CANONICAL_FORMAT.value,
    show_default=True,
    help="Delivery format.",
)
@click.option("--low-quality", is_flag=True, default=False, help="Extra low quality output.")
@click.option("-o", "--output", type=click.Path(), help="Output file path.")
@click.option("--overlay", type=click.Path(exists=True), help="Override the overlay clip.")
@click.option("--run-dir", type=click.Path(), help="Directory holding the index and cache.")
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug).")
def render(
    source: str,
    fmt: str,
    low_quality: bool,
    output: str | None,
    overlay: str | None,
    run_dir: str | None,
    verbose: int,
) -> None:
    """Composite the overlay onto SOURCE (a file path or http(s) URL)."""
    settings = _load_settings(run_dir=run_dir, overlay_clip=overlay)
    _setup_logging(verbose, settings.log_level)

    delivery_format = DeliveryFormat(fmt)
    out_path = Path(output) if output else Path.cwd() / f"fire{delivery_format.extension}"

    try:
        cached = asyncio.run(_render(settings, source, delivery_format, low_quality, out_path))
    except (FireCompError, OSError) as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    label = "cached" if cached else "rendered"
    console.print(f"[green]Written to {out_path}[/green] ({label})")


async def _render(
    settings: Settings,
    source: str,
    delivery_format: DeliveryFormat,
    low_quality: bool,
    out_path: Path,
) -> bool:
    from firecomp.core import FireComposer
    from firecomp.utils.download import fetch_image
    from firecomp.utils.image import load_image

    if _is_url(source):
        image_bytes = await fetch_image(
            source,
            timeout=settings.download_timeout,
            max_bytes=settings.max_image_bytes,
        )
    else:
        image_bytes = load_image(source, max_bytes=settings.max_image_bytes)

    async with FireComposer.from_settings(settings) as composer:
        with await composer.get_or_render(image_bytes, delivery_format, low_quality) as result:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(result.path, out_path)
            return result.cached


@cli.command("random")
@click.option("-o", "--output", type=click.Path(), help="Copy the artifact here.")
@click.option("--run-dir", type=click.Path(), help="Directory holding the index and cache.")
def random_artifact(output: str | None, run_dir: str | None) -> None:
    """Pick a random cached artifact."""
    from firecomp.cache.index import RenderIndex

    settings = _load_settings(run_dir=run_dir)
    try:
        with RenderIndex(settings.db_path, settings.cache_root) as index:
            path = index.random_artifact()
    except FireCompError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    if path is None:
        console.print("[yellow]No cached images.[/yellow]")
        return
    if output:
        try:
            shutil.copyfile(path, output)
        except OSError as e:
            error_console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)
        console.print(f"[green]Written to {output}[/green]")
    else:
        console.print(str(path))


@cli.group()
def cache() -> None:
    """Cache management commands."""


@cache.command("stats")
@click.option("--run-dir", type=click.Path(), help="Directory holding the index and cache.")
def cache_stats(run_dir: str | None) -> None:
    """Show cache statistics."""
    from firecomp.cache.index import RenderIndex

    settings = _load_settings(run_dir=run_dir)
    try:
        with RenderIndex(settings.db_path, settings.cache_root) as index:
            stats = index.stats()
    except FireCompError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    table = Table(title="Cache Statistics", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value")

    table.add_row("Entries", str(stats.entries))
    table.add_row("Low quality", str(stats.low_quality_entries))
    table.add_row("Size (MB)", f"{stats.size_mb:.1f}")
    table.add_row("Hits", str(stats.total_hits))
    table.add_row("Avg hits/entry", f"{stats.average_hits:.2f}")

    console.print(table)


def main() -> None:
    """Entry point for the CLI."""
    cli()
