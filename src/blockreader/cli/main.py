"""
CLI for blockreader.

Commands:
    blockreader read SOURCE --start N --end M - Read a byte range through the block cache
    blockreader config - Show current configuration
    blockreader version - Print version
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from blockreader import __version__
from blockreader.cache.block_cache import BlockCache
from blockreader.config import Settings, clear_settings_cache, get_settings
from blockreader.exceptions import BlockReaderError, ConfigurationError
from blockreader.logging import setup_logging
from blockreader.reader.block_reader import BlockReader
from blockreader.sources.base import BlockSource
from blockreader.sources.file_source import FileBlockSource
from blockreader.sources.http_source import HttpBlockSource

app = typer.Typer(
    name="blockreader",
    help="Read byte ranges of slow sources through a disk-backed block cache",
    no_args_is_help=True,
)

console = Console()
error_console = Console(stderr=True)


def _get_settings_safe() -> Settings | None:
    """Get settings, returning None if configuration is invalid."""
    try:
        clear_settings_cache()
        return get_settings()
    except Exception:
        return None


def build_source(location: str, settings: Settings, block_size: int) -> BlockSource:
    """Pick a block source for a path or http(s) URL."""
    if location.startswith(("http://", "https://")):
        return HttpBlockSource(
            location,
            block_size=block_size,
            timeout=settings.HTTP_TIMEOUT,
            max_retries=settings.HTTP_MAX_RETRIES,
        )
    if "://" in location:
        raise ConfigurationError(
            "Unsupported source scheme", context={"source": location}
        )
    return FileBlockSource(location, block_size=block_size)


async def _read_range(
    location: str,
    start: int,
    end: int | None,
    settings: Settings,
    block_size: int,
) -> tuple[bytes, dict[str, object]]:
    cache = BlockCache.from_settings(settings)
    try:
        source = build_source(location, settings, block_size)
        async with BlockReader(
            source,
            cache,
            block_size=block_size,
            max_concurrency=settings.MAX_CONCURRENCY,
        ) as reader:
            data = await reader.read(start, end)
        return data, cache.events.summary()
    finally:
        await cache.aclose()


@app.command()
def read(
    source: Annotated[str, typer.Argument(help="File path or http(s) URL")],
    start: Annotated[int, typer.Option("--start", "-s", help="First byte")] = 0,
    end: Annotated[
        Optional[int],
        typer.Option("--end", "-e", help="One past the last byte (default: end of source)"),
    ] = None,
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write bytes here instead of stdout"),
    ] = None,
    block_size: Annotated[
        Optional[int],
        typer.Option("--block-size", "-b", help="Bytes per block"),
    ] = None,
    stats: Annotated[
        bool,
        typer.Option("--stats", help="Print cache statistics to stderr"),
    ] = False,
) -> None:
    """Read a byte range from SOURCE through the block cache."""
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'blockreader config' to see the current values."
        )
        raise typer.Exit(1)

    setup_logging(log_level=settings.LOG_LEVEL, log_file=settings.LOG_FILE)
    effective_block_size = block_size if block_size is not None else settings.BLOCK_SIZE
    if effective_block_size < 1:
        error_console.print("[red]Error:[/red] --block-size must be positive")
        raise typer.Exit(1)

    try:
        data, summary = asyncio.run(
            _read_range(source, start, end, settings, effective_block_size)
        )
    except BlockReaderError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if output is not None:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_bytes(data)
        error_console.print(f"Wrote {len(data)} bytes to {output}")
    else:
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()

    if stats:
        table = Table(title="Block cache")
        table.add_column("Counter", style="cyan")
        table.add_column("Value")
        for key, value in summary.items():
            table.add_row(key, str(value))
        error_console.print(table)


@app.command()
def config() -> None:
    """Show the effective configuration."""
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Check the BLOCKREADER_* environment variables."
        )
        raise typer.Exit(1)

    table = Table(title="blockreader configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in settings.display().items():
        table.add_row(f"BLOCKREADER_{key}", "[dim]unset[/dim]" if value is None else str(value))
    console.print(table)


@app.command()
def version() -> None:
    """Print version."""
    console.print(f"blockreader {__version__}")


if __name__ == "__main__":
    app()
