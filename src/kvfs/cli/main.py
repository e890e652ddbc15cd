"""
CLI for kvfs.

Commands:
    kvfs put NAME FILE - Upload a file as a blob
    kvfs get NAME      - Download a blob
    kvfs config        - Show current configuration
    kvfs version       - Print version
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from kvfs import __version__
from kvfs.client import BlobClient
from kvfs.config import Settings, clear_settings_cache, get_settings
from kvfs.exceptions import KVFSError
from kvfs.logging import setup_logging
from kvfs.types import FAILED_HASH

app = typer.Typer(
    name="kvfs",
    help="Chunked, content-addressed blob storage on a remote key-value service",
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


def _require_settings() -> Settings:
    settings = _get_settings_safe()
    if settings is None:
        error_console.print(
            "[red]Error:[/red] Configuration is invalid. "
            "Run 'kvfs config' to see what's missing."
        )
        raise typer.Exit(1)
    setup_logging(settings.LOG_LEVEL, log_file=settings.LOG_FILE)
    return settings


@app.command()
def put(
    name: Annotated[str, typer.Argument(help="Blob name")],
    file: Annotated[
        Path,
        typer.Argument(help="File to upload", exists=True, dir_okay=False, readable=True),
    ],
) -> None:
    """Upload FILE as blob NAME.

    Uploads are best-effort: chunks that fail after retries are reported
    but do not abort the upload.
    """
    settings = _require_settings()
    data = file.read_bytes()

    try:
        with BlobClient.from_settings(settings) as client:
            hashes = client.put_blob(name, data)
    except KVFSError as e:
        error_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    failed = sum(1 for h in hashes if h == FAILED_HASH)
    if failed:
        error_console.print(
            f"[yellow]Warning:[/yellow] {failed} of {len(hashes)} chunks failed to upload"
        )
        raise typer.Exit(1)

    console.print(f"Stored [cyan]{name}[/cyan] ({len(data)} bytes, {len(hashes)} chunks)")


@app.command()
def get(
    name: Annotated[str, typer.Argument(help="Blob name")],
    output: Annotated[
        Optional[Path],
        typer.Option("--output", "-o", help="Write to this file instead of stdout"),
    ] = None,
) -> None:
    """Download blob NAME."""
    settings = _require_settings()

    try:
        with BlobClient.from_settings(settings) as client:
            data = client.get_blob(name)
    except KVFSError as e:
        error_console.print(f"[red]{type(e).__name__}:[/red] {e}")
        raise typer.Exit(1)

    if output is None:
        sys.stdout.buffer.write(data)
        sys.stdout.buffer.flush()
    else:
        output.write_bytes(data)
        console.print(f"Wrote [cyan]{name}[/cyan] to {output} ({len(data)} bytes)")


@app.command()
def config() -> None:
    """Show current configuration.

    Displays all configuration values with the auth header redacted.
    """
    console.print()
    console.print("[bold]kvfs Configuration[/bold]")
    console.print()

    settings = _get_settings_safe()

    if settings is None:
        error_console.print("[red]Configuration is invalid or incomplete.[/red]")
        error_console.print()
        error_console.print("Required environment variables:")
        error_console.print("  - KVFS_ENDPOINT (http:// or https:// URL)")
        error_console.print()
        error_console.print("Create a .env file or set environment variables.")
        raise typer.Exit(1)

    table = Table(title="Settings", show_header=True)
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    for key, value in settings.redacted_display().items():
        display_value = str(value) if value is not None else "[dim]not set[/dim]"
        table.add_row(key, display_value)

    console.print(table)
    console.print()


@app.command()
def version() -> None:
    """Print the version number."""
    console.print(f"kvfs version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
