"""
CLI for metasync.

Provides command-line interface for syncing metadata between backends.
"""

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from metasync.core import (
    BackendError,
    InvalidFieldError,
    InvalidURIError,
    configure_logging,
    field_names,
    load_config,
    parse_projection,
)
from metasync.infrastructure import get_default_registry, parse_uri
from metasync.services import SyncService

# Initialize Rich Console
console = Console()

app = typer.Typer(
    name="metasync",
    help="Synchronize filesystem metadata between metadata stores",
    add_completion=False,
)

EXIT_FAILURE = 1
EXIT_USAGE = 2


def _fail(message: str, code: int = EXIT_FAILURE) -> typer.Exit:
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")
    return typer.Exit(code)


@app.command()
def sync(
    source: str = typer.Argument(..., help="URI of the backend to read fsentries from"),
    dest: str = typer.Argument(..., help="URI of the backend to apply fsevents to"),
    field: Optional[list[str]] = typer.Option(
        None,
        "--field",
        "-f",
        help="Field to sync (see `metasync fields`). Can be specified multiple times.",
    ),
    chunk_size: Optional[int] = typer.Option(
        None, "--chunk-size", "-c", min=1, help="Maximum number of fsevents per bulk update"
    ),
    config_path: Optional[Path] = typer.Option(
        None, "--config", help="Configuration file (.yaml, .yml or .json)"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """
    Sync SOURCE's metadata into DEST.

    A URI is built as metasync:BACKEND:FSNAME[#{PATH|[ID]}] where BACKEND is
    the name of a backend (posix, sqlite), FSNAME is the store it opens and
    PATH/ID designates a single entry to sync instead of the whole store
    (ID is hex-encoded and enclosed in square brackets).
    """
    load_dotenv()

    try:
        cfg = load_config(config_path).validate()
    except (OSError, ValueError) as e:
        raise _fail(str(e), EXIT_USAGE)

    configure_logging(cfg.logging, verbose)

    try:
        projection = parse_projection(field or cfg.sync.fields)
        source_uri = parse_uri(source)
        dest_uri = parse_uri(dest)
    except (InvalidFieldError, InvalidURIError) as e:
        raise _fail(str(e), EXIT_USAGE)

    actual_chunk_size = chunk_size if chunk_size is not None else cfg.sync.chunk_size
    registry = get_default_registry()

    try:
        with registry.open(source_uri) as source_backend, registry.open(dest_uri) as dest_backend:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                task = progress.add_task("Syncing...", total=None)

                def update_progress(chunks: int, fsevents: int, message: str) -> None:
                    progress.update(task, description=message)

                service = SyncService(
                    source=source_backend,
                    destination=dest_backend,
                    projection=projection,
                    chunk_size=actual_chunk_size,
                    progress_callback=update_progress,
                )
                result = service.sync(single_root=source_uri.is_single_entry)
    except InvalidURIError as e:
        raise _fail(str(e), EXIT_USAGE)
    except BackendError as e:
        raise _fail(f"unhandled error: {e.message}")
    except Exception as e:
        raise _fail(f"while iterating over SOURCE's entries: {e}")

    # Summary Panel
    summary = Table.grid(padding=1)
    summary.add_column(style="bold")
    summary.add_column()
    summary.add_row("FSEvents:", str(result.fsevents))
    summary.add_row("Chunks:", str(result.chunks))
    summary.add_row("Duration:", f"{result.duration_seconds:.2f}s")
    if result.skipped_fsentries:
        summary.add_row("Skipped:", f"[yellow]{result.skipped_fsentries}[/yellow]")

    console.print(
        Panel(
            summary,
            title="[bold green]Sync Complete[/bold green]",
            border_style="green",
            expand=False,
        )
    )


@app.command()
def fields():
    """List the field names accepted by --field."""
    table = Table(title="Fields")
    table.add_column("Name", style="cyan")
    for name in field_names():
        table.add_row(name)
    console.print(table)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
