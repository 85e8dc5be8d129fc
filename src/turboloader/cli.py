"""
TurboLoader CLI - Command Line Interface for PolyTrack track import

Provides commands for:
- Importing track lists into a game store
- Exporting and deleting stored tracks
- Inspecting share codes and the detected storage schema
- Converting payloads for older game builds
"""

import logging
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn
from rich.table import Table

from turboloader import __version__
from turboloader.core.config import (
    TurboLoaderConfig,
    configure_logging,
    generate_default_config,
    get_config,
    load_config,
    set_config,
)
from turboloader.export import delete_all_tracks, timestamped_path, write_export, write_failed_report
from turboloader.importer import ImportEngine
from turboloader.legacy import convert_records, to_baseline
from turboloader.models import CollisionPolicy, ImportResult, ImportStatus
from turboloader.schema import detect_store_schema
from turboloader.sharecode import TrackFormat, classify, extract_track_name
from turboloader.store import KeyValueStore, open_store
from turboloader.tracklist import parse_track_files

app = typer.Typer(
    name="turboloader",
    help="Mass import, export and inspection of PolyTrack tracks",
    add_completion=False,
)
console = Console()
logger = logging.getLogger(__name__)

STATUS_STYLES = {
    ImportStatus.IMPORTED: "green",
    ImportStatus.SKIPPED: "yellow",
    ImportStatus.RENAMED: "cyan",
    ImportStatus.OVERWRITTEN: "magenta",
    ImportStatus.ERROR: "red",
}


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]TurboLoader[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-V",
        help="Enable verbose output"
    ),
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Configuration file (YAML, TOML or JSON)",
        dir_okay=False,
    ),
) -> None:
    """TurboLoader - PolyTrack mass import toolkit"""
    config = load_config(config_file)
    set_config(config)
    configure_logging(config.logging, verbose=verbose)


def _open_configured_store(store_path: Optional[Path], backend: Optional[str], config: TurboLoaderConfig) -> KeyValueStore:
    path = store_path or (Path(config.store.path) if config.store.path else None)
    if path is None:
        console.print("[red]Error:[/red] no store given (use --store or set store.path in the config)")
        raise typer.Exit(1)

    # An explicit suffix wins over the configured default backend
    chosen = backend
    if chosen is None and path.suffix.lower() not in (".json", ".db", ".sqlite", ".sqlite3"):
        chosen = config.store.backend

    try:
        return open_store(path, chosen)
    except (ValueError, OSError) as e:
        console.print(f"[red]Error:[/red] could not open store {path}: {e}")
        raise typer.Exit(1)


def _print_summary(result: ImportResult) -> None:
    table = Table(title="Import Summary", show_header=False)
    table.add_column("Outcome", style="cyan")
    table.add_column("Count", justify="right")

    table.add_row("Imported", f"[green]{result.imported}[/green]")
    table.add_row("Renamed", str(result.renamed))
    table.add_row("Overwritten", str(result.overwritten))
    table.add_row("Skipped", f"[yellow]{result.skipped}[/yellow]")
    table.add_row("Failed", f"[red]{result.errored}[/red]" if result.errored else "0")
    table.add_row("Total", f"[bold]{result.total}[/bold]")
    console.print(table)

    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")
    for error in result.errors:
        console.print(f"[red]Error:[/red] {error}")


@app.command("import")
def import_command(
    files: list[Path] = typer.Argument(
        ...,
        help="Track list files (.txt or .csv)",
        exists=True,
        dir_okay=False,
        resolve_path=True,
    ),
    store_path: Optional[Path] = typer.Option(
        None,
        "--store",
        "-s",
        help="Store file (.json localStorage dump or .db SQLite)"
    ),
    backend: Optional[str] = typer.Option(
        None,
        "--backend",
        "-b",
        help="Store backend: json or sql (default: from file suffix)"
    ),
    mode: Optional[str] = typer.Option(
        None,
        "--mode",
        "-m",
        help="Collision policy: skip, overwrite or rename"
    ),
    legacy: Optional[bool] = typer.Option(
        None,
        "--legacy/--no-legacy",
        help="Convert newer payload formats to PolyTrack1 for older game builds"
    ),
    delay_ms: Optional[int] = typer.Option(
        None,
        "--delay-ms",
        help="Pause between writes in milliseconds"
    ),
    failed_report: Optional[Path] = typer.Option(
        None,
        "--failed-report",
        help="Where to write the failed tracks log (default: timestamped file in export.output_dir)"
    ),
) -> None:
    """
    Import tracks from track list files into a store.

    Each line is either "Track Name | <data>" or a bare share code / PolyTrack
    payload. Existing names are handled according to the collision policy.
    """
    config = get_config()

    try:
        policy = CollisionPolicy.parse(mode or config.importer.collision_policy)
    except ValueError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    try:
        parsed = parse_track_files(files)
    except OSError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    for note in parsed.notes:
        logger.debug(note)

    if not parsed.records:
        console.print("[red]Error:[/red] no valid tracks found")
        console.print("Supported formats:")
        console.print("  - Share codes (v1n..., v3...)")
        console.print("  - PolyTrack data (PolyTrack1..., PolyTrack24pdr...)")
        console.print("  - Track Name | TrackData")
        raise typer.Exit(1)

    console.print(
        f"\n[bold blue]TurboLoader[/bold blue] - {parsed.valid_count} track(s) ready "
        f"({parsed.share_code_count} share code(s), {parsed.invalid_count} line(s) skipped)\n"
    )

    records = parsed.records
    legacy_mode = legacy if legacy is not None else config.importer.legacy_mode
    if legacy_mode:
        records, converted = convert_records(records)
        if converted:
            console.print(f"[yellow]Legacy convert:[/yellow] {converted} track(s) -> PolyTrack1 format")

    store = _open_configured_store(store_path, backend, config)
    schema = detect_store_schema(store, default_version=config.store.default_version)
    console.print(f"[cyan]Store prefix:[/cyan] {schema.key_prefix}  [cyan]Mode:[/cyan] {policy.value}")

    delay = (delay_ms if delay_ms is not None else config.importer.write_delay_ms) / 1000.0

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        console=console,
    ) as progress:
        task = progress.add_task("Importing...", total=len(records))

        def on_progress(current: int, total: int, name: str, status: ImportStatus) -> None:
            style = STATUS_STYLES[status]
            progress.console.print(f"  [{style}]{status.value.upper()}[/{style}] {name}")
            progress.update(task, completed=current)

        engine = ImportEngine(store, schema, progress=on_progress, write_delay=delay)
        result = engine.run(records, policy)

    _print_summary(result)

    if result.failed_tracks and config.export.write_failed_report:
        report_path = failed_report or timestamped_path(
            Path(config.export.output_dir),
            "polytrack_failed_tracks",
            timestamp_format=config.export.timestamp_format,
        )
        write_failed_report(result.failed_tracks, report_path)
        console.print(f"[yellow]Failed tracks log:[/yellow] {report_path}")


@app.command()
def export(
    store_path: Optional[Path] = typer.Option(
        None, "--store", "-s", help="Store file to export from"
    ),
    backend: Optional[str] = typer.Option(
        None, "--backend", "-b", help="Store backend: json or sql"
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output file (default: timestamped file in export.output_dir)"
    ),
) -> None:
    """
    Export every stored track as a track list file.

    The output can be imported again with the import command.
    """
    config = get_config()
    store = _open_configured_store(store_path, backend, config)
    schema = detect_store_schema(store, default_version=config.store.default_version)

    output = output or timestamped_path(
        Path(config.export.output_dir), "polytrack_tracks", timestamp_format=config.export.timestamp_format
    )
    try:
        count = write_export(store, schema, output)
    except OSError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    console.print(f"[green]Exported {count} track(s)[/green] to {output}")


@app.command("delete-all")
def delete_all(
    store_path: Optional[Path] = typer.Option(
        None, "--store", "-s", help="Store file to delete tracks from"
    ),
    backend: Optional[str] = typer.Option(
        None, "--backend", "-b", help="Store backend: json or sql"
    ),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Do not ask for confirmation"
    ),
) -> None:
    """
    Delete ALL tracks from the store. This cannot be undone.
    """
    config = get_config()
    store = _open_configured_store(store_path, backend, config)
    schema = detect_store_schema(store, default_version=config.store.default_version)

    if not yes:
        confirmed = typer.confirm(
            f"This will DELETE ALL tracks under {schema.key_prefix}. Continue?",
            default=False,
        )
        if not confirmed:
            console.print("[yellow]Delete cancelled[/yellow]")
            raise typer.Exit()

    count = delete_all_tracks(store, schema)
    console.print(f"[green]Deleted {count} track(s)[/green]")


@app.command()
def detect(
    store_path: Optional[Path] = typer.Option(
        None, "--store", "-s", help="Store file to inspect"
    ),
    backend: Optional[str] = typer.Option(
        None, "--backend", "-b", help="Store backend: json or sql"
    ),
) -> None:
    """
    Show how the store names and wraps its tracks.
    """
    config = get_config()
    store = _open_configured_store(store_path, backend, config)
    schema = detect_store_schema(store, default_version=config.store.default_version)
    track_count = sum(1 for key in store.keys() if schema.owns_key(key))

    table = Table(title="Storage Schema", show_header=False)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Key prefix", schema.key_prefix)
    table.add_row("Name encoding", schema.name_encoding.value)
    table.add_row("Payload mode", schema.payload_mode.value)
    if schema.payload_template:
        table.add_row("Envelope fields", ", ".join(sorted(schema.payload_template)))
    table.add_row("Tracks", str(track_count))

    console.print(table)


@app.command()
def decode(
    code: str = typer.Argument(
        ...,
        help="Share code (v3..., v1n...) or PolyTrack payload"
    )
) -> None:
    """
    Identify a track string and extract its embedded name.
    """
    fmt = classify(code.strip())
    if fmt is TrackFormat.UNRECOGNIZED:
        console.print("[red]Error:[/red] not a share code or PolyTrack payload")
        raise typer.Exit(1)

    if fmt is TrackFormat.NATIVE_PAYLOAD:
        details = "[cyan]Name:[/cyan] (not embedded in storage payloads)"
    else:
        name = extract_track_name(code.strip())
        details = f"[cyan]Name:[/cyan] {name}" if name is not None else "[yellow]Name could not be extracted[/yellow]"

    panel = Panel(
        f"[cyan]Format:[/cyan] {fmt.value}\n{details}\n[cyan]Length:[/cyan] {len(code.strip())}",
        title="[bold blue]Track Decoded[/bold blue]",
        expand=False,
    )
    console.print(panel)


@app.command()
def convert(
    payload: str = typer.Argument(..., help="PolyTrack payload to convert")
) -> None:
    """
    Convert a newer PolyTrack payload to PolyTrack1 for older game builds.
    """
    converted = to_baseline(payload.strip())
    if converted is None:
        console.print("[red]Error:[/red] payload is already PolyTrack1 or cannot be converted")
        raise typer.Exit(1)
    console.print(converted)


@app.command("config-init")
def config_init(
    path: Path = typer.Argument(
        Path("turboloader.yaml"),
        help="Where to write the config (.yaml or .json)",
        dir_okay=False,
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing file"),
) -> None:
    """
    Write a default configuration file.
    """
    if path.exists() and not force:
        console.print(f"[red]Error:[/red] {path} already exists (use --force)")
        raise typer.Exit(1)

    try:
        generate_default_config(path)
    except (ValueError, OSError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    console.print(f"[green]Wrote config:[/green] {path}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
