"""
Command-line interface for the PATSTAT loader.

Provides commands for:
- Building a SQLite database from a release directory
- Checking archive digests without loading
- Checking row counts of an existing database
- Listing the table registry
"""

import json
import logging
import sqlite3
import sys
from pathlib import Path
from typing import List, Optional

import structlog
import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from patstat_etl.errors import PatstatLoaderError
from patstat_etl.extract import DEFAULT_ARCHIVE_PATTERN, find_archives
from patstat_etl.hashing import DEFAULT_ALGORITHM, DEFAULT_SIDECAR_SUFFIX, verify_archives
from patstat_etl.load_tables import DEFAULT_CHUNK_SIZE
from patstat_etl.pipeline import LoaderSettings, run_import
from patstat_etl.registry import TableRegistry, load_expected_counts, load_registry
from patstat_etl.validators import verify_row_counts

# Initialize Typer app
app = typer.Typer(
    name="patstat-loader",
    help="Build a SQLite database from a PATSTAT release",
    add_completion=False
)

console = Console()


def configure_logging(verbose: bool = False) -> None:
    """Configure structlog for console progress output."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if verbose else logging.INFO),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def _resolve_registry(registry_path: Optional[str], expected_counts: Optional[str]) -> TableRegistry:
    registry = load_registry(registry_path)
    if expected_counts:
        registry = registry.with_expected_counts(load_expected_counts(expected_counts))
    return registry


def _fail(message: str) -> None:
    console.print(f"[bold red]✗ {escape(message)}[/bold red]")
    sys.exit(1)


@app.command()
def load(
    input_dir: str = typer.Argument(..., help="Directory containing the release archives"),
    db: str = typer.Option(
        "patstat.sqlite", "--db", "-o",
        help="Path to the SQLite database to create"
    ),
    expected_counts: Optional[str] = typer.Option(
        default=None,
        help="JSON file mapping table code to expected row count"
    ),
    table: Optional[List[str]] = typer.Option(
        default=None,
        help="Load only this table code (repeatable)"
    ),
    registry: Optional[str] = typer.Option(
        default=None,
        help="Table registry JSON (default: packaged registry)"
    ),
    schema: Optional[str] = typer.Option(
        default=None,
        help="Schema DDL file (default: packaged schema.sql)"
    ),
    indexes: Optional[str] = typer.Option(
        default=None,
        help="Index DDL file (default: packaged indexes.sql)"
    ),
    report: Optional[str] = typer.Option(
        default=None,
        help="Path to write JSON import report"
    ),
    pattern: str = typer.Option(
        default=DEFAULT_ARCHIVE_PATTERN,
        help="Glob pattern for archives under INPUT_DIR"
    ),
    digest_algorithm: str = typer.Option(
        default=DEFAULT_ALGORITHM,
        help="Digest algorithm used by the sidecar files"
    ),
    sidecar_suffix: str = typer.Option(
        default=DEFAULT_SIDECAR_SUFFIX,
        help="Suffix appended to an archive name to find its sidecar"
    ),
    chunk_size: int = typer.Option(
        default=DEFAULT_CHUNK_SIZE,
        min=1,
        help="Rows per insert batch"
    ),
    scratch_dir: Optional[str] = typer.Option(
        default=None,
        help="Parent directory for the per-run scratch directory"
    ),
    overwrite: bool = typer.Option(
        default=False,
        help="Replace an existing database file"
    ),
    keep_scratch: bool = typer.Option(
        default=False,
        help="Keep extracted files after the run"
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Enable debug logging"
    )
):
    """
    Verify, extract and load a release into a SQLite database.

    Archives are checked against their sidecar digests before anything is
    extracted. After loading, indexes are built and row counts are compared
    with --expected-counts.

    Example:
        patstat-loader load data/patstat_2024_spring --db patstat.sqlite --expected-counts counts.json
    """
    configure_logging(verbose)
    console.print(f"\n[bold blue]Loading release from:[/bold blue] {input_dir}")
    console.print(f"[bold blue]Target database:[/bold blue] {db}\n")

    try:
        table_registry = _resolve_registry(registry, expected_counts)
        if not any(spec.expected_count is not None for spec in table_registry):
            console.print("[yellow]⚠ No expected counts given; row counts will not be verified[/yellow]")

        settings = LoaderSettings(
            input_dir=input_dir,
            db_path=db,
            schema_path=schema,
            indexes_path=indexes,
            archive_pattern=pattern,
            digest_algorithm=digest_algorithm,
            sidecar_suffix=sidecar_suffix,
            chunk_size=chunk_size,
            scratch_parent=scratch_dir,
            keep_scratch=keep_scratch,
            overwrite=overwrite,
            tables=table or None,
        )
        result = run_import(settings, table_registry)

    except PatstatLoaderError as e:
        _fail(f"Import failed: {e}")
    except Exception as e:
        console.print(f"[bold red]Unexpected error:[/bold red] {escape(str(e))}")
        import traceback
        traceback.print_exc()
        sys.exit(1)

    summary = Table(title="Loaded Tables")
    summary.add_column("Code", style="cyan", no_wrap=True)
    summary.add_column("Table", style="green")
    summary.add_column("Rows", justify="right", style="magenta")
    summary.add_column("Count check", style="dim")

    for code, info in result["tables"].items():
        verified = info["verified_count"]
        summary.add_row(
            code,
            info["table"],
            str(info["rows_loaded"]),
            "✓" if verified is not None else "skipped"
        )

    console.print(summary)

    if report:
        with open(report, "w") as f:
            json.dump(result, f, indent=2)
        console.print(f"\n[dim]Full report written to: {report}[/dim]")

    console.print("\n[bold green]✓ Import complete[/bold green]\n")


@app.command("verify-archives")
def verify_archives_command(
    input_dir: str = typer.Argument(..., help="Directory containing the release archives"),
    pattern: str = typer.Option(
        default=DEFAULT_ARCHIVE_PATTERN,
        help="Glob pattern for archives under INPUT_DIR"
    ),
    digest_algorithm: str = typer.Option(
        default=DEFAULT_ALGORITHM,
        help="Digest algorithm used by the sidecar files"
    ),
    sidecar_suffix: str = typer.Option(
        default=DEFAULT_SIDECAR_SUFFIX,
        help="Suffix appended to an archive name to find its sidecar"
    )
):
    """
    Check every archive against its sidecar digest without loading.

    Example:
        patstat-loader verify-archives data/patstat_2024_spring
    """
    configure_logging()

    try:
        archives = find_archives(input_dir, pattern)
        digests = verify_archives(archives, digest_algorithm, sidecar_suffix)
    except PatstatLoaderError as e:
        _fail(f"Verification failed: {e}")

    for name, digest in digests.items():
        console.print(f"  [green]✓[/green] {name} [dim]{digest}[/dim]")
    console.print(f"\n[bold green]✓ {len(digests)} archive(s) verified[/bold green]\n")


@app.command()
def verify_counts(
    db: str = typer.Argument(..., help="Path to SQLite database"),
    expected_counts: str = typer.Option(
        ...,
        help="JSON file mapping table code to expected row count"
    ),
    registry: Optional[str] = typer.Option(
        default=None,
        help="Table registry JSON (default: packaged registry)"
    )
):
    """
    Compare row counts of an existing database with expected values.

    Example:
        patstat-loader verify-counts patstat.sqlite --expected-counts counts.json
    """
    configure_logging()

    if not Path(db).exists():
        _fail(f"Database not found: {db}")

    try:
        counts = load_expected_counts(expected_counts)
        table_registry = load_registry(registry)
        table_registry = table_registry.select(counts).with_expected_counts(counts)

        conn = sqlite3.connect(db)
        try:
            verified = verify_row_counts(conn, table_registry)
        finally:
            conn.close()
    except PatstatLoaderError as e:
        _fail(f"Verification failed: {e}")
    except sqlite3.Error as e:
        _fail(f"Database error: {e}")

    console.print(f"\n[bold green]✓ {len(verified)} table count(s) verified[/bold green]\n")


@app.command()
def tables(
    registry: Optional[str] = typer.Option(
        default=None,
        help="Table registry JSON (default: packaged registry)"
    )
):
    """
    List the tables in the registry, in load order.

    Example:
        patstat-loader tables
    """
    try:
        table_registry = load_registry(registry)
    except PatstatLoaderError as e:
        _fail(str(e))

    listing = Table(title=f"Registered Tables ({len(table_registry)} total)")
    listing.add_column("Code", style="cyan", no_wrap=True)
    listing.add_column("Table", style="green")
    listing.add_column("Defaults", justify="right", style="magenta")

    for spec in table_registry:
        listing.add_row(spec.code, spec.table, str(len(spec.defaults)))

    console.print(listing)


@app.command()
def version():
    """Display version information."""
    from patstat_app import __version__ as app_version
    console.print(f"\n[bold]PATSTAT Loader[/bold]")
    console.print(f"Version: {app_version}")
    console.print(f"Python: {sys.version.split()[0]}\n")


if __name__ == "__main__":
    app()
