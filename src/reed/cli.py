"""Command-line interface for reed."""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import httpx
import typer
from rich.console import Console
from rich.table import Table

from reed.errors import ReedError
from reed.exporters import record_to_bibtex
from reed.logs import get_logger
from reed.models import MetadataRecord
from reed.services import (
    CrossrefResolver,
    ImportCandidate,
    ImportPipeline,
    ImportReport,
    ImportStatus,
    JsonLibraryStore,
    NameTemplate,
    NamingOptions,
)
from reed.settings import Settings, get_settings

console = Console()
app = typer.Typer(help="reed – organize a library of papers")
logger = get_logger(__name__)

STATUS_STYLES = {
    ImportStatus.COMMITTED: "[green]imported[/green]",
    ImportStatus.SKIPPED_DUPLICATE: "[yellow]duplicate[/yellow]",
    ImportStatus.FAILED: "[red]failed[/red]",
}


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        stream=sys.stderr,
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        force=True,
    )


@app.callback()
def main() -> None:
    """Import papers into a library with canonical names."""
    _configure_logging(Settings.load().log_level)


async def _fetch_record(doi: str, settings: Settings) -> MetadataRecord | None:
    async with httpx.AsyncClient(timeout=30) as client:
        resolver = CrossrefResolver(client=client, settings=settings)
        return await resolver.resolve(doi)


def _write_env_var(key: str, value: str) -> None:
    env_path = Path(".env")
    lines = []
    if env_path.exists():
        lines = [line for line in env_path.read_text().splitlines() if not line.startswith(f"{key}=")]
    lines.append(f"{key}={value}")
    env_path.write_text("\n".join(lines) + "\n")


@app.command()
def init(
    library_root: Optional[Path] = typer.Option(None, help="Override the library root"),
) -> None:
    """Create the library root and remember it in .env."""
    settings = get_settings()
    target = library_root or settings.library_root
    target.mkdir(parents=True, exist_ok=True)
    console.print(f"[green]Library ready:[/green] {target}")
    if library_root:
        _write_env_var("REED_LIBRARY_ROOT", str(target))
        console.print("Updated .env with REED_LIBRARY_ROOT")


@app.command()
def config(
    json_output: bool = typer.Option(False, "--json", help="Output settings as JSON"),
) -> None:
    """Display the resolved settings."""
    settings = get_settings()
    if json_output:
        typer.echo(settings.model_dump_json(indent=2))
        return
    table = Table(title="reed settings")
    table.add_column("Key")
    table.add_column("Value", overflow="fold")
    for key, value in settings.model_dump().items():
        table.add_row(key, str(value))
    console.print(table)


@app.command("import")
def import_(
    files: list[Path] = typer.Argument(..., help="Files to import"),
    bib: Optional[Path] = typer.Option(None, "--bib", "-b", help="BibTeX file with metadata"),
    doi: Optional[str] = typer.Option(None, "--doi", help="Fetch metadata for this DOI"),
    key: Optional[str] = typer.Option(None, "--key", "-k", help="Citation key to link the files to"),
    template: Optional[str] = typer.Option(None, "--template", "-t", help="Name template"),
    copy: bool = typer.Option(False, "--copy", help="Copy files instead of moving them"),
    workers: int = typer.Option(1, help="Threads used to digest files"),
) -> None:
    """Import files into the library, skipping content it already holds."""
    if bib and doi:
        raise typer.BadParameter("Use either --bib or --doi, not both.")
    settings = get_settings()

    bibliography: bytes | None = None
    records: list[MetadataRecord] = []
    if bib:
        try:
            bibliography = bib.read_bytes()
        except OSError as exc:
            console.print(f"[red]Cannot read bibliography {bib}: {exc}[/red]")
            raise typer.Exit(code=1) from exc
    if doi:
        record = asyncio.run(_fetch_record(doi, settings))
        if record is None:
            console.print(f"[red]No metadata found for {doi}[/red]")
            raise typer.Exit(code=1)
        records.append(record)
        key = key or record.key

    candidates = [ImportCandidate(path=path, key=key) for path in files]
    logger.debug("cli.import", files=len(candidates), library_root=str(settings.library_root))
    store = JsonLibraryStore(settings.store_path, settings.library_root)
    options = NamingOptions(
        max_author_names=settings.max_author_names,
        author_separator=settings.author_separator,
        max_length=settings.max_name_length,
    )
    pipeline = ImportPipeline(
        store,
        NameTemplate(template or settings.name_template, options),
        transfer_mode="copy" if copy else settings.transfer_mode,
        digest_workers=workers,
    )
    try:
        with store.write_lock():
            if doi:
                report = pipeline.run(candidates, records)
            else:
                report = pipeline.import_bibliography(bibliography, candidates)
    except ReedError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc

    _print_report(report)
    if report.failed:
        raise typer.Exit(code=1)


def _print_report(report: ImportReport) -> None:
    for error in report.parse_errors:
        console.print(f"[yellow]Skipped bibliography entry at line {error.line}:[/yellow] {error.message}")
    table = Table(title=f"Import ({len(report.outcomes)} files)")
    table.add_column("File")
    table.add_column("Status")
    table.add_column("Key")
    table.add_column("Library path / reason", overflow="fold")
    for outcome in report.outcomes:
        detail = outcome.reason if outcome.status is ImportStatus.FAILED else str(outcome.library_path)
        table.add_row(
            outcome.source.name,
            STATUS_STYLES[outcome.status],
            outcome.linked_key or "-",
            detail or "-",
        )
    console.print(table)
    console.print(
        f"{len(report.committed)} imported, {len(report.skipped)} duplicates, "
        f"{len(report.failed)} failed"
    )


@app.command()
def fetch(doi: str = typer.Argument(..., help="DOI to look up")) -> None:
    """Print a BibTeX entry for a DOI."""
    settings = get_settings()
    record = asyncio.run(_fetch_record(doi, settings))
    if record is None:
        console.print(f"[red]No metadata found for {doi}[/red]")
        raise typer.Exit(code=1)
    typer.echo(record_to_bibtex(record))
