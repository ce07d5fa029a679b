#!/usr/bin/env python3
"""
UK public-sector organisations aggregator - command line entry point.

Usage:
    uk-orgs aggregate
    uk-orgs aggregate --source gov_uk_api --source devolved --output dist/orgs.json
    uk-orgs list-sources
    uk-orgs cache clear
"""

import sys
from pathlib import Path

import click
from loguru import logger
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from aggregator.adapters import ADAPTERS
from aggregator.cache import RawRecordCache
from aggregator.config import settings
from aggregator.errors import FatalRunError
from aggregator.runner import RunResult, run_aggregation
from aggregator.utils.logging import setup_logging


console = Console()


def print_source_table(run: RunResult) -> None:
    """Print every source's outcome."""
    console.print("\n[bold]Source Summary[/bold]")
    table = Table()
    table.add_column("Source")
    table.add_column("Label")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Records", justify="right")
    table.add_column("Dropped", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Last error")

    for source_id, status in run.orchestration.statuses.items():
        if status.succeeded:
            state = "[green]OK[/green]" + (" (cached)" if status.from_cache else "")
        elif status.state is not None and status.state.value == "timeout":
            state = "[yellow]Timeout[/yellow]"
        else:
            state = "[red]Failed[/red]"
        duration = f"{status.duration_seconds:.1f}s" if status.duration_seconds is not None else "-"

        table.add_row(
            source_id,
            status.label,
            state,
            str(status.attempted),
            f"{status.record_count:,}",
            str(status.dropped_records),
            duration,
            (status.last_error or "")[:80],
        )

    console.print(table)


def print_resolution(run: RunResult) -> None:
    report = run.report
    console.print(
        f"\n[bold]{len(run.organisations):,}[/bold] organisations from {report.drafts:,} drafts "
        f"({report.merged_clusters:,} merged, {report.conflicted:,} with conflicts)"
    )


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--quiet", is_flag=True, help="Only log warnings and errors")
@click.option("--log-file", type=click.Path(path_type=Path), help="Also write logs to this file")
def cli(debug: bool, quiet: bool, log_file: Path | None):
    """UK public-sector organisations aggregator"""
    if debug or quiet or log_file:
        level = "DEBUG" if debug else "WARNING" if quiet else None
        setup_logging(level=level, log_file=log_file)


@cli.command()
@click.option(
    "--source", "sources",
    multiple=True,
    type=click.Choice(sorted(ADAPTERS)),
    help="Source to run (repeatable, default: all)",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Artifact path (default: {settings.pipeline.output_path})",
)
@click.option("--cache", "use_cache", is_flag=True, help="Reuse raw records fetched within the cache TTL")
@click.option("--active-only", is_flag=True, help="Publish active organisations only")
@click.option("--deadline", type=float, default=None, help="Global deadline in seconds (0 = none)")
@click.option("--concurrency", type=click.IntRange(min=1), default=None, help="Concurrent sources")
def aggregate(
    sources: tuple[str, ...],
    output: Path | None,
    use_cache: bool,
    active_only: bool,
    deadline: float | None,
    concurrency: int | None,
):
    """Fetch all sources, merge duplicates and write the organisations artifact."""
    console.print("\n[bold blue]UK Public Sector Organisations - Aggregation[/bold blue]")
    console.print(f"Sources: {', '.join(sources) if sources else 'all'}\n")

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Aggregating...", total=None)
        try:
            run = run_aggregation(
                sources or None,
                output_path=output,
                cache=RawRecordCache() if use_cache else None,
                active_only=active_only,
                deadline_seconds=deadline,
                max_concurrency=concurrency,
            )
        except FatalRunError as e:
            run = e.result
            failure = e
        else:
            failure = None

    if run is not None:
        print_source_table(run)

    if failure is not None:
        console.print(f"\n[red]Aggregation failed: {failure}[/red]")
        if run is not None and run.artifact_path:
            console.print(f"[yellow]Partial artifact written to {run.artifact_path}[/yellow]")
        logger.error(f"Aggregation failed: {failure}")
        sys.exit(1)

    print_resolution(run)
    console.print(f"[green]Wrote {run.artifact_path}[/green]")
    if run.report.conflicted:
        console.print(f"Conflicts for review in {run.conflicts_path}")


@cli.command("list-sources")
def list_sources():
    """List registered sources."""
    table = Table(title="Registered Sources")
    table.add_column("Source")
    table.add_column("Name")
    table.add_column("Tier")
    table.add_column("Confidence", justify="right")
    table.add_column("Host")

    for source_id, adapter_class in sorted(ADAPTERS.items()):
        adapter = adapter_class()
        table.add_row(
            source_id,
            adapter.source_name,
            adapter.tier.value,
            f"{adapter.confidence:.1f}",
            adapter.host,
        )

    console.print(table)


@cli.group()
def cache():
    """Manage the raw-record development cache."""
    pass


@cache.command("clear")
def cache_clear():
    """Delete all cached raw records."""
    removed = RawRecordCache().clear()
    console.print(f"Removed {removed} cached source file(s)")


if __name__ == "__main__":
    cli()
