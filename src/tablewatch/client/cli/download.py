"""Download commands for the tablewatch CLI.

Commands:
- download: Download a table and (by default) watch it for changes
- resync: Re-download a watched table with its stored parameters
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from tablewatch.client.cli.config import (
    default_output_path,
    get_default_row_limit,
    get_project_id,
    load_config,
)
from tablewatch.client.cli.engine import build_engine
from tablewatch.client.registry import WatchRecord
from tablewatch.client.ui import ConsoleUI
from tablewatch.client.watch import ResyncOutcome, Success, SuccessViaWorkaround


def _report(outcome: ResyncOutcome, record: WatchRecord) -> None:
    """Print an outcome and exit non-zero on failure."""
    if isinstance(outcome, Success):
        click.echo(click.style(f"✓ {record.resource_id} → {record.local_path}", fg="green"))
    elif isinstance(outcome, SuccessViaWorkaround):
        click.echo(f"✓ {record.resource_id} has no rows; wrote empty file {record.local_path}")
    else:
        click.echo(f"Error: {outcome.message or outcome.error_kind.value}", err=True)
        sys.exit(1)


@click.command()
@click.argument("table_id")
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Output file.")
@click.option(
    "--limit",
    type=click.IntRange(min=0),
    default=None,
    help="Row limit (0 = unlimited, default from config).",
)
@click.option("--header/--no-header", default=True, help="Include a header row.")
@click.option("--watch/--no-watch", default=True, help="Watch the table for changes.")
@click.option("--project", default=None, help="Project ID (default from config).")
def download(
    table_id: str,
    output: Path | None,
    limit: int | None,
    header: bool,
    watch: bool,
    project: str | None,
) -> None:
    """Download a table through kbc.

    On success the table is registered for watching unless --no-watch.
    """
    config = load_config()
    record = WatchRecord(
        project_id=project or get_project_id(config),
        resource_id=table_id,
        local_path=str((output or default_output_path(table_id)).resolve()),
        row_limit=get_default_row_limit(config) if limit is None else limit,
        include_headers=header,
    )

    with build_engine(ConsoleUI()) as engine:
        click.echo(f"Downloading {table_id}...")
        outcome = engine.pipeline.download(record, watch=watch)
        _report(outcome, record)
        if watch:
            click.echo(f"Watching {table_id} for changes.")


@click.command()
@click.argument("table_id")
@click.option("--project", default=None, help="Project ID (default from config).")
def resync(table_id: str, project: str | None) -> None:
    """Re-download a watched table now."""
    config = load_config()
    project_id = project or get_project_id(config)

    with build_engine(ConsoleUI()) as engine:
        record = engine.registry.get(project_id, table_id)
        if record is None:
            click.echo(f"Error: {table_id} is not watched in project {project_id}.", err=True)
            sys.exit(1)
        click.echo(f"Re-downloading {table_id}...")
        outcome = engine.pipeline.resync(record)
        _report(outcome, record)
