"""Watch list commands for the tablewatch CLI.

Commands:
- watch add: Start watching a table without downloading it
- watch remove: Stop watching a table
- watch list: List watched tables
- watch stats: Show watch list counts
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from tablewatch.client.api import APIError, StorageClient
from tablewatch.client.cli.config import (
    default_output_path,
    get_connection,
    get_default_row_limit,
    get_project_id,
    load_config,
)
from tablewatch.client.cli.engine import open_registry
from tablewatch.client.registry import InvalidRecordError, WatchRecord


@click.group()
def watch() -> None:
    """Manage the list of watched tables."""


@watch.command("add")
@click.argument("table_id")
@click.option("--output", "-o", type=click.Path(path_type=Path), default=None, help="Local file.")
@click.option(
    "--limit",
    type=click.IntRange(min=0),
    default=None,
    help="Row limit (0 = unlimited, default from config).",
)
@click.option("--header/--no-header", default=True, help="Include a header row.")
@click.option("--project", default=None, help="Project ID (default from config).")
def watch_add(
    table_id: str,
    output: Path | None,
    limit: int | None,
    header: bool,
    project: str | None,
) -> None:
    """Watch a table that was downloaded before.

    The current lastImportDate becomes the baseline, so only later
    imports are reported.
    """
    config = load_config()
    signal = ""
    connection = get_connection(config)
    if connection is not None:
        try:
            with StorageClient(connection) as client:
                signal = client.get_freshness_signal(table_id)
        except APIError as e:
            click.echo(f"Warning: Could not read lastImportDate: {e}", err=True)

    record = WatchRecord(
        project_id=project or get_project_id(config),
        resource_id=table_id,
        local_path=str((output or default_output_path(table_id)).resolve()),
        last_signal=signal,
        row_limit=get_default_row_limit(config) if limit is None else limit,
        include_headers=header,
    )

    registry = open_registry()
    try:
        registry.upsert(record)
    except InvalidRecordError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    finally:
        registry.close()

    click.echo(f"Watching {table_id} → {record.local_path}")


@watch.command("remove")
@click.argument("table_id")
@click.option("--project", default=None, help="Project ID (default from config).")
def watch_remove(table_id: str, project: str | None) -> None:
    """Stop watching a table. The local file is kept."""
    project_id = project or get_project_id(load_config())
    registry = open_registry()
    try:
        removed = registry.remove(project_id, table_id)
    finally:
        registry.close()

    if not removed:
        click.echo(f"Error: {table_id} is not watched in project {project_id}.", err=True)
        sys.exit(1)
    click.echo(f"Stopped watching {table_id}")


@watch.command("list")
@click.option("--project", default=None, help="Only show this project.")
def watch_list(project: str | None) -> None:
    """List watched tables."""
    registry = open_registry()
    try:
        records = registry.list_by_project(project) if project else registry.list_all()
    finally:
        registry.close()

    if not records:
        click.echo("No watched tables.")
        return

    for record in records:
        limit = record.row_limit or "unlimited"
        header = "header" if record.include_headers else "no header"
        click.echo(f"{record.project_id}  {record.resource_id}")
        click.echo(f"    file: {record.local_path}")
        click.echo(f"    last import: {record.last_signal or '-'}  limit: {limit}  {header}")


@watch.command("stats")
def watch_stats() -> None:
    """Show how many tables are watched."""
    registry = open_registry()
    try:
        stats = registry.stats()
        counts = {project_id: registry.count(project_id) for project_id in stats.projects}
    finally:
        registry.close()

    click.echo(f"Watched tables: {stats.total_records}")
    click.echo(f"Projects: {stats.project_count}")
    for project_id in stats.projects:
        click.echo(f"  {project_id}: {counts[project_id]}")
