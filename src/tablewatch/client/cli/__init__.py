"""Command-line interface for tablewatch.

This module provides the main CLI entry point and assembles all commands.

Commands:
- configure: Store the Keboola connection and watch settings
- download: Download a table and watch it
- resync: Re-download a watched table now
- watch: Manage the watch list (add, remove, list, stats)
- check: Run one watch pass
- run: Watch tables on a timer
- status: Show configuration and recent activity
"""

from __future__ import annotations

import logging

import click

from tablewatch.client.cli.configure import configure
from tablewatch.client.cli.download import download, resync
from tablewatch.client.cli.run import check, run, status
from tablewatch.client.cli.watch import watch


def _setup_logging(verbose: bool) -> None:
    """Send tablewatch log records to stderr."""
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))

    tablewatch_logger = logging.getLogger("tablewatch")
    for existing in tablewatch_logger.handlers[:]:
        tablewatch_logger.removeHandler(existing)
    tablewatch_logger.addHandler(handler)
    tablewatch_logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    tablewatch_logger.propagate = False


@click.group()
@click.version_option(package_name="tablewatch")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def cli(verbose: bool) -> None:
    """tablewatch - Keep local copies of Keboola tables up to date."""
    _setup_logging(verbose)


# Connection
cli.add_command(configure)

# Downloads
cli.add_command(download)
cli.add_command(resync)

# Watch list
cli.add_command(watch)

# Watcher
cli.add_command(check)
cli.add_command(run)
cli.add_command(status)


def main() -> None:
    """Main entry point."""
    cli()
