"""Watcher commands for the tablewatch CLI.

Commands:
- check: Run one watch pass now
- run: Watch tables on a timer until interrupted
- status: Show configuration, watch list and recent activity
"""

from __future__ import annotations

import sys
import time

import click

from tablewatch.client.cli.config import (
    get_activity_log_path,
    get_config_file,
    get_connection,
    load_config,
)
from tablewatch.client.cli.engine import build_engine, open_registry
from tablewatch.client.ui import ConsoleUI
from tablewatch.core.config import WatchSettings

RECENT_ACTIVITY_LINES = 5


@click.command()
@click.option("--auto", is_flag=True, help="Re-download changed tables without asking.")
@click.option("--no-prompt", is_flag=True, help="Never ask; report changes only.")
def check(auto: bool, no_prompt: bool) -> None:
    """Check every watched table once."""
    with build_engine(ConsoleUI(interactive=not no_prompt)) as engine:
        if auto:
            engine.policy.auto_resync_enabled = True
        if engine.registry.count() == 0:
            click.echo("No watched tables.")
            return
        report = engine.scheduler.run_pass()

    if report is None:
        click.echo("A check is already in progress.")
        return
    click.echo(f"✓ {report}")
    if report.failed:
        sys.exit(1)


@click.command()
@click.option("--interval", type=click.IntRange(min=10), default=None, help="Seconds between checks.")
@click.option(
    "--auto-download/--no-auto-download",
    default=None,
    help="Re-download changed tables without asking.",
)
@click.option("--no-prompt", is_flag=True, help="Never ask; report changes only.")
def run(interval: int | None, auto_download: bool | None, no_prompt: bool) -> None:
    """Watch tables until interrupted with Ctrl+C."""
    with build_engine(ConsoleUI(interactive=not no_prompt)) as engine:
        settings = engine.settings
        if not settings.watch_enabled:
            click.echo("Table watching is disabled (watch_enabled = false).")
            return

        interval = interval or settings.watch_interval_sec
        auto = settings.auto_download if auto_download is None else auto_download

        engine.scheduler.start(interval, auto_resync_enabled=auto)
        mode = "auto-download" if auto else "prompt"
        click.echo(
            f"Watching {engine.registry.count()} tables every {interval}s ({mode}). "
            "Press Ctrl+C to stop."
        )
        try:
            while True:
                time.sleep(1)
        except KeyboardInterrupt:
            click.echo("\nStopping...")
            engine.scheduler.stop()

        scheduler = engine.scheduler
        click.echo(f"Completed {scheduler.passes_completed} checks ({scheduler.ticks_dropped} skipped).")


@click.command()
def status() -> None:
    """Show configuration and watched tables."""
    config = load_config()
    connection = get_connection(config)
    settings = WatchSettings.from_config(config)

    if connection is None:
        click.echo(f"Connection: not configured ({get_config_file()})")
    else:
        click.echo(f"Connection: {connection.host}")

    click.echo(f"Watching: {'enabled' if settings.watch_enabled else 'disabled'}")
    click.echo(f"Interval: {settings.watch_interval_sec}s")
    click.echo(f"Auto-download: {'on' if settings.auto_download else 'off'}")

    registry = open_registry()
    try:
        click.echo(f"Watched tables: {registry.count()}")
    finally:
        registry.close()

    log_path = get_activity_log_path()
    if log_path.exists():
        lines = log_path.read_text(encoding="utf-8", errors="replace").splitlines()
        recent = lines[-RECENT_ACTIVITY_LINES:]
        if recent:
            click.echo("Recent activity:")
            for line in recent:
                click.echo(f"  {line}")
