"""Wiring of the watch engine for CLI commands."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Any

import click

from tablewatch.client.activity import ActivityLog
from tablewatch.client.api import StorageClient
from tablewatch.client.cli.config import (
    get_activity_log_path,
    get_connection,
    get_kbc_path,
    get_registry_path,
    load_config,
)
from tablewatch.client.registry import WatchRegistry
from tablewatch.client.ui import ConsoleUI
from tablewatch.client.watch import (
    ChangeDetector,
    NotificationPolicy,
    ResyncPipeline,
    WatchScheduler,
)
from tablewatch.core.config import ConnectionConfig, WatchSettings


@dataclass
class Engine:
    """All engine components built from the CLI config."""

    config: dict[str, Any]
    settings: WatchSettings
    connection: ConnectionConfig
    client: StorageClient
    registry: WatchRegistry
    activity: ActivityLog
    ui: ConsoleUI
    detector: ChangeDetector
    pipeline: ResyncPipeline
    policy: NotificationPolicy
    scheduler: WatchScheduler

    def close(self) -> None:
        """Release the HTTP client, database and log file."""
        self.scheduler.stop()
        self.client.close()
        self.registry.close()
        self.activity.close()

    def __enter__(self) -> Engine:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()


def open_registry() -> WatchRegistry:
    """Open the registry without requiring a configured connection."""
    return WatchRegistry(get_registry_path())


def build_engine(ui: ConsoleUI) -> Engine:
    """Build the engine, exiting with an error if not configured."""
    config = load_config()
    connection = get_connection(config)
    if connection is None:
        click.echo("Error: No Keboola connection configured. Run 'tablewatch configure' first.", err=True)
        sys.exit(1)

    settings = WatchSettings.from_config(config)
    client = StorageClient(connection)
    registry = open_registry()
    activity = ActivityLog(get_activity_log_path())

    detector = ChangeDetector(client)
    pipeline = ResyncPipeline(
        client,
        connection,
        registry,
        ui=ui,
        activity=activity,
        kbc_path=get_kbc_path(config),
    )
    policy = NotificationPolicy(ui, auto_resync_enabled=settings.auto_download)
    scheduler = WatchScheduler(
        registry,
        detector,
        pipeline,
        policy,
        ui=ui,
        activity=activity,
        transient_escalation_threshold=settings.transient_escalation_threshold,
    )
    return Engine(
        config=config,
        settings=settings,
        connection=connection,
        client=client,
        registry=registry,
        activity=activity,
        ui=ui,
        detector=detector,
        pipeline=pipeline,
        policy=policy,
        scheduler=scheduler,
    )
