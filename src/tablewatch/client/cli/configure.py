"""Connection setup command for the tablewatch CLI.

Commands:
- configure: Store the Keboola stack URL, token and watch settings
"""

from __future__ import annotations

import sys

import click

from tablewatch.client.api import StorageClient
from tablewatch.client.cli.config import get_config_file, get_connection, load_config, save_config
from tablewatch.core.config import DEFAULT_KBC_PATH, DEFAULT_WATCH_INTERVAL_SEC


@click.command()
@click.option("--api-url", default=None, help="Stack URL (e.g., https://connection.keboola.com).")
@click.option("--token", default=None, help="Storage API token.")
@click.option("--project-id", default=None, help="Project ID watched tables are filed under.")
@click.option("--kbc-path", default=None, help=f"kbc executable (default: {DEFAULT_KBC_PATH}).")
@click.option(
    "--interval",
    type=click.IntRange(min=10),
    default=None,
    help=f"Seconds between checks (default: {DEFAULT_WATCH_INTERVAL_SEC}).",
)
@click.option(
    "--auto-download/--no-auto-download",
    default=None,
    help="Re-download changed tables without asking.",
)
@click.option(
    "--escalate-after",
    type=click.IntRange(min=0),
    default=None,
    help="Warn after this many consecutive transient failures (0 = never).",
)
@click.option("--no-verify", is_flag=True, help="Skip the token check.")
def configure(
    api_url: str | None,
    token: str | None,
    project_id: str | None,
    kbc_path: str | None,
    interval: int | None,
    auto_download: bool | None,
    escalate_after: int | None,
    no_verify: bool,
) -> None:
    """Configure the Keboola connection and watch settings."""
    config = load_config()

    if api_url is None:
        api_url = click.prompt(
            "Keboola stack URL",
            default=config.get("api_url") or "https://connection.keboola.com",
        )
    if token is None:
        token = click.prompt("Storage API token", hide_input=True, default=config.get("token") or None)

    config["api_url"] = api_url
    config["token"] = token
    if project_id is not None:
        config["project_id"] = project_id
    if kbc_path is not None:
        config["kbc_path"] = kbc_path
    if interval is not None:
        config["watch_interval_sec"] = interval
    if auto_download is not None:
        config["auto_download"] = auto_download
    if escalate_after is not None:
        config["transient_escalation_threshold"] = escalate_after or None

    connection = get_connection(config)
    if connection is None:
        click.echo("Error: Stack URL and token are required.", err=True)
        sys.exit(1)

    if not no_verify:
        with StorageClient(connection) as client:
            if not client.test_connection():
                click.echo("Error: Could not verify the token against the stack.", err=True)
                sys.exit(1)
        click.echo("Token verified.")

    save_config(config)
    click.echo(f"Configuration saved to {get_config_file()}")
