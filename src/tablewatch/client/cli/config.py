"""Configuration utilities for the tablewatch CLI.

This module provides shared configuration functions used across CLI commands.
"""

from __future__ import annotations

import json
import os
import re
from pathlib import Path
from typing import Any

from tablewatch.core.config import DEFAULT_KBC_PATH, DEFAULT_ROW_LIMIT, ConnectionConfig

HOME_ENV_VAR = "TABLEWATCH_HOME"


def get_config_dir() -> Path:
    """Get the configuration directory for tablewatch.

    Returns:
        Path from $TABLEWATCH_HOME, or ~/.tablewatch.
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".tablewatch"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_registry_path() -> Path:
    """Get the path to the watch registry database."""
    return get_config_dir() / "watch.db"


def get_activity_log_path() -> Path:
    """Get the path to the activity log."""
    return get_config_dir() / "activity.log"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        return dict(json.loads(config_file.read_text()))
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_connection(config: dict[str, Any]) -> ConnectionConfig | None:
    """Build connection settings from config.

    Returns:
        ConnectionConfig, or None if api_url or token is missing.
    """
    if not config.get("api_url") or not config.get("token"):
        return None
    return ConnectionConfig(api_url=config["api_url"], token=config["token"])


def get_project_id(config: dict[str, Any]) -> str:
    """Get the project ID new watch records are filed under.

    Defaults to the stack host when no project ID was configured.
    """
    if config.get("project_id"):
        return str(config["project_id"])
    connection = get_connection(config)
    return connection.host if connection else "default"


def get_kbc_path(config: dict[str, Any]) -> str:
    """Get the kbc executable."""
    return str(config.get("kbc_path") or DEFAULT_KBC_PATH)


def get_default_row_limit(config: dict[str, Any]) -> int:
    """Get the default row limit for new downloads."""
    return int(config.get("row_limit", DEFAULT_ROW_LIMIT))


def default_output_path(table_id: str, directory: Path | None = None) -> Path:
    """Default local file for a table: <dir>/<sanitized table id>.csv."""
    file_name = re.sub(r"[^a-zA-Z0-9.-]", "_", table_id) + ".csv"
    return (directory or Path.cwd()) / file_name
