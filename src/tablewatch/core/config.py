"""Shared configuration classes for tablewatch.

This module defines the connection and watch settings consumed by the
engine. Both are plain dataclasses built from the CLI config file.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

DEFAULT_WATCH_INTERVAL_SEC = 300
DEFAULT_ROW_LIMIT = 1000
DEFAULT_KBC_PATH = "kbc"


@dataclass
class ConnectionConfig:
    """Configuration for connecting to a Keboola Storage API stack.

    Used by both the HTTP client (StorageClient) and the download tool
    invocation so that both talk to the same stack with the same token.

    Attributes:
        api_url: Base URL of the stack (e.g., "https://connection.keboola.com").
        token: Storage API token.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    api_url: str
    token: str
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize API URL."""
        self.api_url = self.api_url.rstrip("/")

    @property
    def host(self) -> str:
        """Get the bare host name expected by the kbc CLI.

        Returns:
            Host without scheme (e.g., "connection.keboola.com").
        """
        url = self.api_url
        for scheme in ("https://", "http://"):
            if url.startswith(scheme):
                return url[len(scheme):]
        return url

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS."""
        return self.api_url.startswith("https://")


@dataclass
class WatchSettings:
    """Settings for the table watcher.

    Attributes:
        watch_enabled: Enable/disable table watching.
        watch_interval_sec: Check interval in seconds.
        auto_download: Automatically re-download changed tables.
        transient_escalation_threshold: Warn the user after this many
            consecutive transient failures for one table (None = never).
    """

    watch_enabled: bool = True
    watch_interval_sec: int = DEFAULT_WATCH_INTERVAL_SEC
    auto_download: bool = False
    transient_escalation_threshold: int | None = None

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> WatchSettings:
        """Create settings from the CLI config dictionary."""
        threshold = config.get("transient_escalation_threshold")
        return cls(
            watch_enabled=bool(config.get("watch_enabled", True)),
            watch_interval_sec=int(config.get("watch_interval_sec", DEFAULT_WATCH_INTERVAL_SEC)),
            auto_download=bool(config.get("auto_download", False)),
            transient_escalation_threshold=int(threshold) if threshold else None,
        )
