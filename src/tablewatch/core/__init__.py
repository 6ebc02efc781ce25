"""Core module - Shared configuration and types."""

from tablewatch.core.config import (
    DEFAULT_KBC_PATH,
    DEFAULT_ROW_LIMIT,
    DEFAULT_WATCH_INTERVAL_SEC,
    ConnectionConfig,
    WatchSettings,
)
from tablewatch.core.types import ErrorKind, SchedulerState

__all__ = [
    # Config
    "ConnectionConfig",
    "DEFAULT_KBC_PATH",
    "DEFAULT_ROW_LIMIT",
    "DEFAULT_WATCH_INTERVAL_SEC",
    "WatchSettings",
    # Types
    "ErrorKind",
    "SchedulerState",
]
