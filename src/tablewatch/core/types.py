"""Shared types for tablewatch.

This module defines enums used across the client components.
"""

from __future__ import annotations

from enum import Enum


class SchedulerState(str, Enum):
    """State of the watch scheduler.

    A tick only starts a pass from IDLE; ticks arriving while RUNNING
    are dropped.
    """

    STOPPED = "stopped"
    IDLE = "idle"
    RUNNING = "running"


class ErrorKind(str, Enum):
    """Classified failure kinds shared by checks and resyncs."""

    SIGNAL_UNAVAILABLE = "signal_unavailable"
    RATE_LIMITED = "rate_limited"
    TRANSIENT_SERVER_ERROR = "transient_server_error"
    EMPTY_RESOURCE_DEFECT = "empty_resource_defect"
    FATAL_FAILURE = "fatal_failure"
    INVALID_RECORD = "invalid_record"

    @property
    def is_transient(self) -> bool:
        """Whether the condition is expected to heal on the next cycle."""
        return self in (
            ErrorKind.SIGNAL_UNAVAILABLE,
            ErrorKind.RATE_LIMITED,
            ErrorKind.TRANSIENT_SERVER_ERROR,
        )
