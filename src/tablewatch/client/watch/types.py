"""Result types for the watch engine.

This module provides:
- Unchanged, ChangedPendingResync, CheckFailed: CheckResult variants
- Success, SuccessViaWorkaround, TransientFailure, FatalFailure:
  ResyncOutcome variants
- OutputLine: A line of output from the download tool
- PassReport: Summary of one scheduler pass
- Type aliases for callbacks

Every component returns one of these values instead of raising, so callers
handle each outcome explicitly.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal, Union

from tablewatch.core.types import ErrorKind

# =============================================================================
# Check results
# =============================================================================


@dataclass(frozen=True)
class Unchanged:
    """Remote signal matches the stored one."""

    signal: str


@dataclass(frozen=True)
class ChangedPendingResync:
    """Remote signal differs from the stored one."""

    new_signal: str


@dataclass(frozen=True)
class CheckFailed:
    """The check could not determine the remote state this cycle."""

    error_kind: ErrorKind
    message: str = ""


CheckResult = Union[Unchanged, ChangedPendingResync, CheckFailed]


# =============================================================================
# Resync outcomes
# =============================================================================


@dataclass(frozen=True)
class Success:
    """The tool exited cleanly."""

    new_signal: str

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class SuccessViaWorkaround:
    """The tool hit the empty-table defect and a placeholder was written."""

    new_signal: str
    error_kind: ErrorKind = ErrorKind.EMPTY_RESOURCE_DEFECT

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class TransientFailure:
    """Rate limiting or a server error; retried on the next cycle."""

    error_kind: ErrorKind
    message: str = ""

    @property
    def ok(self) -> bool:
        return False


@dataclass(frozen=True)
class FatalFailure:
    """Any other failure, carrying the tool's raw message."""

    error_kind: ErrorKind
    message: str = ""

    @property
    def ok(self) -> bool:
        return False


ResyncOutcome = Union[Success, SuccessViaWorkaround, TransientFailure, FatalFailure]


# =============================================================================
# Process output
# =============================================================================


@dataclass(frozen=True)
class OutputLine:
    """A single line written by the download tool."""

    stream: Literal["stdout", "stderr"]
    text: str

    def __str__(self) -> str:
        return self.text


# Type alias for progress callback
ProgressCallback = Callable[[str], None]


# =============================================================================
# Scheduler
# =============================================================================


@dataclass
class PassReport:
    """Summary of one sweep over all watch records."""

    checked: int = 0
    unchanged: int = 0
    changed: int = 0
    resynced: int = 0
    dismissed: int = 0
    failed: int = 0

    def __str__(self) -> str:
        return (
            f"{self.checked} checked, {self.changed} changed, "
            f"{self.resynced} resynced, {self.failed} failed"
        )
