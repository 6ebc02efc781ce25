"""Watch & resync engine for downloaded tables.

Architecture:
    WatchScheduler → ChangeDetector → NotificationPolicy → ResyncPipeline
                                                               ↓
                                                         WatchRegistry

Components:
- **ChangeDetector**: Compares stored and remote lastImportDate
- **ResyncPipeline**: Runs kbc, streams its output, classifies the exit
- **NotificationPolicy**: Auto-resync or ask the user
- **WatchScheduler**: Timer-driven, non-overlapping sequential passes

All public symbols are re-exported here.
"""

from tablewatch.client.watch.detector import ChangeDetector
from tablewatch.client.watch.pipeline import (
    EMPTY_HEADER_MARKER,
    ResyncPipeline,
    build_download_args,
    credential_args,
    write_placeholder,
)
from tablewatch.client.watch.policy import Action, NotificationPolicy
from tablewatch.client.watch.process import ToolProcess
from tablewatch.client.watch.scheduler import WatcherStatus, WatchScheduler
from tablewatch.client.watch.signatures import (
    SIGNATURES_VERSION,
    classify_failure,
    classify_status_code,
)
from tablewatch.client.watch.types import (
    ChangedPendingResync,
    CheckFailed,
    CheckResult,
    FatalFailure,
    OutputLine,
    PassReport,
    ResyncOutcome,
    Success,
    SuccessViaWorkaround,
    TransientFailure,
    Unchanged,
)

__all__ = [
    # Components
    "ChangeDetector",
    "NotificationPolicy",
    "ResyncPipeline",
    "ToolProcess",
    "WatchScheduler",
    "WatcherStatus",
    "Action",
    # Pipeline helpers
    "EMPTY_HEADER_MARKER",
    "build_download_args",
    "credential_args",
    "write_placeholder",
    # Signatures
    "SIGNATURES_VERSION",
    "classify_failure",
    "classify_status_code",
    # Types
    "ChangedPendingResync",
    "CheckFailed",
    "CheckResult",
    "FatalFailure",
    "OutputLine",
    "PassReport",
    "ResyncOutcome",
    "Success",
    "SuccessViaWorkaround",
    "TransientFailure",
    "Unchanged",
]
