"""Re-download pipeline for watched tables.

This module provides:
- build_download_args: kbc argument vector for a watch record
- credential_args: Connection arguments appended to every invocation
- ResyncPipeline: Runs the download, classifies the exit, applies outcomes

Flow:
    build_download_args → ToolProcess (stream lines) → classify exit
        → Success / SuccessViaWorkaround / TransientFailure / FatalFailure
        → apply(): registry upsert on success outcomes only
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from tablewatch.client import notifications
from tablewatch.client.registry import WatchRecord
from tablewatch.client.watch.process import ToolProcess
from tablewatch.client.watch.signatures import SIGNATURES_VERSION, classify_failure
from tablewatch.client.watch.types import (
    FatalFailure,
    OutputLine,
    ProgressCallback,
    ResyncOutcome,
    Success,
    SuccessViaWorkaround,
    TransientFailure,
)
from tablewatch.core.config import DEFAULT_KBC_PATH
from tablewatch.core.types import ErrorKind

if TYPE_CHECKING:
    from tablewatch.client.activity import ActivityLog
    from tablewatch.client.api import MetadataSource
    from tablewatch.client.registry import WatchRegistry
    from tablewatch.client.ui import UserInterface
    from tablewatch.core.config import ConnectionConfig

logger = logging.getLogger(__name__)

DOWNLOAD_COMMAND = ("remote", "table", "download")

# Written as the only line of a placeholder file when headers were requested
EMPTY_HEADER_MARKER = "# table has no rows"


class ToolRun(Protocol):
    """What the pipeline needs from a tool invocation."""

    returncode: int | None

    def __iter__(self) -> Iterator[OutputLine]: ...

    @property
    def output(self) -> str: ...


ProcessFactory = Callable[[Sequence[str]], ToolRun]


def build_download_args(record: WatchRecord) -> list[str]:
    """Build the kbc arguments that re-create a record's local file.

    --limit is only passed for a positive row limit: omitting it means
    unlimited, while an explicit "--limit 0" does not.
    """
    args = [*DOWNLOAD_COMMAND, record.resource_id, "--output", record.local_path]
    if record.row_limit > 0:
        args += ["--limit", str(record.row_limit)]
    if record.include_headers:
        args.append("--header")
    return args


def credential_args(connection: ConnectionConfig) -> list[str]:
    """Connection arguments appended after the command arguments."""
    return [
        "--storage-api-token", connection.token,
        "--storage-api-host", connection.host,
    ]


def write_placeholder(record: WatchRecord) -> Path:
    """Write the local file for a table that has no rows.

    Returns:
        Path of the written file.

    Raises:
        OSError: If the file cannot be written.
    """
    path = Path(record.local_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    content = f"{EMPTY_HEADER_MARKER}\n" if record.include_headers else ""
    path.write_text(content, encoding="utf-8")
    return path


class ResyncPipeline:
    """Re-downloads watched tables through the kbc CLI."""

    def __init__(
        self,
        metadata: MetadataSource,
        connection: ConnectionConfig,
        registry: WatchRegistry,
        ui: UserInterface | None = None,
        activity: ActivityLog | None = None,
        kbc_path: str = DEFAULT_KBC_PATH,
        process_factory: ProcessFactory | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            metadata: Source of the table's freshness signal.
            connection: Stack URL and token passed to the tool.
            registry: Watch registry updated on success.
            ui: Optional UI receiving progress lines and notices.
            activity: Optional activity log for classified outcomes.
            kbc_path: kbc executable.
            process_factory: Creates the tool invocation (tests inject fakes).
        """
        self._metadata = metadata
        self._connection = connection
        self._registry = registry
        self._ui = ui
        self._activity = activity
        self._kbc_path = kbc_path
        self._process_factory: ProcessFactory = process_factory or ToolProcess

    def _log(self, line: str) -> None:
        if self._activity is not None:
            self._activity.append(line)

    def command_for(self, record: WatchRecord) -> list[str]:
        """Full argument vector, executable and credentials included."""
        return [self._kbc_path, *build_download_args(record), *credential_args(self._connection)]

    def _read_signal(self, record: WatchRecord, fallback: str | None) -> str:
        """Read the post-download signal back from the metadata service.

        Falls back to the signal seen by the check (or the stored one) when
        the service cannot answer, so a finished download is never lost.
        """
        try:
            signal = self._metadata.get_freshness_signal(record.resource_id)
        except Exception as e:
            logger.warning("Could not read lastImportDate for %s: %s", record.resource_id, e)
            signal = ""
        if signal:
            return signal
        return fallback or record.last_signal

    def run(
        self,
        record: WatchRecord,
        on_progress: ProgressCallback | None = None,
        expected_signal: str | None = None,
    ) -> ResyncOutcome:
        """Download a table with the record's stored parameters.

        Does not touch the registry; see apply().

        Args:
            record: The watch record to re-download.
            on_progress: Receives each non-empty output line.
            expected_signal: Signal reported by the preceding check.

        Returns:
            The classified outcome.
        """
        args = build_download_args(record)
        logger.info(
            "Downloading %s (limit=%s, headers=%s) to %s",
            record.resource_id,
            record.row_limit or "unlimited",
            record.include_headers,
            record.local_path,
        )
        self._log(f"[RUN] kbc {' '.join(args)}")

        if on_progress is None and self._ui is not None:
            on_progress = self._ui.show_progress

        process = self._process_factory(self.command_for(record))
        for line in process:
            logger.debug("[%s] %s", line.stream.upper(), line.text)
            text = line.text.strip()
            if text and on_progress is not None:
                on_progress(text)

        code = process.returncode
        self._log(f"[EXIT] {record.resource_id} exited with code {code}")

        if code == 0:
            return Success(self._read_signal(record, expected_signal))

        output = process.output or f"Command failed with exit code {code}"
        kind = classify_failure(output)
        logger.debug(
            "Classified exit %s of %s as %s (signatures v%d)",
            code,
            record.resource_id,
            kind.value,
            SIGNATURES_VERSION,
        )

        if kind == ErrorKind.EMPTY_RESOURCE_DEFECT:
            try:
                path = write_placeholder(record)
            except OSError as e:
                logger.warning("Could not write placeholder for %s: %s", record.resource_id, e)
                return FatalFailure(ErrorKind.FATAL_FAILURE, f"{output}\n{e}")
            logger.info("Table %s has no rows, wrote placeholder %s", record.resource_id, path)
            return SuccessViaWorkaround(self._read_signal(record, expected_signal))
        if kind.is_transient:
            return TransientFailure(kind, output)
        return FatalFailure(kind, output)

    def apply(self, record: WatchRecord, outcome: ResyncOutcome) -> bool:
        """Store the new signal for success outcomes.

        Only last_signal is written, and only if the record is still
        watched: a table unwatched during the download stays unwatched,
        and edits made meanwhile to its other fields are kept. Failures
        leave the record untouched so the next check starts from the same
        baseline.

        Returns:
            True if the registry was updated.
        """
        if not isinstance(outcome, (Success, SuccessViaWorkaround)):
            return False
        updated = self._registry.update_signal(record.project_id, record.resource_id, outcome.new_signal)
        if not updated:
            logger.info("%s is no longer watched, not storing its signal", record.resource_id)
        return updated

    def record_outcome(self, record: WatchRecord, outcome: ResyncOutcome) -> None:
        """Write an outcome to the activity log and tell the user if needed."""
        name = record.display_name
        if isinstance(outcome, Success):
            self._log(f"SUCCESS {record.resource_id} signal={outcome.new_signal} path={record.local_path}")
        elif isinstance(outcome, SuccessViaWorkaround):
            self._log(f"EMPTY {record.resource_id} signal={outcome.new_signal} path={record.local_path}")
            if self._ui is not None:
                self._ui.notify(notifications.empty_table(name, record.local_path))
        elif isinstance(outcome, TransientFailure):
            self._log(f"RETRY {record.resource_id} {outcome.error_kind.value}: {_last_line(outcome.message)}")
        else:
            self._log(f"FAILED {record.resource_id}: {_last_line(outcome.message)}")
            if self._ui is not None:
                self._ui.notify(notifications.resync_failed(name, outcome.message))

    def resync(
        self,
        record: WatchRecord,
        expected_signal: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ResyncOutcome:
        """Run, apply and record one re-download.

        Used by the scheduler and by user-triggered re-downloads alike.
        """
        outcome = self.run(record, on_progress=on_progress, expected_signal=expected_signal)
        self.apply(record, outcome)
        self.record_outcome(record, outcome)
        return outcome

    def download(
        self,
        record: WatchRecord,
        watch: bool = True,
        on_progress: ProgressCallback | None = None,
    ) -> ResyncOutcome:
        """Download a table for the first time and optionally watch it.

        The record's last_signal is ignored; the stored signal is the one
        read back after a successful download.
        """
        outcome = self.run(record.with_signal(""), on_progress=on_progress)
        if watch and isinstance(outcome, (Success, SuccessViaWorkaround)):
            self._registry.upsert(record.with_signal(outcome.new_signal))
        self.record_outcome(record, outcome)
        return outcome


def _last_line(text: str) -> str:
    """Last non-empty line of tool output (where kbc prints its error)."""
    lines = [line for line in text.splitlines() if line.strip()]
    return lines[-1] if lines else text
