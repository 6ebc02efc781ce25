"""Background scheduler for table watching.

This module provides:
- WatchScheduler: Periodically checks every watched table and resyncs changes
- WatcherStatus: Snapshot of the scheduler for status displays

Architecture:
    APScheduler interval job → run_pass() → for each record (sequential):
        ChangeDetector.check → NotificationPolicy.resolve → ResyncPipeline.resync

Only one pass runs at a time. A tick that arrives while a pass is running
is dropped, not queued. stop() prevents future ticks but lets the running
pass (and any running download) finish.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from tablewatch.client import notifications
from tablewatch.client.watch.policy import Action
from tablewatch.client.watch.types import (
    CheckFailed,
    FatalFailure,
    PassReport,
    TransientFailure,
    Unchanged,
)
from tablewatch.core.types import SchedulerState

if TYPE_CHECKING:
    from tablewatch.client.activity import ActivityLog
    from tablewatch.client.registry import WatchRecord, WatchRegistry
    from tablewatch.client.ui import UserInterface
    from tablewatch.client.watch.detector import ChangeDetector
    from tablewatch.client.watch.pipeline import ResyncPipeline
    from tablewatch.client.watch.policy import NotificationPolicy

logger = logging.getLogger(__name__)

# Delay between records within a pass, to keep the API request rate low
DEFAULT_RECORD_DELAY = 0.5
# Delay before the first pass after start()
DEFAULT_INITIAL_DELAY = 2.0


@dataclass
class WatcherStatus:
    """Current status of the watcher."""

    is_running: bool
    watched_count: int
    is_checking: bool


class WatchScheduler:
    """Runs watch passes on a recurring timer.

    Usage:
        scheduler = WatchScheduler(registry, detector, pipeline, policy)
        scheduler.start(interval=300, auto_resync_enabled=False)
        ...
        scheduler.stop()
    """

    def __init__(
        self,
        registry: WatchRegistry,
        detector: ChangeDetector,
        pipeline: ResyncPipeline,
        policy: NotificationPolicy,
        ui: UserInterface | None = None,
        activity: ActivityLog | None = None,
        record_delay: float = DEFAULT_RECORD_DELAY,
        initial_delay: float = DEFAULT_INITIAL_DELAY,
        transient_escalation_threshold: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Initialize the scheduler.

        Args:
            registry: Watch records to sweep.
            detector: Change detector.
            pipeline: Resync pipeline.
            policy: Auto-resync / prompt policy.
            ui: UI for notices (optional).
            activity: Activity log for check failures (optional).
            record_delay: Seconds to wait between records.
            initial_delay: Seconds from start() to the first pass.
            transient_escalation_threshold: Warn after this many consecutive
                transient failures of one table; None retries silently forever.
            sleep: Sleep function (tests pass a no-op).
        """
        self._registry = registry
        self._detector = detector
        self._pipeline = pipeline
        self._policy = policy
        self._ui = ui
        self._activity = activity
        self._record_delay = record_delay
        self._initial_delay = initial_delay
        self._escalation_threshold = transient_escalation_threshold
        self._sleep = sleep

        self._state = SchedulerState.STOPPED
        self._state_lock = threading.RLock()
        self._pass_lock = threading.Lock()
        self._scheduler: BackgroundScheduler | None = None

        # (project_id, resource_id) -> consecutive transient failures
        self._transient_counts: dict[tuple[str, str], int] = {}

        self.passes_completed = 0
        self.ticks_dropped = 0
        self.last_report: PassReport | None = None

    @property
    def state(self) -> SchedulerState:
        """Get current scheduler state."""
        return self._state

    @property
    def is_checking(self) -> bool:
        """Whether a pass is in flight (also true after stop() until it ends)."""
        return self._pass_lock.locked()

    def status(self) -> WatcherStatus:
        """Get a status snapshot."""
        return WatcherStatus(
            is_running=self._scheduler is not None,
            watched_count=self._registry.count(),
            is_checking=self.is_checking,
        )

    # === Lifecycle ===

    def start(self, interval: float, auto_resync_enabled: bool = False) -> None:
        """Arm the timer and schedule an initial pass.

        Any previously started timer is stopped first.

        Args:
            interval: Seconds between passes.
            auto_resync_enabled: Re-download changes without asking.
        """
        with self._state_lock:
            self.stop()
            self._policy.auto_resync_enabled = auto_resync_enabled

            scheduler = BackgroundScheduler()
            scheduler.add_job(
                self.run_pass,
                trigger=IntervalTrigger(seconds=interval),
                id="watch_pass",
                name="Watched tables check",
                max_instances=1,
                coalesce=True,
                replace_existing=True,
            )
            scheduler.add_job(
                self.run_pass,
                trigger=DateTrigger(
                    run_date=datetime.now(timezone.utc) + timedelta(seconds=self._initial_delay)
                ),
                id="initial_watch_pass",
                name="Initial watched tables check",
                misfire_grace_time=None,
            )
            scheduler.start()

            self._scheduler = scheduler
            self._state = SchedulerState.IDLE

        logger.info(
            "Table watcher started (interval: %ss, auto-download: %s)",
            interval,
            auto_resync_enabled,
        )

    def stop(self) -> None:
        """Disarm the timer. A pass already running is not interrupted."""
        with self._state_lock:
            if self._scheduler is None:
                return
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            self._state = SchedulerState.STOPPED
        logger.info("Table watcher stopped")

    # === Passes ===

    def run_pass(self) -> PassReport | None:
        """Check every watched table once.

        Returns:
            The pass report, or None if another pass was already running.
        """
        if not self._pass_lock.acquire(blocking=False):
            self.ticks_dropped += 1
            logger.debug("Check already in progress, skipping")
            return None

        try:
            with self._state_lock:
                self._state = SchedulerState.RUNNING
            report = self._sweep()
            self.passes_completed += 1
            self.last_report = report
            return report
        finally:
            with self._state_lock:
                if self._scheduler is not None:
                    self._state = SchedulerState.IDLE
                else:
                    self._state = SchedulerState.STOPPED
            self._pass_lock.release()

    def _sweep(self) -> PassReport:
        report = PassReport()
        records = self._registry.list_all()
        if not records:
            logger.debug("No tables to watch")
            return report

        logger.info("Checking %d watched tables", len(records))
        for index, record in enumerate(records):
            if index:
                self._sleep(self._record_delay)
            try:
                self._process(record, report)
            except Exception as e:
                report.failed += 1
                logger.exception("Error checking %s", record.resource_id)
                self._log(f"ERROR {record.resource_id}: {e}")

        logger.info("Watch pass finished: %s", report)
        return report

    def _process(self, record: WatchRecord, report: PassReport) -> None:
        report.checked += 1
        check = self._detector.check(record)

        if isinstance(check, Unchanged):
            report.unchanged += 1
            self._transient_counts.pop(record.key, None)
            return

        if isinstance(check, CheckFailed):
            report.failed += 1
            if check.error_kind.is_transient:
                logger.info(
                    "Could not check %s (%s), will retry next interval",
                    record.resource_id,
                    check.error_kind.value,
                )
            self._log(f"CHECK-FAILED {record.resource_id} {check.error_kind.value}: {check.message}")
            self._note_transient(record)
            return

        report.changed += 1
        logger.info("Table %s has been updated", record.resource_id)
        self._log(f"CHANGED {record.resource_id} {record.last_signal or '-'} -> {check.new_signal}")

        action = self._policy.resolve(record, check)
        if action != Action.AUTO_RESYNC:
            report.dismissed += 1
            return

        outcome = self._pipeline.resync(record, expected_signal=check.new_signal)

        if isinstance(outcome, FatalFailure) and self._policy.auto_resync_enabled:
            # Automatic download failed: fall back to asking the user
            self._transient_counts.pop(record.key, None)
            if self._policy.prompt(record) == Action.AUTO_RESYNC:
                outcome = self._pipeline.resync(record, expected_signal=check.new_signal)

        if outcome.ok:
            report.resynced += 1
            self._transient_counts.pop(record.key, None)
            if self._policy.auto_resync_enabled and self._ui is not None:
                self._ui.notify(notifications.resync_complete(record.display_name, record.local_path))
        else:
            report.failed += 1
            if isinstance(outcome, TransientFailure):
                self._note_transient(record)
            else:
                self._transient_counts.pop(record.key, None)

    def _note_transient(self, record: WatchRecord) -> None:
        """Count a transient failure and escalate once the threshold is hit."""
        count = self._transient_counts.get(record.key, 0) + 1
        self._transient_counts[record.key] = count
        if self._escalation_threshold is None or count != self._escalation_threshold:
            return
        logger.warning("%s failed %d consecutive checks", record.resource_id, count)
        if self._ui is not None:
            self._ui.notify(notifications.check_failing(record.display_name, count))

    def _log(self, line: str) -> None:
        if self._activity is not None:
            self._activity.append(line)
