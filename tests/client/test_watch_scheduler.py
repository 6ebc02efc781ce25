"""Tests for the watch scheduler."""

from __future__ import annotations

import threading
import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from tablewatch.client.notifications import NotificationType
from tablewatch.client.registry import WatchRecord, WatchRegistry
from tablewatch.client.ui import PromptChoice
from tablewatch.client.watch import (
    ChangedPendingResync,
    CheckFailed,
    FatalFailure,
    NotificationPolicy,
    Success,
    TransientFailure,
    Unchanged,
    WatchScheduler,
)
from tablewatch.core.types import ErrorKind, SchedulerState

NEW_SIGNAL = "2024-01-02T00:00:00Z"


def make_record(resource_id: str = "in.c-main.customers") -> WatchRecord:
    return WatchRecord(
        project_id="p1",
        resource_id=resource_id,
        local_path=f"/data/{resource_id}.csv",
        last_signal="2024-01-01T00:00:00Z",
    )


@pytest.fixture
def registry(tmp_path: Path):  # type: ignore[no-untyped-def]
    reg = WatchRegistry(tmp_path / "watch.db")
    yield reg
    reg.close()


class Harness:
    """Scheduler wired to mocked collaborators."""

    def __init__(self, registry: WatchRegistry, auto: bool = False, threshold: int | None = None) -> None:
        self.registry = registry
        self.detector = MagicMock()
        self.detector.check.return_value = Unchanged("2024-01-01T00:00:00Z")
        self.pipeline = MagicMock()
        self.pipeline.resync.return_value = Success(NEW_SIGNAL)
        self.ui = MagicMock()
        self.ui.prompt_user.return_value = PromptChoice.DISMISS
        self.policy = NotificationPolicy(self.ui, auto_resync_enabled=auto, opener=MagicMock())
        self.sleep = MagicMock()
        self.scheduler = WatchScheduler(
            registry,
            self.detector,
            self.pipeline,
            self.policy,
            ui=self.ui,
            transient_escalation_threshold=threshold,
            sleep=self.sleep,
        )


class TestRunPass:
    """Tests for WatchScheduler.run_pass."""

    def test_no_records(self, registry: WatchRegistry) -> None:
        h = Harness(registry)

        report = h.scheduler.run_pass()

        assert report is not None
        assert report.checked == 0
        h.detector.check.assert_not_called()

    def test_unchanged(self, registry: WatchRegistry) -> None:
        registry.upsert(make_record("in.c-main.a"))
        registry.upsert(make_record("in.c-main.b"))
        h = Harness(registry)

        report = h.scheduler.run_pass()

        assert report is not None
        assert report.checked == 2
        assert report.unchanged == 2
        h.pipeline.resync.assert_not_called()
        assert h.scheduler.passes_completed == 1
        assert h.scheduler.last_report is report

    def test_records_processed_in_order_with_delay(self, registry: WatchRegistry) -> None:
        for name in ("in.c-main.a", "in.c-main.b", "in.c-main.c"):
            registry.upsert(make_record(name))
        h = Harness(registry)

        h.scheduler.run_pass()

        checked = [c.args[0].resource_id for c in h.detector.check.call_args_list]
        assert checked == ["in.c-main.a", "in.c-main.b", "in.c-main.c"]
        assert h.sleep.call_count == 2
        h.sleep.assert_called_with(0.5)

    def test_changed_auto_resync(self, registry: WatchRegistry) -> None:
        record = make_record()
        registry.upsert(record)
        h = Harness(registry, auto=True)
        h.detector.check.return_value = ChangedPendingResync(NEW_SIGNAL)

        report = h.scheduler.run_pass()

        assert report is not None
        assert report.changed == 1
        assert report.resynced == 1
        h.pipeline.resync.assert_called_once_with(record, expected_signal=NEW_SIGNAL)
        h.ui.prompt_user.assert_not_called()
        notification = h.ui.notify.call_args[0][0]
        assert "re-downloaded" in notification.message

    def test_changed_prompt_resync_now(self, registry: WatchRegistry) -> None:
        registry.upsert(make_record())
        h = Harness(registry)
        h.detector.check.return_value = ChangedPendingResync(NEW_SIGNAL)
        h.ui.prompt_user.return_value = PromptChoice.RESYNC_NOW

        report = h.scheduler.run_pass()

        assert report is not None
        assert report.resynced == 1
        h.pipeline.resync.assert_called_once()
        h.ui.notify.assert_not_called()

    def test_changed_prompt_dismiss(self, registry: WatchRegistry) -> None:
        registry.upsert(make_record())
        h = Harness(registry)
        h.detector.check.return_value = ChangedPendingResync(NEW_SIGNAL)

        report = h.scheduler.run_pass()

        assert report is not None
        assert report.dismissed == 1
        h.pipeline.resync.assert_not_called()

    def test_check_failed_is_counted(self, registry: WatchRegistry) -> None:
        registry.upsert(make_record())
        h = Harness(registry)
        h.detector.check.return_value = CheckFailed(ErrorKind.RATE_LIMITED, "429")

        report = h.scheduler.run_pass()

        assert report is not None
        assert report.failed == 1
        h.ui.notify.assert_not_called()

    def test_failure_isolated(self, registry: WatchRegistry) -> None:
        """An exception on one record does not stop the pass."""
        registry.upsert(make_record("in.c-main.a"))
        registry.upsert(make_record("in.c-main.b"))
        h = Harness(registry)
        h.detector.check.side_effect = [RuntimeError("boom"), Unchanged("x")]

        report = h.scheduler.run_pass()

        assert report is not None
        assert report.failed == 1
        assert report.unchanged == 1
        assert h.detector.check.call_count == 2

    def test_auto_fatal_falls_back_to_prompt(self, registry: WatchRegistry) -> None:
        """A failed automatic download asks the user, who can retry."""
        registry.upsert(make_record())
        h = Harness(registry, auto=True)
        h.detector.check.return_value = ChangedPendingResync(NEW_SIGNAL)
        h.pipeline.resync.side_effect = [
            FatalFailure(ErrorKind.FATAL_FAILURE, "boom"),
            Success(NEW_SIGNAL),
        ]
        h.ui.prompt_user.return_value = PromptChoice.RESYNC_NOW

        report = h.scheduler.run_pass()

        assert report is not None
        assert report.resynced == 1
        assert h.pipeline.resync.call_count == 2
        h.ui.prompt_user.assert_called_once()

    def test_auto_fatal_dismissed(self, registry: WatchRegistry) -> None:
        registry.upsert(make_record())
        h = Harness(registry, auto=True)
        h.detector.check.return_value = ChangedPendingResync(NEW_SIGNAL)
        h.pipeline.resync.return_value = FatalFailure(ErrorKind.FATAL_FAILURE, "boom")

        report = h.scheduler.run_pass()

        assert report is not None
        assert report.failed == 1
        assert h.pipeline.resync.call_count == 1

    def test_transient_resync_does_not_prompt(self, registry: WatchRegistry) -> None:
        registry.upsert(make_record())
        h = Harness(registry, auto=True)
        h.detector.check.return_value = ChangedPendingResync(NEW_SIGNAL)
        h.pipeline.resync.return_value = TransientFailure(ErrorKind.RATE_LIMITED, "429")

        report = h.scheduler.run_pass()

        assert report is not None
        assert report.failed == 1
        h.ui.prompt_user.assert_not_called()

    def test_overlapping_pass_dropped(self, registry: WatchRegistry) -> None:
        """A tick while a pass runs is dropped, not queued."""
        registry.upsert(make_record())
        h = Harness(registry)
        entered = threading.Event()
        release = threading.Event()

        def slow_check(record: WatchRecord) -> Unchanged:
            entered.set()
            release.wait(5)
            return Unchanged(record.last_signal)

        h.detector.check.side_effect = slow_check
        worker = threading.Thread(target=h.scheduler.run_pass)
        worker.start()
        assert entered.wait(5)

        assert h.scheduler.is_checking
        assert h.scheduler.state == SchedulerState.RUNNING
        assert h.scheduler.run_pass() is None
        assert h.scheduler.ticks_dropped == 1

        release.set()
        worker.join(5)
        assert h.scheduler.passes_completed == 1
        assert h.detector.check.call_count == 1
        assert not h.scheduler.is_checking


class TestEscalation:
    """Tests for consecutive transient failure escalation."""

    def test_silent_by_default(self, registry: WatchRegistry) -> None:
        registry.upsert(make_record())
        h = Harness(registry)
        h.detector.check.return_value = CheckFailed(ErrorKind.TRANSIENT_SERVER_ERROR, "502")

        for _ in range(10):
            h.scheduler.run_pass()

        h.ui.notify.assert_not_called()

    def test_warns_once_at_threshold(self, registry: WatchRegistry) -> None:
        registry.upsert(make_record())
        h = Harness(registry, threshold=3)
        h.detector.check.return_value = CheckFailed(ErrorKind.TRANSIENT_SERVER_ERROR, "502")

        for _ in range(5):
            h.scheduler.run_pass()

        assert h.ui.notify.call_count == 1
        notification = h.ui.notify.call_args[0][0]
        assert notification.type == NotificationType.WARNING
        assert "3 consecutive" in notification.message

    def test_success_resets_count(self, registry: WatchRegistry) -> None:
        registry.upsert(make_record())
        h = Harness(registry, threshold=2)
        failed = CheckFailed(ErrorKind.RATE_LIMITED, "429")
        h.detector.check.side_effect = [failed, Unchanged("x"), failed, Unchanged("x")]

        for _ in range(4):
            h.scheduler.run_pass()

        h.ui.notify.assert_not_called()


class TestLifecycle:
    """Tests for start/stop."""

    def test_initial_state(self, registry: WatchRegistry) -> None:
        h = Harness(registry)
        assert h.scheduler.state == SchedulerState.STOPPED
        status = h.scheduler.status()
        assert status.is_running is False
        assert status.is_checking is False

    def test_start_runs_initial_pass(self, registry: WatchRegistry) -> None:
        registry.upsert(make_record())
        h = Harness(registry)
        h.scheduler = WatchScheduler(
            registry, h.detector, h.pipeline, h.policy, initial_delay=0.05, sleep=h.sleep
        )

        h.scheduler.start(interval=3600, auto_resync_enabled=True)
        try:
            assert h.policy.auto_resync_enabled is True
            status = h.scheduler.status()
            assert status.is_running is True
            assert status.watched_count == 1

            deadline = time.monotonic() + 5
            while h.scheduler.passes_completed == 0 and time.monotonic() < deadline:
                time.sleep(0.02)
            assert h.scheduler.passes_completed == 1
        finally:
            h.scheduler.stop()

        assert h.scheduler.state == SchedulerState.STOPPED
        assert h.scheduler.status().is_running is False

    def test_stop_when_stopped(self, registry: WatchRegistry) -> None:
        h = Harness(registry)
        h.scheduler.stop()
        assert h.scheduler.state == SchedulerState.STOPPED

    def test_restart(self, registry: WatchRegistry) -> None:
        """start() on a running scheduler replaces the timer."""
        h = Harness(registry)
        h.scheduler.start(interval=3600)
        h.scheduler.start(interval=1800, auto_resync_enabled=False)
        try:
            assert h.scheduler.state in (SchedulerState.IDLE, SchedulerState.RUNNING)
        finally:
            h.scheduler.stop()

    def test_stop_lets_running_pass_finish(self, registry: WatchRegistry) -> None:
        """stop() during a pass does not interrupt it, and no tick follows."""
        registry.upsert(make_record())
        h = Harness(registry)
        entered = threading.Event()
        release = threading.Event()

        def slow_check(record: WatchRecord) -> Unchanged:
            entered.set()
            release.wait(5)
            return Unchanged(record.last_signal)

        h.detector.check.side_effect = slow_check
        scheduler = WatchScheduler(
            registry, h.detector, h.pipeline, h.policy, initial_delay=0.01, sleep=h.sleep
        )
        scheduler.start(interval=1)
        assert entered.wait(5)
        assert scheduler.state == SchedulerState.RUNNING

        scheduler.stop()
        assert scheduler.is_checking
        release.set()

        deadline = time.monotonic() + 5
        while scheduler.is_checking and time.monotonic() < deadline:
            time.sleep(0.02)
        assert scheduler.passes_completed == 1
        assert scheduler.last_report is not None
        assert scheduler.last_report.unchanged == 1
        assert scheduler.state == SchedulerState.STOPPED

        time.sleep(1.5)
        assert scheduler.passes_completed == 1
        assert h.detector.check.call_count == 1
