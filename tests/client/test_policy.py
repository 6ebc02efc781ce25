"""Tests for the notification policy."""

import subprocess
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from tablewatch.client.registry import WatchRecord
from tablewatch.client.ui import PromptChoice
from tablewatch.client.watch import Action, ChangedPendingResync, NotificationPolicy


def make_record() -> WatchRecord:
    return WatchRecord(
        project_id="p1",
        resource_id="in.c-main.customers",
        local_path="/data/customers.csv",
        last_signal="2024-01-01T00:00:00Z",
    )


CHANGE = ChangedPendingResync("2024-01-02T00:00:00Z")


class TestDecide:
    """Tests for NotificationPolicy.decide."""

    def test_auto(self) -> None:
        policy = NotificationPolicy(MagicMock(), auto_resync_enabled=True)
        assert policy.decide(make_record(), CHANGE) == Action.AUTO_RESYNC

    def test_prompt(self) -> None:
        policy = NotificationPolicy(MagicMock(), auto_resync_enabled=False)
        assert policy.decide(make_record(), CHANGE) == Action.PROMPT_USER

    def test_flag_can_change(self) -> None:
        """The scheduler toggles the flag on start()."""
        policy = NotificationPolicy(MagicMock())
        policy.auto_resync_enabled = True
        assert policy.decide(make_record()) == Action.AUTO_RESYNC


class TestResolve:
    """Tests for NotificationPolicy.resolve."""

    def test_auto_does_not_prompt(self) -> None:
        ui = MagicMock()
        policy = NotificationPolicy(ui, auto_resync_enabled=True)

        assert policy.resolve(make_record(), CHANGE) == Action.AUTO_RESYNC
        ui.prompt_user.assert_not_called()

    @pytest.mark.parametrize(
        ("choice", "action"),
        [
            (PromptChoice.RESYNC_NOW, Action.AUTO_RESYNC),
            (PromptChoice.OPEN_FILE, Action.OPEN_FILE),
            (PromptChoice.DISMISS, Action.DISMISS),
        ],
    )
    def test_user_choice(self, choice: PromptChoice, action: Action) -> None:
        ui = MagicMock()
        ui.prompt_user.return_value = choice
        policy = NotificationPolicy(ui, opener=MagicMock())

        assert policy.resolve(make_record(), CHANGE) == action

    def test_prompt_message(self) -> None:
        ui = MagicMock()
        ui.prompt_user.return_value = PromptChoice.DISMISS
        policy = NotificationPolicy(ui)

        policy.resolve(make_record(), CHANGE)

        ui.prompt_user.assert_called_once_with(
            "in.c-main.customers", 'Table "customers" has been updated in Keboola'
        )

    def test_open_file_uses_opener(self) -> None:
        ui = MagicMock()
        ui.prompt_user.return_value = PromptChoice.OPEN_FILE
        opener = MagicMock()
        policy = NotificationPolicy(ui, opener=opener)

        policy.resolve(make_record(), CHANGE)

        opener.assert_called_once_with(Path("/data/customers.csv"))

    def test_dismiss_prompts_again_next_time(self) -> None:
        """A dismissal is not remembered."""
        ui = MagicMock()
        ui.prompt_user.return_value = PromptChoice.DISMISS
        policy = NotificationPolicy(ui)

        policy.resolve(make_record(), CHANGE)
        policy.resolve(make_record(), CHANGE)

        assert ui.prompt_user.call_count == 2


class TestOpen:
    """Tests for NotificationPolicy.open."""

    def test_missing_file(self) -> None:
        policy = NotificationPolicy(MagicMock(), opener=MagicMock(side_effect=FileNotFoundError("gone")))
        assert policy.open(make_record()) is False

    def test_opener_command_fails(self) -> None:
        error = subprocess.CalledProcessError(1, ["xdg-open"])
        policy = NotificationPolicy(MagicMock(), opener=MagicMock(side_effect=error))
        assert policy.open(make_record()) is False

    def test_success(self) -> None:
        policy = NotificationPolicy(MagicMock(), opener=MagicMock())
        assert policy.open(make_record()) is True
