"""Decide what happens when a watched table changes.

With auto-resync enabled, changed tables are re-downloaded right away;
otherwise the user is asked to download now, open the existing file, or
dismiss. A dismissed change is not remembered: the next detected change
prompts again.

Decision table:
    | auto_resync | User choice | Action      |
    |-------------|-------------|-------------|
    | True        | (not asked) | AUTO_RESYNC |
    | False       | RESYNC_NOW  | AUTO_RESYNC |
    | False       | OPEN_FILE   | OPEN_FILE   |
    | False       | DISMISS     | DISMISS     |
"""

from __future__ import annotations

import logging
import subprocess
from enum import Enum, auto
from pathlib import Path
from typing import TYPE_CHECKING

from tablewatch.client.ui import PromptChoice, open_file

if TYPE_CHECKING:
    from collections.abc import Callable

    from tablewatch.client.registry import WatchRecord
    from tablewatch.client.ui import UserInterface
    from tablewatch.client.watch.types import CheckResult

logger = logging.getLogger(__name__)


class Action(Enum):
    """What to do about a detected change."""

    AUTO_RESYNC = auto()
    PROMPT_USER = auto()
    OPEN_FILE = auto()
    DISMISS = auto()


_CHOICE_ACTIONS = {
    PromptChoice.RESYNC_NOW: Action.AUTO_RESYNC,
    PromptChoice.OPEN_FILE: Action.OPEN_FILE,
    PromptChoice.DISMISS: Action.DISMISS,
}


class NotificationPolicy:
    """Chooses between automatic resync and asking the user."""

    def __init__(
        self,
        ui: UserInterface,
        auto_resync_enabled: bool = False,
        opener: Callable[[Path], None] = open_file,
    ) -> None:
        self._ui = ui
        self.auto_resync_enabled = auto_resync_enabled
        self._opener = opener

    def decide(self, record: WatchRecord, check: CheckResult | None = None) -> Action:
        """Pick AUTO_RESYNC or PROMPT_USER for a changed record."""
        if self.auto_resync_enabled:
            return Action.AUTO_RESYNC
        return Action.PROMPT_USER

    def prompt(self, record: WatchRecord) -> Action:
        """Ask the user and carry out OPEN_FILE.

        Returns:
            AUTO_RESYNC, OPEN_FILE or DISMISS.
        """
        message = f"Table \"{record.display_name}\" has been updated in Keboola"
        choice = self._ui.prompt_user(record.resource_id, message)
        action = _CHOICE_ACTIONS[choice]
        logger.debug("User chose %s for %s", choice.value, record.resource_id)

        if action == Action.OPEN_FILE:
            self.open(record)
        return action

    def resolve(self, record: WatchRecord, check: CheckResult | None = None) -> Action:
        """Decide, prompting the user when needed.

        Returns:
            AUTO_RESYNC, OPEN_FILE or DISMISS.
        """
        action = self.decide(record, check)
        if action == Action.PROMPT_USER:
            return self.prompt(record)
        return action

    def open(self, record: WatchRecord) -> bool:
        """Open the record's local file.

        Returns:
            True if the file was opened.
        """
        try:
            self._opener(Path(record.local_path))
        except (OSError, subprocess.CalledProcessError) as e:
            logger.warning("Could not open %s: %s", record.local_path, e)
            return False
        return True
