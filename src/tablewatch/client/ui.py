"""User interface boundary for the watch engine.

This module provides:
- PromptChoice: The user's answer to a "table updated" prompt
- UserInterface: Protocol the engine talks to
- ConsoleUI: click-based implementation with desktop notifications
- open_file: Open a downloaded file with the system's default application
"""

from __future__ import annotations

import logging
import os
import platform
import subprocess
import threading
from enum import Enum
from pathlib import Path
from typing import Protocol

import click

from tablewatch.client.notifications import (
    Notification,
    NotificationType,
    send_notification,
    table_updated,
)

logger = logging.getLogger(__name__)


class PromptChoice(Enum):
    """Answer to a "table updated" prompt."""

    RESYNC_NOW = "resync"
    OPEN_FILE = "open"
    DISMISS = "dismiss"


class UserInterface(Protocol):
    """Protocol for the UI collaborator."""

    def prompt_user(self, resource_id: str, message: str) -> PromptChoice:
        """Ask the user what to do about a changed table."""
        ...

    def show_progress(self, text: str) -> None:
        """Show one line of download progress (fire-and-forget)."""
        ...

    def notify(self, notification: Notification) -> None:
        """Show a non-blocking notification."""
        ...


def open_file(file_path: Path) -> None:
    """Open a file with the system's default application.

    Raises:
        FileNotFoundError: If file doesn't exist
        OSError: If file cannot be opened
    """
    if not file_path.exists():
        raise FileNotFoundError(f"File not found: {file_path}")

    system = platform.system()

    if system == "Windows":
        os.startfile(str(file_path))  # type: ignore[attr-defined]
    elif system == "Darwin":
        subprocess.run(["open", str(file_path)], check=True)
    else:
        subprocess.run(["xdg-open", str(file_path)], check=True)


class ConsoleUI:
    """Terminal UI built on click.

    Prompts are serialized so that output from the scheduler thread does
    not interleave with a pending question. In non-interactive mode every
    prompt is answered with DISMISS after a desktop notification.
    """

    def __init__(
        self,
        interactive: bool = True,
        desktop_notifications: bool = True,
        show_progress: bool = True,
    ) -> None:
        self._interactive = interactive
        self._desktop = desktop_notifications
        self._show_progress = show_progress
        self._lock = threading.Lock()

    def prompt_user(self, resource_id: str, message: str) -> PromptChoice:
        if not self._interactive:
            click.echo(message)
            if self._desktop:
                send_notification(table_updated(resource_id.split(".")[-1]))
            return PromptChoice.DISMISS

        with self._lock:
            click.echo(click.style(message, fg="cyan"))
            answer = click.prompt(
                "Download now, open the existing file, or dismiss?",
                type=click.Choice([c.value for c in PromptChoice]),
                default=PromptChoice.DISMISS.value,
            )
        return PromptChoice(answer)

    def show_progress(self, text: str) -> None:
        if self._show_progress:
            click.echo(f"  {text}")

    def notify(self, notification: Notification) -> None:
        color = {
            NotificationType.INFO: "green",
            NotificationType.WARNING: "yellow",
            NotificationType.ERROR: "red",
        }[notification.type]
        is_error = notification.type == NotificationType.ERROR
        click.echo(click.style(notification.message, fg=color), err=is_error)
        if self._desktop:
            send_notification(notification)
