"""Desktop notifications for table watch events.

This module provides:
- Native OS notifications (macOS notification center, Linux notify-send,
  Windows through plyer when installed)
- Builders for the watch events users care about
"""

from __future__ import annotations

import logging
import platform
import subprocess
from dataclasses import dataclass
from enum import Enum, auto

logger = logging.getLogger(__name__)

APP_NAME = "tablewatch"


class NotificationType(Enum):
    """Type of notification."""

    INFO = auto()
    WARNING = auto()
    ERROR = auto()


@dataclass
class Notification:
    """Represents a notification to display."""

    title: str
    message: str
    type: NotificationType = NotificationType.INFO


def _notify_plyer(notification: Notification) -> bool:
    """Send notification through plyer (used on Windows)."""
    try:
        from plyer import notification as plyer_notif  # type: ignore[import-not-found]
    except ImportError:
        logger.debug("plyer not installed, skipping notification")
        return False

    try:
        plyer_notif.notify(
            title=notification.title,
            message=notification.message,
            app_name=APP_NAME,
            timeout=10,
        )
        return True
    except Exception as e:
        logger.debug(f"plyer notification failed: {e}")
        return False


def _notify_macos(notification: Notification) -> bool:
    """Send notification on macOS using osascript."""
    title = notification.title.replace('"', '\\"')
    message = notification.message.replace('"', '\\"')
    try:
        subprocess.run(
            ["osascript", "-e", f'display notification "{message}" with title "{title}"'],
            capture_output=True,
            check=True,
        )
        return True
    except (OSError, subprocess.CalledProcessError) as e:
        logger.debug(f"macOS notification failed: {e}")
        return False


def _notify_linux(notification: Notification) -> bool:
    """Send notification on Linux using notify-send."""
    urgency = "critical" if notification.type == NotificationType.ERROR else "normal"
    try:
        subprocess.run(
            [
                "notify-send",
                "--urgency", urgency,
                "--app-name", APP_NAME,
                notification.title,
                notification.message,
            ],
            capture_output=True,
            check=True,
        )
        return True
    except FileNotFoundError:
        logger.debug("notify-send not found")
        return False
    except (OSError, subprocess.CalledProcessError) as e:
        logger.debug(f"Linux notification failed: {e}")
        return False


def send_notification(notification: Notification) -> bool:
    """Send a system notification.

    Args:
        notification: The notification to send.

    Returns:
        True if notification was sent, False if failed or unavailable.
    """
    system = platform.system()

    if system == "Windows":
        return _notify_plyer(notification)
    elif system == "Darwin":
        return _notify_macos(notification)
    elif system == "Linux":
        return _notify_linux(notification)
    else:
        logger.warning(f"Notifications not supported on {system}")
        return False


def table_updated(table_name: str) -> Notification:
    """A watched table changed remotely."""
    return Notification(
        title="tablewatch - Table Updated",
        message=f"Table '{table_name}' has been updated in Keboola",
    )


def resync_complete(table_name: str, path: str) -> Notification:
    """A table was re-downloaded."""
    return Notification(
        title="tablewatch - Table Re-downloaded",
        message=f"Table '{table_name}' updated and re-downloaded to {path}",
    )


def empty_table(table_name: str, path: str) -> Notification:
    """Informational note for the empty-table workaround."""
    return Notification(
        title="tablewatch - Empty Table",
        message=f"Table '{table_name}' has no rows; wrote an empty file to {path}",
    )


def resync_failed(table_name: str, message: str) -> Notification:
    """A download failed; carries the tool's message."""
    return Notification(
        title="tablewatch - Download Failed",
        message=f"Failed to download '{table_name}': {message}",
        type=NotificationType.ERROR,
    )


def check_failing(table_name: str, failures: int) -> Notification:
    """A table has failed transiently many times in a row."""
    return Notification(
        title="tablewatch - Table Check Failing",
        message=f"'{table_name}' has failed {failures} consecutive checks",
        type=NotificationType.WARNING,
    )
