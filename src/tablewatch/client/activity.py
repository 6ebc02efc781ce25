"""Append-only activity log for watch outcomes.

Every classified outcome (success or failure) is written here as one
timestamped line, so operational history survives independently of the
watch registry.
"""

from __future__ import annotations

import logging
from pathlib import Path

ACTIVITY_FORMAT = "%(asctime)s %(message)s"
ACTIVITY_LOGGER = "tablewatch.activity"

logger = logging.getLogger(__name__)


class ActivityLog:
    """Line-oriented file sink built on a FileHandler owned by the instance.

    Records go straight to the handler and never through the logging
    manager, so instances do not register loggers or share handlers.
    """

    def __init__(self, path: Path, echo: bool = False) -> None:
        """Open the log file for appending.

        Args:
            path: Log file path (parent directories are created).
            echo: Also emit each line to the module logger at INFO level.
        """
        self._path = Path(path)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._echo = echo

        self._handler = logging.FileHandler(self._path, encoding="utf-8")
        self._handler.setFormatter(logging.Formatter(ACTIVITY_FORMAT))

    @property
    def path(self) -> Path:
        return self._path

    def append(self, line: str) -> None:
        """Append one line to the log."""
        record = logging.LogRecord(
            name=ACTIVITY_LOGGER,
            level=logging.INFO,
            pathname=__file__,
            lineno=0,
            msg="%s",
            args=(line,),
            exc_info=None,
        )
        self._handler.handle(record)
        if self._echo:
            logger.info("%s", line)

    def read_lines(self) -> list[str]:
        """Read all lines written so far."""
        self._handler.flush()
        if not self._path.exists():
            return []
        return self._path.read_text(encoding="utf-8").splitlines()

    def close(self) -> None:
        """Close the file handler."""
        self._handler.close()
