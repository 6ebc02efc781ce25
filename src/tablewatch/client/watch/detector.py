"""Change detection for watched tables.

Compares a record's stored lastImportDate with the one reported by the
Storage API. Every failure is returned as CheckFailed; nothing raises.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tablewatch.client.api import APIError
from tablewatch.client.watch.signatures import classify_status_code
from tablewatch.client.watch.types import (
    ChangedPendingResync,
    CheckFailed,
    CheckResult,
    Unchanged,
)
from tablewatch.core.types import ErrorKind

if TYPE_CHECKING:
    from tablewatch.client.api import MetadataSource
    from tablewatch.client.registry import WatchRecord

logger = logging.getLogger(__name__)


class ChangeDetector:
    """Decides whether a watched table needs a resync."""

    def __init__(self, metadata: MetadataSource) -> None:
        self._metadata = metadata

    def check(self, record: WatchRecord) -> CheckResult:
        """Check one record against the remote freshness signal.

        An empty remote signal means "cannot determine", never "unchanged".

        Args:
            record: The watch record to check.

        Returns:
            Unchanged, ChangedPendingResync or CheckFailed.
        """
        try:
            current = self._metadata.get_freshness_signal(record.resource_id)
        except APIError as e:
            kind = classify_status_code(e.status_code)
            logger.debug("Check failed for %s (%s): %s", record.resource_id, kind.value, e)
            return CheckFailed(kind, str(e))
        except Exception as e:
            logger.debug("Check failed for %s: %s", record.resource_id, e)
            return CheckFailed(ErrorKind.SIGNAL_UNAVAILABLE, str(e))

        logger.debug(
            "Checking %s: stored=%s, current=%s",
            record.resource_id,
            record.last_signal,
            current,
        )

        if not current:
            return CheckFailed(ErrorKind.SIGNAL_UNAVAILABLE, "No lastImportDate reported")
        if current != record.last_signal:
            return ChangedPendingResync(current)
        return Unchanged(current)
