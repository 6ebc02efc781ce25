"""Persistent registry of watched tables.

This module provides:
- WatchRecord: A downloaded table and the parameters used to download it
- WatchRegistry: SQLite-backed store of watch records, mirrored in memory

Architecture:
    Records are kept as one JSON list under a single key of a key-value
    table. Reads re-load the list and writes rewrite it inside a
    BEGIN IMMEDIATE transaction, so processes sharing the database see
    each other's changes and never write back a stale copy.
    Identity is (project_id, resource_id); list order is insertion order.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from tablewatch.core.types import ErrorKind

logger = logging.getLogger(__name__)

RECORDS_KEY = "watch.records"


class InvalidRecordError(ValueError):
    """A watch record violates the registry invariants."""

    kind = ErrorKind.INVALID_RECORD


@dataclass(frozen=True)
class WatchRecord:
    """A downloaded table tracked for changes.

    Attributes:
        project_id: Project the table belongs to.
        resource_id: Full table ID (e.g., "in.c-main.customers").
        local_path: File the table was downloaded to.
        last_signal: Table's lastImportDate at the last successful download.
        row_limit: Row limit used (0 = unlimited).
        include_headers: Whether the file carries a header row.
    """

    project_id: str
    resource_id: str
    local_path: str
    last_signal: str = ""
    row_limit: int = 0
    include_headers: bool = True

    @property
    def key(self) -> tuple[str, str]:
        """Composite identity of the record."""
        return (self.project_id, self.resource_id)

    @property
    def display_name(self) -> str:
        """Short table name for messages (last ID segment)."""
        return self.resource_id.split(".")[-1] or self.resource_id

    def with_signal(self, signal: str) -> WatchRecord:
        """Return a copy with a new last_signal."""
        return replace(self, last_signal=signal)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted JSON shape."""
        return {
            "projectId": self.project_id,
            "resourceId": self.resource_id,
            "localPath": self.local_path,
            "lastSignal": self.last_signal,
            "rowLimit": self.row_limit,
            "includeHeaders": self.include_headers,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WatchRecord:
        """Create from the persisted JSON shape."""
        return cls(
            project_id=data["projectId"],
            resource_id=data["resourceId"],
            local_path=data["localPath"],
            last_signal=data.get("lastSignal") or "",
            row_limit=int(data.get("rowLimit") or 0),
            include_headers=bool(data.get("includeHeaders", True)),
        )


@dataclass
class RegistryStats:
    """Summary of the registry contents."""

    total_records: int
    project_count: int
    projects: list[str]


def validate_record(record: WatchRecord) -> None:
    """Check registry invariants.

    Raises:
        InvalidRecordError: If the record cannot be stored.
    """
    if record.row_limit < 0:
        raise InvalidRecordError(f"row_limit must be >= 0, got {record.row_limit}")
    if not record.project_id or not record.resource_id:
        raise InvalidRecordError("project_id and resource_id are required")


class WatchRegistry:
    """SQLite-backed registry of watch records.

    Several processes may share one database (a running watcher and
    one-off CLI commands). Every query re-reads the persisted list, and
    every mutation reads, modifies and writes it inside one
    BEGIN IMMEDIATE transaction, so no writer works from a stale copy.
    """

    def __init__(self, db_path: Path) -> None:
        """Open (or create) the registry database.

        Args:
            db_path: Path to SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Autocommit mode
            timeout=30.0,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()

        self._records: list[WatchRecord] = self._load()

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)

    def _load(self) -> list[WatchRecord]:
        """Read the persisted record list."""
        cursor = self._conn.execute(
            "SELECT value FROM kv_store WHERE key = ?",
            (RECORDS_KEY,),
        )
        row = cursor.fetchone()
        if row is None or not row["value"]:
            return []
        return [WatchRecord.from_dict(item) for item in json.loads(row["value"])]

    def _save(self, records: list[WatchRecord]) -> None:
        """Persist the record list and swap the in-memory mirror."""
        payload = json.dumps([r.to_dict() for r in records])
        self._conn.execute(
            "INSERT OR REPLACE INTO kv_store (key, value) VALUES (?, ?)",
            (RECORDS_KEY, payload),
        )
        self._records = records

    def _refresh(self) -> list[WatchRecord]:
        """Re-read the persisted list into the mirror."""
        with self._lock:
            self._records = self._load()
            return self._records

    @contextmanager
    def _transaction(self) -> Iterator[list[WatchRecord]]:
        """Lock the database and yield a fresh copy of the records.

        The caller mutates the list in place; it is written back on exit.
        """
        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                records = self._load()
                yield records
                self._save(records)
            except BaseException:
                self._conn.execute("ROLLBACK")
                self._records = self._load()
                raise
            self._conn.execute("COMMIT")

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    # === Queries ===

    def get(self, project_id: str, resource_id: str) -> WatchRecord | None:
        """Get a record by composite key."""
        for record in self._refresh():
            if record.key == (project_id, resource_id):
                return record
        return None

    def list_all(self) -> list[WatchRecord]:
        """List all records in insertion order."""
        return list(self._refresh())

    def list_by_project(self, project_id: str) -> list[WatchRecord]:
        """List records for one project."""
        return [r for r in self._refresh() if r.project_id == project_id]

    def count(self, project_id: str | None = None) -> int:
        """Count records, optionally for one project."""
        if project_id is not None:
            return len(self.list_by_project(project_id))
        return len(self._refresh())

    def is_watched(self, project_id: str, resource_id: str) -> bool:
        """Check if a table is being watched."""
        return self.get(project_id, resource_id) is not None

    def stats(self) -> RegistryStats:
        """Get registry statistics."""
        records = self._refresh()
        projects = list(dict.fromkeys(r.project_id for r in records))
        return RegistryStats(
            total_records=len(records),
            project_count=len(projects),
            projects=projects,
        )

    # === Mutations ===

    def upsert(self, record: WatchRecord) -> None:
        """Add a record or replace the one with the same key.

        Raises:
            InvalidRecordError: If the record violates invariants.
        """
        validate_record(record)
        with self._transaction() as records:
            for index, existing in enumerate(records):
                if existing.key == record.key:
                    records[index] = record
                    break
            else:
                records.append(record)
        logger.debug("Upserted watch record %s/%s", record.project_id, record.resource_id)

    def update_signal(self, project_id: str, resource_id: str, signal: str) -> bool:
        """Update last_signal of an existing record.

        Other fields keep whatever is currently stored.

        Returns:
            True if the record existed.
        """
        with self._transaction() as records:
            for index, existing in enumerate(records):
                if existing.key == (project_id, resource_id):
                    records[index] = existing.with_signal(signal)
                    return True
        return False

    def remove(self, project_id: str, resource_id: str) -> bool:
        """Remove a record.

        Returns:
            True if a record was removed.
        """
        with self._transaction() as records:
            before = len(records)
            records[:] = [r for r in records if r.key != (project_id, resource_id)]
            removed = len(records) != before
        if removed:
            logger.debug("Removed watch record %s/%s", project_id, resource_id)
        return removed

    def clear(self) -> None:
        """Remove all records."""
        with self._transaction() as records:
            records.clear()
