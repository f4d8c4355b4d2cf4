"""SQLite access layer for the archive ledger, run log and run locks."""

from __future__ import annotations

import json
import sqlite3
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Mapping, Sequence

from auto_archive.domain.models import ArchiveDescriptor, RunLogEntry, RunStatus
from auto_archive.utils.time import utc_now_iso

_SqlValue = str | bytes | int | float | None
_SqlParams = Sequence[_SqlValue] | Mapping[str, _SqlValue]


class SqliteStore:
    def __init__(self, path: str, wal: bool = True) -> None:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._lock = threading.Lock()
        self._closed = False
        if wal and path != ":memory:":
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._init_schema()

    def _init_schema(self) -> None:
        # No unique constraint on partition_key: resolve-before-create is what
        # keeps one row per key.
        self._conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS archive_ledger (
                entry_id INTEGER PRIMARY KEY AUTOINCREMENT,
                partition_key TEXT NOT NULL,
                destination_name TEXT NOT NULL,
                destination_id TEXT NOT NULL,
                workspace_id TEXT NOT NULL,
                link TEXT NOT NULL,
                primary_collection_id TEXT,
                created_at TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS run_log (
                run_id TEXT PRIMARY KEY,
                timestamp TEXT NOT NULL,
                status TEXT NOT NULL,
                total_processed INTEGER NOT NULL,
                total_archived INTEGER NOT NULL,
                errors TEXT NOT NULL,
                duration_seconds REAL NOT NULL,
                frequency_used TEXT NOT NULL,
                periods_touched TEXT NOT NULL,
                destination_ids TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS run_locks (
                lock_key TEXT PRIMARY KEY,
                run_id TEXT NOT NULL,
                acquired_at TEXT NOT NULL
            );

            CREATE INDEX IF NOT EXISTS idx_archive_ledger_partition_key
                ON archive_ledger(partition_key);
            CREATE INDEX IF NOT EXISTS idx_run_log_timestamp ON run_log(timestamp);
            """
        )
        self._conn.commit()

    def execute(self, query: str, params: _SqlParams) -> None:
        with self._lock:
            self._conn.execute(query, params)
            self._conn.commit()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._conn.close()
            self._closed = True

    def fetch_one(self, query: str, params: _SqlParams) -> sqlite3.Row | None:
        with self._lock:
            cur = self._conn.execute(query, params)
            return cur.fetchone()

    def fetch_all(self, query: str, params: _SqlParams = ()) -> list[sqlite3.Row]:
        with self._lock:
            cur = self._conn.execute(query, params)
            return cur.fetchall()

    # Ledger

    def list_descriptors(self) -> list[ArchiveDescriptor]:
        rows = self.fetch_all(
            """
            SELECT partition_key, destination_name, destination_id, workspace_id,
                   link, primary_collection_id, created_at
            FROM archive_ledger ORDER BY entry_id
            """
        )
        return [ArchiveDescriptor(**dict(row)) for row in rows]

    def append_descriptor(self, descriptor: ArchiveDescriptor) -> None:
        self.execute(
            """
            INSERT INTO archive_ledger (
                partition_key, destination_name, destination_id, workspace_id,
                link, primary_collection_id, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                descriptor.partition_key,
                descriptor.destination_name,
                descriptor.destination_id,
                descriptor.workspace_id,
                descriptor.link,
                descriptor.primary_collection_id,
                descriptor.created_at or utc_now_iso(),
            ),
        )

    # Run log

    def append_entry(self, entry: RunLogEntry) -> None:
        self.execute(
            """
            INSERT INTO run_log (
                run_id, timestamp, status, total_processed, total_archived, errors,
                duration_seconds, frequency_used, periods_touched, destination_ids
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.run_id,
                entry.timestamp,
                entry.status.value,
                entry.total_processed,
                entry.total_archived,
                json.dumps(entry.errors),
                entry.duration_seconds,
                entry.frequency_used,
                json.dumps(entry.periods_touched),
                json.dumps(entry.destination_ids),
            ),
        )

    def get_entry(self, run_id: str) -> RunLogEntry | None:
        row = self.fetch_one("SELECT * FROM run_log WHERE run_id = ?", (run_id,))
        if row is None:
            return None
        return _entry_from_row(row)

    def list_entries(self) -> list[RunLogEntry]:
        rows = self.fetch_all("SELECT * FROM run_log ORDER BY timestamp, run_id")
        return [_entry_from_row(row) for row in rows]

    # Run locks

    def try_acquire_lock(self, lock_key: str, run_id: str, ttl_seconds: int) -> bool:
        """Atomically take the lock for ``lock_key``.

        A lock older than ``ttl_seconds`` is treated as abandoned and replaced.
        Returns True if the caller now holds the lock.
        """
        cutoff = (datetime.now(timezone.utc) - timedelta(seconds=ttl_seconds)).isoformat()
        with self._lock:
            self._conn.execute(
                "DELETE FROM run_locks WHERE lock_key = ? AND acquired_at < ?",
                (lock_key, cutoff),
            )
            cursor = self._conn.execute(
                "INSERT OR IGNORE INTO run_locks (lock_key, run_id, acquired_at) "
                "VALUES (?, ?, ?)",
                (lock_key, run_id, utc_now_iso()),
            )
            self._conn.commit()
            return cursor.rowcount == 1

    def release_lock(self, lock_key: str, run_id: str) -> bool:
        with self._lock:
            cursor = self._conn.execute(
                "DELETE FROM run_locks WHERE lock_key = ? AND run_id = ?",
                (lock_key, run_id),
            )
            self._conn.commit()
            return cursor.rowcount == 1


def _entry_from_row(row: sqlite3.Row) -> RunLogEntry:
    return RunLogEntry(
        run_id=row["run_id"],
        timestamp=row["timestamp"],
        status=RunStatus(row["status"]),
        total_processed=row["total_processed"],
        total_archived=row["total_archived"],
        errors=json.loads(row["errors"]),
        duration_seconds=row["duration_seconds"],
        frequency_used=row["frequency_used"],
        periods_touched=json.loads(row["periods_touched"]),
        destination_ids=json.loads(row["destination_ids"]),
    )
