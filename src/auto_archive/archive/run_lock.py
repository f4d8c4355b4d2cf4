"""Per-source run lock backed by the local SQLite store."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from auto_archive.store.db import SqliteStore

logger = logging.getLogger(__name__)


class RunLockError(RuntimeError):
    """Raised when another run already holds the lock for a source table."""

    def __init__(self, message: str, lock_key: str) -> None:
        super().__init__(message)
        self.lock_key = lock_key


def lock_key_for(base_id: str, table: str) -> str:
    return f"{base_id}/{table}"


@contextmanager
def hold_run_lock(
    store: SqliteStore, lock_key: str, run_id: str, ttl_seconds: int
) -> Iterator[None]:
    if not store.try_acquire_lock(lock_key, run_id, ttl_seconds):
        raise RunLockError(f"Another archive run holds the lock for {lock_key}", lock_key)
    logger.debug("Run %s acquired lock %s", run_id, lock_key)
    try:
        yield
    finally:
        if not store.release_lock(lock_key, run_id):
            logger.warning("Run %s no longer held lock %s at release", run_id, lock_key)
