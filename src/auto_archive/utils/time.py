"""Time helpers."""

from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def make_run_id(started_at: datetime | None = None) -> str:
    """Build a run identifier from the run's start time in epoch milliseconds."""
    moment = started_at or utc_now()
    return f"Run_{int(moment.timestamp() * 1000)}"
