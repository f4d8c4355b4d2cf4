"""Run summary: one log entry per run."""

from __future__ import annotations

import logging

from auto_archive.archive.context import ErrorKind, RunContext, RunError
from auto_archive.domain.models import RunLogEntry, RunStatus
from auto_archive.store.contracts import RunLogStore

logger = logging.getLogger(__name__)


def derive_status(error_count: int, total_archived: int) -> RunStatus:
    if error_count == 0:
        return RunStatus.SUCCESS
    if total_archived == 0:
        return RunStatus.FAILURE
    return RunStatus.PARTIAL_SUCCESS


class RunReporter:
    def __init__(self, run_log: RunLogStore) -> None:
        self._run_log = run_log

    def build_entry(self, context: RunContext, *, duration_seconds: float | None = None) -> RunLogEntry:
        return RunLogEntry(
            run_id=context.run_id,
            timestamp=context.started_at.isoformat(),
            status=derive_status(len(context.errors), context.total_archived),
            total_processed=context.total_processed,
            total_archived=context.total_archived,
            errors=[str(error) for error in context.errors],
            duration_seconds=(
                context.elapsed_seconds() if duration_seconds is None else duration_seconds
            ),
            frequency_used=context.frequency.value,
            periods_touched=list(context.periods_created),
            destination_ids=list(context.destination_ids),
        )

    def _emit(self, entry: RunLogEntry) -> RunLogEntry:
        self._run_log.append_entry(entry)
        log = logger.info if entry.status is RunStatus.SUCCESS else logger.warning
        log(
            "Run %s finished: status=%s processed=%d archived=%d errors=%d duration=%.1fs",
            entry.run_id,
            entry.status.value,
            entry.total_processed,
            entry.total_archived,
            len(entry.errors),
            entry.duration_seconds,
        )
        return entry

    def finalize(self, context: RunContext) -> RunLogEntry:
        return self._emit(self.build_entry(context))

    def report_empty(self, context: RunContext) -> RunLogEntry:
        """Log a run that found nothing eligible to archive."""
        logger.info("No eligible records to archive")
        return self._emit(self.build_entry(context, duration_seconds=0.0))

    def report_failure(self, context: RunContext, exc: BaseException) -> RunLogEntry:
        """Log a run aborted before any write because the source could not be read."""
        context.record_error(RunError(ErrorKind.SOURCE_READ_FAILURE, str(exc)))
        context.total_processed = 0
        context.total_archived = 0
        return self._emit(self.build_entry(context))
