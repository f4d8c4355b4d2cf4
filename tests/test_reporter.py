from __future__ import annotations

import pytest

from auto_archive.archive.context import ErrorKind, RunError
from auto_archive.archive.reporter import RunReporter, derive_status
from auto_archive.domain.models import RunStatus


@pytest.mark.parametrize(
    ("errors", "archived", "expected"),
    [
        (0, 0, RunStatus.SUCCESS),
        (0, 12, RunStatus.SUCCESS),
        (2, 5, RunStatus.PARTIAL_SUCCESS),
        (1, 0, RunStatus.FAILURE),
    ],
)
def test_derive_status(errors, archived, expected) -> None:
    assert derive_status(errors, archived) is expected


def test_finalize_writes_one_entry(run_log, context) -> None:
    context.total_processed = 5
    context.record_archived(3)
    context.mark_period_created("2024_01")
    context.touch_destination("app001")
    context.record_error(
        RunError(ErrorKind.BATCH_WRITE_FAILURE, "HTTP 422", destination_id="app001", batch_index=1)
    )

    entry = RunReporter(run_log).finalize(context)

    assert run_log.entries == [entry]
    assert entry.run_id == "Run_test"
    assert entry.status is RunStatus.PARTIAL_SUCCESS
    assert entry.total_processed == 5
    assert entry.total_archived == 3
    assert entry.errors == ["BatchWriteFailure (destination=app001, batch=1): HTTP 422"]
    assert entry.frequency_used == "monthly"
    assert entry.periods_touched == ["2024_01"]
    assert entry.destination_ids == ["app001"]
    assert entry.timestamp == context.started_at.isoformat()
    assert entry.duration_seconds >= 0


def test_report_empty_has_zero_duration(run_log, context) -> None:
    entry = RunReporter(run_log).report_empty(context)

    assert entry.status is RunStatus.SUCCESS
    assert entry.duration_seconds == 0.0
    assert entry.total_processed == 0


def test_report_failure_zeroes_counts(run_log, context) -> None:
    context.total_processed = 7
    entry = RunReporter(run_log).report_failure(context, RuntimeError("HTTP 503"))

    assert entry.status is RunStatus.FAILURE
    assert entry.total_processed == 0
    assert entry.total_archived == 0
    assert entry.errors == ["SourceReadFailure: HTTP 503"]
    assert entry.errors_text == "SourceReadFailure: HTTP 503"
