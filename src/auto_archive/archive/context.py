"""Run-scoped state shared by the archive stages."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from auto_archive.domain.models import Frequency
from auto_archive.utils.time import make_run_id, utc_now


class ErrorKind(str, Enum):
    CREATION_FAILURE = "CreationFailure"
    LEDGER_WRITE_FAILURE = "LedgerWriteFailure"
    BATCH_WRITE_FAILURE = "BatchWriteFailure"
    PARTIAL_UPDATE_FAILURE = "PartialUpdateFailure"
    LEDGER_READ_FAILURE = "LedgerReadFailure"
    SOURCE_READ_FAILURE = "SourceReadFailure"


@dataclass(frozen=True)
class RunError:
    kind: ErrorKind
    cause: str
    partition_key: str | None = None
    destination_id: str | None = None
    batch_index: int | None = None

    def __str__(self) -> str:
        where = []
        if self.partition_key is not None:
            where.append(f"period={self.partition_key}")
        if self.destination_id is not None:
            where.append(f"destination={self.destination_id}")
        if self.batch_index is not None:
            where.append(f"batch={self.batch_index}")
        location = f" ({', '.join(where)})" if where else ""
        return f"{self.kind.value}{location}: {self.cause}"


@dataclass
class RunContext:
    """Counters, errors and timing for one run, owned by the reporter at the end."""

    run_id: str
    frequency: Frequency
    started_at: datetime
    started_monotonic: float
    total_processed: int = 0
    total_archived: int = 0
    errors: list[RunError] = field(default_factory=list)
    periods_created: list[str] = field(default_factory=list)
    destination_ids: list[str] = field(default_factory=list)

    @classmethod
    def start(cls, frequency: Frequency | str, run_id: str | None = None) -> "RunContext":
        started_at = utc_now()
        return cls(
            run_id=run_id or make_run_id(started_at),
            frequency=Frequency.parse(frequency),
            started_at=started_at,
            started_monotonic=time.monotonic(),
        )

    def record_error(self, error: RunError) -> RunError:
        self.errors.append(error)
        return error

    def record_archived(self, count: int) -> None:
        self.total_archived += count

    def mark_period_created(self, partition_key: str) -> None:
        if partition_key not in self.periods_created:
            self.periods_created.append(partition_key)

    def touch_destination(self, destination_id: str) -> None:
        if destination_id not in self.destination_ids:
            self.destination_ids.append(destination_id)

    def elapsed_seconds(self) -> float:
        return round(time.monotonic() - self.started_monotonic, 3)
