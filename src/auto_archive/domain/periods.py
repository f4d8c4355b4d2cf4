"""Partition keys for archive periods.

A record's date plus the configured :class:`Frequency` yields a stable
partition key (``2024_03``, ``2024_Q1``, ``2024_H1`` or ``2024``) and the
display name of the archive base that holds that period.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Any, Iterable

from auto_archive.domain.models import Frequency, SourceRecord

logger = logging.getLogger(__name__)

ARCHIVE_NAME_PREFIX = "Archive"


@dataclass(frozen=True)
class PeriodKey:
    key: str
    display_name: str


@dataclass
class Partitioning:
    """Eligible records grouped by partition key, in first-seen order."""

    partitions: dict[str, list[SourceRecord]] = field(default_factory=dict)
    display_names: dict[str, str] = field(default_factory=dict)
    skipped_ids: list[str] = field(default_factory=list)

    @property
    def eligible_count(self) -> int:
        return sum(len(records) for records in self.partitions.values())


def parse_record_date(value: Any) -> date | None:
    """Parse a date cell value into a calendar date.

    Accepts ``date``/``datetime`` objects and ISO 8601 strings. Timestamps
    with an offset are normalized to UTC before the calendar date is taken.
    Returns ``None`` for empty or unparseable values.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        return value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.date()


def period_key_for(value: date, frequency: Frequency | str) -> PeriodKey:
    frequency = Frequency.parse(frequency)
    year, month = value.year, value.month

    if frequency is Frequency.MONTHLY:
        key = f"{year}_{month:02d}"
    elif frequency is Frequency.QUARTERLY:
        quarter = (month + 2) // 3
        key = f"{year}_Q{quarter}"
    elif frequency is Frequency.SEMIANNUAL:
        half = "H1" if month <= 6 else "H2"
        key = f"{year}_{half}"
    else:
        key = f"{year}"

    return PeriodKey(key=key, display_name=f"{ARCHIVE_NAME_PREFIX} {key}")


class PeriodKeyResolver:
    """Maps records to archive periods for one frequency and date field."""

    def __init__(self, frequency: Frequency | str, date_field: str = "Date") -> None:
        self.frequency = Frequency.parse(frequency)
        self.date_field = date_field

    def resolve(self, value: Any) -> PeriodKey | None:
        parsed = parse_record_date(value)
        if parsed is None:
            return None
        return period_key_for(parsed, self.frequency)

    def partition(self, records: Iterable[SourceRecord]) -> Partitioning:
        """Group records by period; records without a usable date are skipped."""
        result = Partitioning()
        for record in records:
            period = self.resolve(record.get(self.date_field))
            if period is None:
                result.skipped_ids.append(record.id)
                continue
            result.partitions.setdefault(period.key, []).append(record)
            result.display_names.setdefault(period.key, period.display_name)

        if result.skipped_ids:
            logger.info(
                "Skipped %d records without a usable '%s' value",
                len(result.skipped_ids),
                self.date_field,
            )
        return result
