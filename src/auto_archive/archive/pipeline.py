"""Archive run orchestration.

A run moves through five stages: fetch the field list and unmigrated records,
partition them by period, resolve every period's destination, migrate each
period's records in batches, and report. Only a failure in the fetch stage is
fatal; everything later is recorded on the run context and the run goes on.
"""

from __future__ import annotations

import logging

from auto_archive.airtable.client import AirtableApiError
from auto_archive.airtable.source import SourceReadError
from auto_archive.archive.context import RunContext
from auto_archive.archive.migrator import RecordMigrator
from auto_archive.archive.registry import ArchiveRegistry
from auto_archive.archive.reporter import RunReporter
from auto_archive.domain.models import FieldSchema, RunLogEntry, SourceRecord
from auto_archive.domain.periods import PeriodKeyResolver
from auto_archive.schema.projector import SchemaProjector
from auto_archive.store.contracts import SourceStore

logger = logging.getLogger(__name__)


class ArchivePipeline:
    def __init__(
        self,
        source: SourceStore,
        registry: ArchiveRegistry,
        migrator: RecordMigrator,
        reporter: RunReporter,
        resolver: PeriodKeyResolver,
        *,
        flag_field: str,
    ) -> None:
        self._source = source
        self._registry = registry
        self._migrator = migrator
        self._reporter = reporter
        self._resolver = resolver
        self._projector = SchemaProjector(flag_field)
        self._flag_field = flag_field

    def _fetch(self) -> tuple[list[FieldSchema], list[str], list[SourceRecord]]:
        fields = self._source.list_fields()
        schema = self._projector.project(fields)
        field_names = [field.name for field in fields]
        logger.info("Fetching unmigrated records from %s", self._source.table_name)
        records = self._source.list_unmigrated_records(self._flag_field)
        logger.info("Found %d unmigrated records", len(records))
        # Created only once the eligible set has been read.
        self._source.ensure_flag_field(self._flag_field)
        return schema, field_names, records

    def run(self, context: RunContext | None = None) -> RunLogEntry:
        context = context or RunContext.start(self._resolver.frequency)
        logger.info("Starting archive run %s (%s)", context.run_id, context.frequency.value)

        try:
            schema, field_names, records = self._fetch()
        except (AirtableApiError, SourceReadError) as exc:
            logger.error("Cannot read source table: %s", exc)
            return self._reporter.report_failure(context, exc)

        partitioning = self._resolver.partition(records)
        context.total_processed = partitioning.eligible_count
        if context.total_processed == 0:
            return self._reporter.report_empty(context)

        destinations = self._registry.resolve_all(partitioning.display_names, schema, context)

        for partition_key in sorted(partitioning.partitions):
            period_records = partitioning.partitions[partition_key]
            descriptor = destinations.get(partition_key)
            if descriptor is None:
                logger.warning(
                    "No destination for %s; %d records left for a later run",
                    partition_key,
                    len(period_records),
                )
                continue
            self._migrator.migrate_partition(descriptor, period_records, field_names, context)

        return self._reporter.finalize(context)
