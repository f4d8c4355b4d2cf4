"""Batched copy of source records into archive bases."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from auto_archive.airtable.client import AirtableApiError
from auto_archive.archive.context import ErrorKind, RunContext, RunError
from auto_archive.domain.models import ArchiveDescriptor, SourceRecord
from auto_archive.store.contracts import DestinationProvisioner, SourceStore
from auto_archive.utils.batching import chunked

logger = logging.getLogger(__name__)

COPY_BATCH_SIZE = 10
# Hard ceiling of the record store's bulk update call.
FLAG_UPDATE_BATCH_SIZE = 50


@dataclass
class MigrationResult:
    copied: int = 0
    error: RunError | None = None


def flatten_field_value(value: Any) -> Any:
    """Reduce choice objects to their display name.

    Lists are flattened item by item so multi-choice values become a list of
    names; dicts without a ``name`` (attachments, for instance) pass through.
    """
    if isinstance(value, dict) and value.get("name"):
        return value["name"]
    if isinstance(value, list):
        return [flatten_field_value(item) for item in value]
    return value


class RecordMigrator:
    def __init__(
        self,
        provisioner: DestinationProvisioner,
        source: SourceStore,
        *,
        flag_field: str,
        batch_size: int = COPY_BATCH_SIZE,
    ) -> None:
        self._provisioner = provisioner
        self._source = source
        self._flag_field = flag_field
        self._batch_size = batch_size

    def project_record(self, record: SourceRecord, field_names: Iterable[str]) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        for name in field_names:
            if name == self._flag_field:
                continue
            value = record.get(name)
            if value is None:
                continue
            fields[name] = flatten_field_value(value)
        return fields

    def migrate(
        self,
        destination_id: str,
        batch: Sequence[SourceRecord],
        field_names: Sequence[str],
        context: RunContext,
        *,
        table: str | None = None,
        batch_index: int = 0,
    ) -> MigrationResult:
        """Copy one batch, then flag its source records as migrated.

        Records are flagged only after the copy succeeded. A crash between the
        two steps leaves copies whose source rows are copied again next run.
        """
        target_table = table or self._source.table_name
        payload = [self.project_record(record, field_names) for record in batch]
        try:
            self._provisioner.bulk_create_records(destination_id, target_table, payload)
        except AirtableApiError as exc:
            error = context.record_error(
                RunError(
                    ErrorKind.BATCH_WRITE_FAILURE,
                    str(exc),
                    destination_id=destination_id,
                    batch_index=batch_index,
                )
            )
            logger.error("%s", error)
            return MigrationResult(copied=0, error=error)

        context.record_archived(len(batch))
        context.touch_destination(destination_id)
        logger.info("Added batch of %d records to base %s", len(batch), destination_id)

        result = MigrationResult(copied=len(batch))
        for chunk in chunked(list(batch), FLAG_UPDATE_BATCH_SIZE):
            updates = [(record.id, {self._flag_field: True}) for record in chunk]
            try:
                self._source.update_field_values(updates)
            except AirtableApiError as exc:
                error = context.record_error(
                    RunError(
                        ErrorKind.PARTIAL_UPDATE_FAILURE,
                        f"{len(chunk)} records copied but not flagged: {exc}",
                        destination_id=destination_id,
                        batch_index=batch_index,
                    )
                )
                logger.error("%s", error)
                result.error = result.error or error
                continue
            logger.debug("Flagged %d records as '%s'", len(chunk), self._flag_field)
        return result

    def migrate_partition(
        self,
        descriptor: ArchiveDescriptor,
        records: Sequence[SourceRecord],
        field_names: Sequence[str],
        context: RunContext,
    ) -> int:
        """Copy a period's records in order, batch by batch; returns records copied."""
        copied = 0
        for batch_index, batch in enumerate(chunked(list(records), self._batch_size)):
            result = self.migrate(
                descriptor.destination_id,
                batch,
                field_names,
                context,
                table=descriptor.primary_collection_id,
                batch_index=batch_index,
            )
            copied += result.copied
        logger.info(
            "%s: %d of %d records added to %s",
            descriptor.destination_name,
            copied,
            len(records),
            descriptor.destination_id,
        )
        return copied
