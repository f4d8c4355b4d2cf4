"""Idempotent mapping from partition keys to archive bases.

The ledger is the only record of which periods already have a destination.
A key is always looked up before a base is created, and a ledger row is
written only after creation succeeded. Nothing guards two concurrent runs
racing on the same new key; callers serialize runs with a run lock.
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Mapping

from auto_archive.airtable.client import AirtableApiError
from auto_archive.archive.context import ErrorKind, RunContext, RunError
from auto_archive.domain.models import ArchiveDescriptor, FieldSchema
from auto_archive.store.contracts import DestinationProvisioner, LedgerStore, SourceStore
from auto_archive.utils.time import utc_now_iso

logger = logging.getLogger(__name__)

_LEDGER_ERRORS = (AirtableApiError, sqlite3.Error)


class ArchiveRegistry:
    def __init__(
        self,
        provisioner: DestinationProvisioner,
        ledger: LedgerStore,
        source: SourceStore,
        *,
        workspace_id: str,
    ) -> None:
        self._provisioner = provisioner
        self._ledger = ledger
        self._source = source
        self._workspace_id = workspace_id

    def lookup(self, partition_key: str) -> ArchiveDescriptor | None:
        """Scan the ledger for the descriptor of ``partition_key``."""
        for descriptor in self._ledger.list_descriptors():
            if descriptor.partition_key == partition_key:
                return descriptor
        return None

    def _index_ledger(self) -> dict[str, ArchiveDescriptor]:
        # First row wins, matching lookup().
        known: dict[str, ArchiveDescriptor] = {}
        for descriptor in self._ledger.list_descriptors():
            known.setdefault(descriptor.partition_key, descriptor)
        return known

    def resolve(self, partition_key: str) -> str | None:
        descriptor = self.lookup(partition_key)
        return descriptor.destination_id if descriptor else None

    def create_and_register(
        self,
        partition_key: str,
        display_name: str,
        schema: list[FieldSchema],
        context: RunContext,
    ) -> ArchiveDescriptor | None:
        """Create the archive base for a period and append its ledger row.

        Returns None when creation or the ledger write failed; the failure is
        recorded on ``context`` and the period stays unresolved for this run.
        """
        logger.info("Creating archive base '%s' for period %s", display_name, partition_key)
        try:
            created = self._provisioner.create_collection(
                display_name, self._source.table_name, schema, self._workspace_id
            )
        except AirtableApiError as exc:
            error = context.record_error(
                RunError(ErrorKind.CREATION_FAILURE, str(exc), partition_key=partition_key)
            )
            logger.error("%s", error)
            return None

        descriptor = ArchiveDescriptor(
            partition_key=partition_key,
            destination_name=display_name,
            destination_id=created.collection_id,
            workspace_id=self._workspace_id,
            link=self._provisioner.link_for(created.collection_id),
            primary_collection_id=created.primary_sub_collection_id,
            created_at=utc_now_iso(),
        )
        try:
            self._ledger.append_descriptor(descriptor)
        except _LEDGER_ERRORS as exc:
            # The base exists but is unknown to the ledger; a later run creates another.
            error = context.record_error(
                RunError(
                    ErrorKind.LEDGER_WRITE_FAILURE,
                    f"base created but not registered: {exc}",
                    partition_key=partition_key,
                    destination_id=created.collection_id,
                )
            )
            logger.error("%s", error)
            return None

        context.mark_period_created(partition_key)
        context.touch_destination(created.collection_id)
        logger.info("Registered %s -> %s", partition_key, created.collection_id)
        return descriptor

    def resolve_all(
        self,
        display_names: Mapping[str, str],
        schema: list[FieldSchema],
        context: RunContext,
    ) -> dict[str, ArchiveDescriptor]:
        """Resolve or create a destination for every key, one key at a time.

        The ledger is read once per pass. If that read fails, every key is
        recorded as unresolved and nothing is created.
        """
        try:
            known = self._index_ledger()
        except _LEDGER_ERRORS as exc:
            for partition_key in sorted(display_names):
                context.record_error(
                    RunError(
                        ErrorKind.LEDGER_READ_FAILURE, str(exc), partition_key=partition_key
                    )
                )
            logger.error("Cannot read archive ledger, no period resolved: %s", exc)
            return {}

        resolved: dict[str, ArchiveDescriptor] = {}
        for partition_key in sorted(display_names):
            descriptor = known.get(partition_key)
            if descriptor is not None:
                logger.info(
                    "Found existing base for %s: %s", partition_key, descriptor.destination_id
                )
            else:
                descriptor = self.create_and_register(
                    partition_key, display_names[partition_key], schema, context
                )
            if descriptor is not None:
                resolved[partition_key] = descriptor
        return resolved
