"""Application context assembly."""

from __future__ import annotations

from dataclasses import dataclass

from auto_archive.airtable.client import AirtableClient
from auto_archive.airtable.provisioning import AirtableProvisioner
from auto_archive.airtable.source import AirtableSourceStore
from auto_archive.airtable.tracking import (
    AirtableLedgerStore,
    AirtableRunLogStore,
    ensure_tracking_tables,
)
from auto_archive.archive.migrator import RecordMigrator
from auto_archive.archive.pipeline import ArchivePipeline
from auto_archive.archive.registry import ArchiveRegistry
from auto_archive.archive.reporter import RunReporter
from auto_archive.config import Settings
from auto_archive.domain.periods import PeriodKeyResolver
from auto_archive.store.contracts import LedgerStore, RunLogStore
from auto_archive.store.db import SqliteStore


@dataclass
class AppContext:
    """Dependency container for one archive job.

    The SQLite store is always present because it holds the run lock, even
    when the ledger and run log live in Airtable tracking tables.
    """

    settings: Settings
    client: AirtableClient
    store: SqliteStore
    source: AirtableSourceStore
    ledger: LedgerStore
    run_log: RunLogStore
    pipeline: ArchivePipeline

    def prepare(self) -> list[str]:
        """Create the Airtable tracking tables when they back the ledger and run log."""
        if self.settings.storage.backend != "airtable":
            return []
        return ensure_tracking_tables(self.client, self.settings.archive.base_id)

    def close(self) -> None:
        self.client.close()
        self.store.close()


def build_app_context(settings: Settings, client: AirtableClient | None = None) -> AppContext:
    archive = settings.archive
    client = client or AirtableClient(
        archive.api_key,
        api_url=settings.airtable.api_url,
        timeout_seconds=settings.execution.request_timeout_seconds,
        max_retries=settings.execution.max_retries,
        min_request_interval_seconds=settings.airtable.min_request_interval_seconds,
    )
    try:
        store = SqliteStore(settings.storage.sqlite_path, wal=settings.storage.sqlite_wal)
    except Exception:
        client.close()
        raise

    ledger: LedgerStore
    run_log: RunLogStore
    if settings.storage.backend == "airtable":
        ledger = AirtableLedgerStore(client, archive.base_id)
        run_log = AirtableRunLogStore(client, archive.base_id)
    else:
        ledger = store
        run_log = store

    source = AirtableSourceStore(client, archive.base_id, archive.table)
    provisioner = AirtableProvisioner(client, settings.airtable.web_url)
    registry = ArchiveRegistry(
        provisioner,
        ledger,
        source,
        workspace_id=archive.workspace_id,
    )
    migrator = RecordMigrator(provisioner, source, flag_field=archive.flag_field)
    pipeline = ArchivePipeline(
        source,
        registry,
        migrator,
        RunReporter(run_log),
        PeriodKeyResolver(archive.frequency, archive.date_field),
        flag_field=archive.flag_field,
    )

    return AppContext(
        settings=settings,
        client=client,
        store=store,
        source=source,
        ledger=ledger,
        run_log=run_log,
        pipeline=pipeline,
    )
