"""Ledger and run log kept as tracking tables inside the master base."""

from __future__ import annotations

import logging
from typing import Any

from auto_archive.airtable.client import AirtableClient
from auto_archive.domain.models import ArchiveDescriptor, RunLogEntry, RunStatus

logger = logging.getLogger(__name__)

LEDGER_TABLE_NAME = "Archive Base Tracking"
RUN_LOG_TABLE_NAME = "Archive Process Logs"

LEDGER_FIELDS: list[dict[str, Any]] = [
    {"name": "Archive Key", "type": "singleLineText"},
    {"name": "Archive Name", "type": "singleLineText"},
    {"name": "Archive ID", "type": "singleLineText"},
    {"name": "Workspace ID", "type": "singleLineText"},
    {"name": "Link", "type": "url"},
    {"name": "Primary Table ID", "type": "singleLineText"},
]

RUN_LOG_FIELDS: list[dict[str, Any]] = [
    {"name": "Run ID", "type": "singleLineText"},
    {
        "name": "Timestamp",
        "type": "dateTime",
        "options": {
            "dateFormat": {"name": "iso"},
            "timeFormat": {"name": "24hour"},
            "timeZone": "utc",
        },
    },
    {
        "name": "Status",
        "type": "singleSelect",
        "options": {
            "choices": [
                {"name": "Success", "color": "greenLight1"},
                {"name": "Failure", "color": "redBright"},
                {"name": "Partial Success", "color": "orangeLight1"},
            ]
        },
    },
    {"name": "Total Records Processed", "type": "number", "options": {"precision": 0}},
    {"name": "Total Records Archived", "type": "number", "options": {"precision": 0}},
    {"name": "Errors", "type": "multilineText"},
    {"name": "Execution Time (seconds)", "type": "number", "options": {"precision": 0}},
    {"name": "Frequency Used", "type": "singleLineText"},
    {"name": "Base IDs Created/Updated", "type": "multilineText"},
    {"name": "Archived Periods", "type": "multilineText"},
]

STATUS_LABELS = {
    RunStatus.SUCCESS: "Success",
    RunStatus.PARTIAL_SUCCESS: "Partial Success",
    RunStatus.FAILURE: "Failure",
}


def ensure_tracking_tables(client: AirtableClient, base_id: str) -> list[str]:
    """Create the ledger and run log tables when missing; returns created names."""
    existing = {table.get("name") for table in client.list_tables(base_id)}
    created: list[str] = []
    for name, fields in (
        (LEDGER_TABLE_NAME, LEDGER_FIELDS),
        (RUN_LOG_TABLE_NAME, RUN_LOG_FIELDS),
    ):
        if name in existing:
            continue
        logger.info("Creating tracking table '%s'", name)
        client.create_table(base_id, name, fields)
        created.append(name)
    return created


class AirtableLedgerStore:
    def __init__(self, client: AirtableClient, base_id: str) -> None:
        self._client = client
        self._base_id = base_id

    def list_descriptors(self) -> list[ArchiveDescriptor]:
        descriptors = []
        for raw in self._client.list_records(self._base_id, LEDGER_TABLE_NAME):
            fields = raw.get("fields") or {}
            key = fields.get("Archive Key")
            destination_id = fields.get("Archive ID")
            if not key or not destination_id:
                continue
            descriptors.append(
                ArchiveDescriptor(
                    partition_key=str(key),
                    destination_name=str(fields.get("Archive Name") or ""),
                    destination_id=str(destination_id),
                    workspace_id=str(fields.get("Workspace ID") or ""),
                    link=str(fields.get("Link") or ""),
                    primary_collection_id=fields.get("Primary Table ID"),
                    created_at=raw.get("createdTime"),
                )
            )
        return descriptors

    def append_descriptor(self, descriptor: ArchiveDescriptor) -> None:
        self._client.create_records(
            self._base_id,
            LEDGER_TABLE_NAME,
            [
                {
                    "Archive Key": descriptor.partition_key,
                    "Archive Name": descriptor.destination_name,
                    "Archive ID": descriptor.destination_id,
                    "Workspace ID": descriptor.workspace_id,
                    "Link": descriptor.link,
                    "Primary Table ID": descriptor.primary_collection_id,
                }
            ],
        )


class AirtableRunLogStore:
    def __init__(self, client: AirtableClient, base_id: str) -> None:
        self._client = client
        self._base_id = base_id

    def append_entry(self, entry: RunLogEntry) -> None:
        self._client.create_records(
            self._base_id,
            RUN_LOG_TABLE_NAME,
            [
                {
                    "Run ID": entry.run_id,
                    "Timestamp": entry.timestamp,
                    "Status": STATUS_LABELS[entry.status],
                    "Total Records Processed": entry.total_processed,
                    "Total Records Archived": entry.total_archived,
                    "Errors": entry.errors_text,
                    "Execution Time (seconds)": entry.duration_seconds,
                    "Frequency Used": entry.frequency_used,
                    "Base IDs Created/Updated": "\n".join(entry.destination_ids),
                    "Archived Periods": "\n".join(entry.periods_touched),
                }
            ],
        )
