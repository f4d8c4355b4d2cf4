"""Source table access through the Airtable REST API."""

from __future__ import annotations

import logging
from typing import Any

from auto_archive.airtable.client import AirtableClient
from auto_archive.domain.models import SourceField, SourceRecord
from auto_archive.utils.batching import chunked

logger = logging.getLogger(__name__)

# The REST API accepts at most 10 records per create/update request.
REST_MAX_RECORDS_PER_REQUEST = 10

FLAG_FIELD_TYPE = "checkbox"
FLAG_FIELD_OPTIONS: dict[str, str] = {"color": "greenBright", "icon": "check"}


class SourceReadError(RuntimeError):
    """Raised when the source table cannot be located or read."""


def _field_from_meta(raw: dict[str, Any]) -> SourceField:
    return SourceField(
        id=raw.get("id"),
        name=raw["name"],
        type=raw.get("type", ""),
        description=raw.get("description"),
        options=raw.get("options"),
    )


def flag_filter_formula(flag_field: str) -> str:
    escaped = flag_field.replace("}", "\\}")
    return f"NOT({{{escaped}}})"


class AirtableSourceStore:
    """The master table records are archived out of."""

    def __init__(self, client: AirtableClient, base_id: str, table: str) -> None:
        self._client = client
        self._base_id = base_id
        self._table_ref = table
        self._table_meta: dict[str, Any] | None = None

    def _describe(self, *, refresh: bool = False) -> dict[str, Any]:
        if self._table_meta is not None and not refresh:
            return self._table_meta
        for table in self._client.list_tables(self._base_id):
            if self._table_ref in (table.get("id"), table.get("name")):
                self._table_meta = table
                return table
        raise SourceReadError(
            f"Table {self._table_ref!r} not found in base {self._base_id}"
        )

    @property
    def table_id(self) -> str:
        return self._describe()["id"]

    @property
    def table_name(self) -> str:
        return self._describe()["name"]

    def list_fields(self) -> list[SourceField]:
        return [_field_from_meta(raw) for raw in self._describe().get("fields") or []]

    def ensure_flag_field(self, name: str) -> bool:
        """Create the boolean migrated-flag field if the table lacks it."""
        if any(field.name == name for field in self.list_fields()):
            logger.debug("Field '%s' already exists", name)
            return False
        logger.info("Creating '%s' field on %s", name, self.table_name)
        self._client.create_field(
            self._base_id, self.table_id, name, FLAG_FIELD_TYPE, dict(FLAG_FIELD_OPTIONS)
        )
        self._describe(refresh=True)
        return True

    def list_unmigrated_records(self, flag_field: str) -> list[SourceRecord]:
        # A formula naming a missing field is rejected; without the field nothing is flagged.
        has_flag = any(field.name == flag_field for field in self.list_fields())
        raw_records = self._client.list_records(
            self._base_id,
            self.table_id,
            filter_formula=flag_filter_formula(flag_field) if has_flag else None,
        )
        records = [
            SourceRecord(id=raw["id"], fields=dict(raw.get("fields") or {}))
            for raw in raw_records
        ]
        return [record for record in records if not record.get(flag_field)]

    def update_field_values(self, updates: list[tuple[str, dict[str, Any]]]) -> None:
        """Apply field updates, split into requests the REST API accepts."""
        items = [{"id": record_id, "fields": fields} for record_id, fields in updates]
        for chunk in chunked(items, REST_MAX_RECORDS_PER_REQUEST):
            self._client.update_records(self._base_id, self.table_id, chunk)

