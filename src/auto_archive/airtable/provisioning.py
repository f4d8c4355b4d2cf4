"""Archive base provisioning through the Airtable metadata API."""

from __future__ import annotations

import logging
from typing import Any

from auto_archive.airtable.client import AirtableApiError, AirtableClient
from auto_archive.airtable.source import REST_MAX_RECORDS_PER_REQUEST
from auto_archive.domain.models import FieldSchema
from auto_archive.store.contracts import CreatedCollection
from auto_archive.utils.batching import chunked
from auto_archive.utils.http import base_link

logger = logging.getLogger(__name__)


class AirtableProvisioner:
    """Creates archive bases and writes records into them."""

    def __init__(self, client: AirtableClient, web_url: str) -> None:
        self._client = client
        self._web_url = web_url

    def create_collection(
        self, name: str, table_name: str, schema: list[FieldSchema], workspace_id: str
    ) -> CreatedCollection:
        data = self._client.create_base(
            name,
            workspace_id,
            [{"name": table_name, "fields": [field.to_payload() for field in schema]}],
        )
        base_id = data.get("id")
        table_ids = tuple(
            str(table["id"]) for table in data.get("tables") or [] if table.get("id")
        )
        if not base_id or not table_ids:
            raise AirtableApiError(f"Create base '{name}' returned no base or table id")
        logger.info("Created base %s (%s), primary table %s", name, base_id, table_ids[0])
        return CreatedCollection(collection_id=str(base_id), sub_collection_ids=table_ids)

    def bulk_create_records(
        self, collection_id: str, sub_collection: str, records: list[dict[str, Any]]
    ) -> int:
        created = self._client.create_records(collection_id, sub_collection, records)
        return len(created)

    def bulk_update_records(
        self, collection_id: str, sub_collection: str, updates: list[tuple[str, dict[str, Any]]]
    ) -> int:
        items = [{"id": record_id, "fields": fields} for record_id, fields in updates]
        updated = 0
        for chunk in chunked(items, REST_MAX_RECORDS_PER_REQUEST):
            updated += len(self._client.update_records(collection_id, sub_collection, chunk))
        return updated

    def link_for(self, collection_id: str) -> str:
        return base_link(self._web_url, collection_id)
