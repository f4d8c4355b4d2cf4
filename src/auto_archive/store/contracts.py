"""Collaborator contracts for the archive engine."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from auto_archive.domain.models import (
    ArchiveDescriptor,
    FieldSchema,
    RunLogEntry,
    SourceField,
    SourceRecord,
)


@dataclass(frozen=True)
class CreatedCollection:
    collection_id: str
    sub_collection_ids: tuple[str, ...]

    @property
    def primary_sub_collection_id(self) -> str:
        return self.sub_collection_ids[0]


class SourceStore(Protocol):
    @property
    def table_name(self) -> str: ...

    def list_fields(self) -> list[SourceField]: ...

    def ensure_flag_field(self, name: str) -> bool: ...

    def list_unmigrated_records(self, flag_field: str) -> list[SourceRecord]: ...

    def update_field_values(self, updates: list[tuple[str, dict[str, Any]]]) -> None: ...


class DestinationProvisioner(Protocol):
    def create_collection(
        self, name: str, table_name: str, schema: list[FieldSchema], workspace_id: str
    ) -> CreatedCollection: ...

    def bulk_create_records(
        self, collection_id: str, sub_collection: str, records: list[dict[str, Any]]
    ) -> int: ...

    def bulk_update_records(
        self, collection_id: str, sub_collection: str, updates: list[tuple[str, dict[str, Any]]]
    ) -> int: ...

    def link_for(self, collection_id: str) -> str: ...


class LedgerStore(Protocol):
    def list_descriptors(self) -> list[ArchiveDescriptor]: ...

    def append_descriptor(self, descriptor: ArchiveDescriptor) -> None: ...


class RunLogStore(Protocol):
    def append_entry(self, entry: RunLogEntry) -> None: ...


__all__ = [
    "CreatedCollection",
    "DestinationProvisioner",
    "LedgerStore",
    "RunLogStore",
    "SourceStore",
]
