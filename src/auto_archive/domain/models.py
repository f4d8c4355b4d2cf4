"""Domain objects for archive runs."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

_FREQUENCY_ALIASES = {
    "1m": "monthly",
    "3m": "quarterly",
    "6m": "semiannual",
    "12m": "annual",
    "month": "monthly",
    "quarter": "quarterly",
    "semi-yearly": "semiannual",
    "semiyearly": "semiannual",
    "yearly": "annual",
}


class Frequency(str, Enum):
    """How wide each archive period is."""

    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    SEMIANNUAL = "semiannual"
    ANNUAL = "annual"

    @classmethod
    def parse(cls, value: "str | Frequency") -> "Frequency":
        if isinstance(value, Frequency):
            return value
        normalized = str(value).strip().lower()
        normalized = _FREQUENCY_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            raise ValueError(f"Unsupported archive frequency: {value!r}") from None


class RunStatus(str, Enum):
    SUCCESS = "Success"
    PARTIAL_SUCCESS = "PartialSuccess"
    FAILURE = "Failure"


@dataclass(frozen=True)
class SourceField:
    """A field definition as reported by the live source table."""

    id: str | None
    name: str
    type: str
    description: str | None = None
    options: dict[str, Any] | None = None


@dataclass(frozen=True)
class FieldSchema:
    """Portable, creation-ready projection of one field."""

    type: str
    name: str
    description: str = ""
    options: dict[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "type": self.type,
            "name": self.name,
            "description": self.description,
        }
        if self.options is not None:
            payload["options"] = self.options
        return payload


@dataclass
class SourceRecord:
    id: str
    fields: dict[str, Any] = field(default_factory=dict)

    def get(self, name: str) -> Any:
        return self.fields.get(name)


@dataclass(frozen=True)
class ArchiveDescriptor:
    """Ledger row binding one partition key to its destination base."""

    partition_key: str
    destination_name: str
    destination_id: str
    workspace_id: str
    link: str
    primary_collection_id: str | None
    created_at: str | None = None


@dataclass(frozen=True)
class RunLogEntry:
    run_id: str
    timestamp: str
    status: RunStatus
    total_processed: int
    total_archived: int
    errors: list[str]
    duration_seconds: float
    frequency_used: str
    periods_touched: list[str]
    destination_ids: list[str] = field(default_factory=list)

    @property
    def errors_text(self) -> str:
        return "\n".join(self.errors)
