"""Portable schema projection for archive bases.

Field definitions read from the live table carry server-assigned ids and
options the create-base endpoint rejects. :class:`SchemaProjector` keeps only
what can be recreated, keyed by field type.
"""

from __future__ import annotations

from typing import Any, Iterable

from auto_archive.domain.models import FieldSchema, SourceField

CHECKBOX_TYPE = "checkbox"
CHOICE_TYPES = frozenset({"singleSelect", "multipleSelects"})
NUMBER_TYPE = "number"
DATE_TYPE = "date"
ATTACHMENT_TYPE = "multipleAttachments"

DEFAULT_DATE_FORMAT: dict[str, str] = {"name": "local", "format": "l"}


def _project_choices(options: dict[str, Any]) -> dict[str, Any]:
    choices = []
    for choice in options.get("choices") or []:
        projected = {"name": choice.get("name")}
        if choice.get("color") is not None:
            projected["color"] = choice["color"]
        choices.append(projected)
    return {"choices": choices}


def project_field(source: SourceField) -> FieldSchema:
    options = source.options or {}
    projected: dict[str, Any] | None = None

    if source.type == CHECKBOX_TYPE:
        projected = dict(source.options) if source.options is not None else None
    elif source.type in CHOICE_TYPES:
        projected = _project_choices(options)
    elif source.type == NUMBER_TYPE:
        if "precision" in options:
            projected = {"precision": options["precision"]}
    elif source.type == DATE_TYPE:
        projected = {"dateFormat": options.get("dateFormat") or dict(DEFAULT_DATE_FORMAT)}
    # Attachment options are not portable; other types carry none.

    return FieldSchema(
        type=source.type,
        name=source.name,
        description=source.description or "",
        options=projected,
    )


class SchemaProjector:
    def __init__(self, flag_field: str) -> None:
        self.flag_field = flag_field

    def project(self, fields: Iterable[SourceField]) -> list[FieldSchema]:
        """Project fields in table order, leaving out the migrated flag."""
        return [project_field(field) for field in fields if field.name != self.flag_field]
