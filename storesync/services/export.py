"""Flatten entity snapshots for CSV / JSON export."""
from __future__ import annotations

import csv
import io
from typing import Any, Dict, List, Sequence

from storesync.models.db.enums import EntityKind
from storesync.models.schemas.entities import EntityBase, entity_fields


def export_columns(kind: EntityKind) -> List[str]:
    return ["id", "platform", *entity_fields(kind)]


def flatten_entity(entity: EntityBase) -> Dict[str, Any]:
    """One flat row per entity; list fields are joined with commas."""
    row: Dict[str, Any] = {}
    for key, value in entity.model_dump(mode="json", exclude={"kind"}).items():
        if isinstance(value, list):
            value = ", ".join(str(v) for v in value)
        row[key] = value
    return row


def to_csv(kind: EntityKind, entities: Sequence[EntityBase]) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=export_columns(kind), extrasaction="ignore")
    writer.writeheader()
    for entity in entities:
        writer.writerow(flatten_entity(entity))
    return buffer.getvalue()


def to_json_rows(entities: Sequence[EntityBase]) -> List[Dict[str, Any]]:
    return [flatten_entity(e) for e in entities]


__all__ = ["export_columns", "flatten_entity", "to_csv", "to_json_rows"]
