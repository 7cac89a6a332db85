"""Input checks shared by the sync and migrate endpoints."""
from __future__ import annotations

from typing import List, Sequence, Tuple

import pydantic

from storesync.config import SYNC_PLATFORMS
from storesync.errors import ValidationError
from storesync.models.db.enums import SYNCABLE_KINDS, EntityKind, PlatformName
from storesync.models.schemas.sync import Difference, DifferenceIn


def resolve_sync_platforms(source_of_truth: str) -> Tuple[PlatformName, PlatformName]:
    """(source, destination) for a source of truth; the destination is the other store."""
    value = (source_of_truth or "").strip().lower()
    if value not in SYNC_PLATFORMS:
        raise ValidationError(
            f"Invalid source of truth '{source_of_truth}'; expected one of {', '.join(SYNC_PLATFORMS)}"
        )
    destination = next(p for p in SYNC_PLATFORMS if p != value)
    return PlatformName(value), PlatformName(destination)


def resolve_kind(kind: str, *, syncable_only: bool = True) -> EntityKind:
    try:
        resolved = EntityKind(kind)
    except ValueError:
        raise ValidationError(f"Unknown entity type '{kind}'") from None
    if syncable_only and resolved not in SYNCABLE_KINDS:
        raise ValidationError(f"{resolved.value} cannot be synced")
    return resolved


def build_differences(
    kind: EntityKind,
    source: PlatformName,
    destination: PlatformName,
    items: Sequence[DifferenceIn],
) -> List[Difference]:
    """Attach kind and platforms to posted differences."""
    if not items:
        raise ValidationError("differences must be a non-empty list")
    differences = []
    for i, item in enumerate(items):
        try:
            differences.append(Difference(
                matching_key=item.matching_key,
                kind=kind,
                source_platform=source,
                destination_platform=destination,
                fields_changed=tuple(item.fields_changed),
                source_id=item.source_id,
                destination_id=item.destination_id,
                source_snapshot=item.source_snapshot,
                title=item.title,
                slug=item.slug,
            ))
        except pydantic.ValidationError as e:
            raise ValidationError(f"differences[{i}] is invalid: {e.errors()[0]['msg']}") from e
    return differences


__all__ = ["resolve_sync_platforms", "resolve_kind", "build_differences"]
