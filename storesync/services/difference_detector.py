"""Difference detection between a source-of-truth platform and a destination.

Entities are paired by a normalized matching key (see ``MATCHING_KEYS``).
Every source entity yields at most one Difference:

* no destination entity with its key -> creation (``fields_changed == ("*",)``)
* a destination entity whose tracked fields differ -> update listing the fields
* otherwise nothing

Destination-only entities are never reported as differences; ``find_orphans``
lists them separately for an explicit, human-initiated cleanup. Output order
follows source order, so repeated runs over the same inputs are identical.
"""
from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from storesync.errors import ValidationError
from storesync.models.db.enums import EntityKind, PlatformName
from storesync.models.schemas.entities import EntityBase
from storesync.models.schemas.sync import CREATE_MARKER, ComparisonSummary, DetectionReport, Difference
from storesync.services.mapping import comparable_fields
from storesync.utils import get_logger

logger = get_logger(__name__)

KeyFn = Callable[[EntityBase], Optional[str]]

NUMERIC_FIELDS = {"price", "compare_at_price"}


def normalize_key(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip().lower()
    return text or None


def _review_key(entity: Any) -> Optional[str]:
    product = normalize_key(entity.product_id)
    email = normalize_key(entity.reviewer_email)
    if product is None or email is None:
        return None
    return f"{product}|{email}"


MATCHING_KEYS: Dict[EntityKind, KeyFn] = {
    EntityKind.PRODUCT: lambda e: normalize_key(e.sku) or normalize_key(e.slug),
    EntityKind.COLLECTION: lambda e: normalize_key(e.slug),
    EntityKind.BLOG_POST: lambda e: normalize_key(e.slug),
    EntityKind.PAGE: lambda e: normalize_key(e.slug),
    EntityKind.CUSTOMER: lambda e: normalize_key(e.email),
    EntityKind.REVIEW: _review_key,
    EntityKind.SHIPPING_ZONE: lambda e: normalize_key(e.name),
}


def matching_key(entity: EntityBase) -> Optional[str]:
    return MATCHING_KEYS[EntityKind(entity.kind)](entity)  # type: ignore[attr-defined]


def normalize_value(field: str, value: Any) -> Any:
    """Canonical form used for equality; formatting-only differences compare equal."""
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if field in NUMERIC_FIELDS:
            try:
                return Decimal(text).normalize()
            except InvalidOperation:
                return text
        return text
    if isinstance(value, (list, tuple, set, frozenset)):
        items = sorted({str(v).strip().lower() for v in value if str(v).strip()})
        return tuple(items) or None
    return value


class FieldComparator:
    """Compares the tracked fields of two snapshots of the same kind."""

    def __init__(self, fields: Sequence[str]):
        self.fields = tuple(fields)

    @classmethod
    def for_platforms(cls, kind: EntityKind, source: PlatformName, destination: PlatformName) -> "FieldComparator":
        return cls(comparable_fields(kind, source, destination))

    def changed(self, source: EntityBase, destination: EntityBase) -> tuple[str, ...]:
        return tuple(
            f for f in self.fields
            if normalize_value(f, getattr(source, f, None)) != normalize_value(f, getattr(destination, f, None))
        )


def _index_destination(
    destination: Iterable[EntityBase],
    key_fn: KeyFn,
) -> tuple[Dict[str, EntityBase], List[str]]:
    index: Dict[str, EntityBase] = {}
    duplicates: List[str] = []
    for entity in destination:
        key = key_fn(entity)
        if key is None:
            continue
        if key in index and key not in duplicates:
            duplicates.append(key)
        index[key] = entity
    return index, duplicates


def detect_differences(
    kind: EntityKind,
    source: Sequence[EntityBase],
    destination: Sequence[EntityBase],
    source_platform: PlatformName,
    destination_platform: PlatformName,
    *,
    key_fn: Optional[KeyFn] = None,
    comparator: Optional[FieldComparator] = None,
    include_snapshots: bool = True,
) -> DetectionReport:
    """Compute the ordered differences that would bring ``destination`` in line with ``source``."""
    if source_platform == destination_platform:
        raise ValidationError("source and destination platforms must differ")
    key_fn = key_fn or MATCHING_KEYS[kind]
    comparator = comparator or FieldComparator.for_platforms(kind, source_platform, destination_platform)

    index, duplicate_keys = _index_destination(destination, key_fn)
    if duplicate_keys:
        logger.warning(
            "Duplicate matching keys on destination; last entity wins",
            kind=kind.value,
            platform=destination_platform.value,
            keys=duplicate_keys,
        )

    differences: List[Difference] = []
    matched = in_sync = unkeyed = 0
    for entity in source:
        key = key_fn(entity)
        if key is None:
            unkeyed += 1
            continue
        target = index.get(key)
        if target is None:
            fields_changed: tuple[str, ...] = (CREATE_MARKER,)
            destination_id = None
        else:
            matched += 1
            fields_changed = comparator.changed(entity, target)
            if not fields_changed:
                in_sync += 1
                continue
            destination_id = target.id
        differences.append(Difference(
            matching_key=key,
            kind=kind,
            source_platform=source_platform,
            destination_platform=destination_platform,
            fields_changed=fields_changed,
            source_id=entity.id,
            destination_id=destination_id,
            source_snapshot=entity if include_snapshots else None,
            title=str(getattr(entity, "title", None) or getattr(entity, "name", None) or getattr(entity, "email", None) or ""),
            slug=str(getattr(entity, "slug", None) or ""),
        ))

    if unkeyed:
        logger.warning(
            "Source entities without a matching key were skipped",
            kind=kind.value,
            platform=source_platform.value,
            count=unkeyed,
        )

    to_create = sum(1 for d in differences if d.is_creation)
    summary = ComparisonSummary(
        source_platform=source_platform,
        destination_platform=destination_platform,
        kind=kind,
        source_count=len(source),
        destination_count=len(destination),
        matched=matched,
        in_sync=in_sync,
        to_create=to_create,
        to_update=len(differences) - to_create,
        duplicate_keys=duplicate_keys,
        unkeyed_source=unkeyed,
    )
    logger.info(
        "Difference detection complete",
        kind=kind.value,
        source_platform=source_platform.value,
        destination_platform=destination_platform.value,
        to_create=summary.to_create,
        to_update=summary.to_update,
        in_sync=in_sync,
    )
    return DetectionReport(differences=differences, summary=summary)


def find_orphans(
    kind: EntityKind,
    source: Sequence[EntityBase],
    destination: Sequence[EntityBase],
    *,
    key_fn: Optional[KeyFn] = None,
) -> List[EntityBase]:
    """Destination entities whose key no source entity carries, in destination order."""
    key_fn = key_fn or MATCHING_KEYS[kind]
    source_keys = {k for k in (key_fn(e) for e in source) if k is not None}
    orphans = []
    for entity in destination:
        key = key_fn(entity)
        if key is not None and key not in source_keys:
            orphans.append(entity)
    return orphans


def find_duplicates(
    kind: EntityKind,
    entities: Sequence[EntityBase],
    *,
    key_fn: Optional[KeyFn] = None,
) -> Dict[str, List[str]]:
    """Matching keys shared by more than one entity on a single platform -> ids involved."""
    key_fn = key_fn or MATCHING_KEYS[kind]
    groups: Dict[str, List[str]] = {}
    for entity in entities:
        key = key_fn(entity)
        if key is not None:
            groups.setdefault(key, []).append(entity.id)
    return {k: ids for k, ids in groups.items() if len(ids) > 1}


__all__ = [
    "MATCHING_KEYS",
    "FieldComparator",
    "normalize_key",
    "normalize_value",
    "matching_key",
    "detect_differences",
    "find_orphans",
    "find_duplicates",
]
