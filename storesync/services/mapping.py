"""Table-driven translation between platform payloads and universal entities.

Each platform declares, per entity kind, a tuple of ``FieldRule`` rows:

* ``path``: dotted location of the value in the platform's read payload
  (numeric segments index into lists, e.g. ``variants.edges.0.node.sku``).
* ``write_path``: where the value goes in a create/update payload. Defaults to
  ``path``; ``None`` marks the field read-only on that platform.
* ``values``: universal -> platform enumeration map (reversed on read).
* ``encode`` / ``decode``: shape converters for list/object fields.

Fields with no rule on a platform are unsupported there. Comparison and
translation both consult these tables so the detector never reports a change
the executor cannot write.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

from storesync.errors import PermanentError
from storesync.models.db.enums import EntityKind, PlatformName
from storesync.models.schemas.entities import ENTITY_MODELS, EntityBase, entity_fields

_UNSET = object()


@dataclass(frozen=True)
class FieldRule:
    field: str
    path: str
    write_path: Optional[str] | object = _UNSET
    values: Optional[Mapping[str, Any]] = None
    fallback: Any = None
    encode: Optional[Callable[[Any], Any]] = None
    decode: Optional[Callable[[Any], Any]] = None

    @property
    def target(self) -> Optional[str]:
        return self.path if self.write_path is _UNSET else self.write_path  # type: ignore[return-value]

    def read(self, raw: Mapping[str, Any]) -> Any:
        value = get_path(raw, self.path)
        if value is None:
            return None
        if self.decode is not None:
            value = self.decode(value)
        if self.values is not None:
            reverse = {v: k for k, v in self.values.items()}
            value = reverse.get(value, self.fallback)
        return value

    def write(self, value: Any) -> Any:
        if self.values is not None:
            value = self.values.get(value, value)
        if self.encode is not None:
            value = self.encode(value)
        return value


# ----------------------------- path helpers ----------------------------- #
def get_path(data: Any, path: str) -> Any:
    current = data
    for segment in path.split("."):
        if current is None:
            return None
        if isinstance(current, list):
            if not segment.isdigit() or int(segment) >= len(current):
                return None
            current = current[int(segment)]
        elif isinstance(current, Mapping):
            current = current.get(segment)
        else:
            return None
    return current


def set_path(data: dict[str, Any], path: str, value: Any) -> None:
    segments = path.split(".")
    current: Any = data
    for i, segment in enumerate(segments[:-1]):
        nxt = segments[i + 1]
        container: Any = [] if nxt.isdigit() else {}
        if isinstance(current, list):
            idx = int(segment)
            while len(current) <= idx:
                current.append(None)
            if current[idx] is None:
                current[idx] = container
            current = current[idx]
        else:
            current = current.setdefault(segment, container)
    last = segments[-1]
    if isinstance(current, list):
        idx = int(last)
        while len(current) <= idx:
            current.append(None)
        current[idx] = value
    else:
        current[last] = value


# ----------------------------- converters ----------------------------- #
def _names_from_objects(items: Any) -> tuple[str, ...]:
    if not isinstance(items, list):
        return ()
    names = []
    for item in items:
        name = item.get("name") if isinstance(item, Mapping) else item
        if name:
            names.append(str(name))
    return tuple(names)


def _objects_from_names(names: Any) -> list[dict[str, str]]:
    return [{"name": n} for n in names or ()]


def _string_tuple(items: Any) -> tuple[str, ...]:
    if isinstance(items, str):
        return tuple(t.strip() for t in items.split(",") if t.strip())
    return tuple(str(t) for t in items or ())


def _as_list(items: Any) -> list[str]:
    return list(items or ())


def _str_or_none(value: Any) -> Optional[str]:
    if value in (None, ""):
        return None
    return str(value)


def _iso(value: Any) -> Any:
    return value.isoformat() if hasattr(value, "isoformat") else value


_WOO_PRODUCT_STATUS = {"published": "publish", "draft": "draft", "archived": "private"}
_WOO_POST_STATUS = {"published": "publish", "draft": "draft"}
_WOO_REVIEW_STATUS = {"approved": "approved", "pending": "hold", "spam": "spam"}
_SHOPIFY_PRODUCT_STATUS = {"published": "ACTIVE", "draft": "DRAFT", "archived": "ARCHIVED"}
_SHOPIFY_POST_STATUS = {"published": True, "draft": False}


FIELD_MAPS: dict[PlatformName, dict[EntityKind, tuple[FieldRule, ...]]] = {
    PlatformName.WOOCOMMERCE: {
        EntityKind.PRODUCT: (
            FieldRule("title", "name"),
            FieldRule("slug", "slug"),
            FieldRule("description", "description"),
            FieldRule("status", "status", values=_WOO_PRODUCT_STATUS, fallback="draft"),
            FieldRule("price", "regular_price", decode=_str_or_none),
            FieldRule("sku", "sku", decode=_str_or_none),
            FieldRule("inventory_quantity", "stock_quantity"),
            FieldRule("tags", "tags", encode=_objects_from_names, decode=_names_from_objects),
        ),
        EntityKind.COLLECTION: (
            FieldRule("title", "name"),
            FieldRule("slug", "slug"),
            FieldRule("description", "description"),
        ),
        EntityKind.BLOG_POST: (
            FieldRule("title", "title.rendered", write_path="title"),
            FieldRule("slug", "slug"),
            FieldRule("content", "content.rendered", write_path="content"),
            FieldRule("excerpt", "excerpt.rendered", write_path="excerpt"),
            FieldRule("status", "status", values=_WOO_POST_STATUS, fallback="draft"),
            FieldRule("published_at", "date_gmt", encode=_iso),
        ),
        EntityKind.PAGE: (
            FieldRule("title", "title.rendered", write_path="title"),
            FieldRule("slug", "slug"),
            FieldRule("content", "content.rendered", write_path="content"),
            FieldRule("status", "status", values=_WOO_POST_STATUS, fallback="draft"),
        ),
        EntityKind.CUSTOMER: (
            FieldRule("email", "email"),
            FieldRule("first_name", "first_name"),
            FieldRule("last_name", "last_name"),
            FieldRule("phone", "billing.phone", decode=_str_or_none),
        ),
        EntityKind.REVIEW: (
            FieldRule("product_id", "product_id", decode=str, encode=int),
            FieldRule("rating", "rating"),
            FieldRule("content", "review"),
            FieldRule("reviewer_name", "reviewer"),
            FieldRule("reviewer_email", "reviewer_email"),
            FieldRule("status", "status", values=_WOO_REVIEW_STATUS, fallback="pending"),
            FieldRule("verified", "verified", write_path=None),
        ),
        EntityKind.SHIPPING_ZONE: (
            FieldRule("name", "name"),
            FieldRule("order", "order"),
        ),
    },
    PlatformName.SHOPIFY: {
        EntityKind.PRODUCT: (
            FieldRule("title", "title"),
            FieldRule("slug", "handle"),
            FieldRule("description", "descriptionHtml"),
            FieldRule("status", "status", values=_SHOPIFY_PRODUCT_STATUS, fallback="draft"),
            FieldRule("price", "variants.edges.0.node.price", write_path="variants.0.price", decode=_str_or_none),
            FieldRule("compare_at_price", "variants.edges.0.node.compareAtPrice", write_path="variants.0.compareAtPrice", decode=_str_or_none),
            FieldRule("sku", "variants.edges.0.node.sku", write_path="variants.0.inventoryItem.sku", decode=_str_or_none),
            # Not a variant input field; ShopifyClient lifts it out and calls inventorySetQuantities.
            FieldRule("inventory_quantity", "variants.edges.0.node.inventoryQuantity", write_path="variants.0.inventoryQuantity"),
            FieldRule("tags", "tags", encode=_as_list, decode=_string_tuple),
            FieldRule("product_type", "productType", decode=_str_or_none),
        ),
        EntityKind.COLLECTION: (
            FieldRule("title", "title"),
            FieldRule("slug", "handle"),
            FieldRule("description", "descriptionHtml"),
        ),
        EntityKind.BLOG_POST: (
            FieldRule("title", "title"),
            FieldRule("slug", "handle"),
            FieldRule("content", "body"),
            FieldRule("excerpt", "summary"),
            FieldRule("status", "isPublished", values=_SHOPIFY_POST_STATUS, fallback="draft"),
            FieldRule("tags", "tags", encode=_as_list, decode=_string_tuple),
            FieldRule("published_at", "publishedAt", write_path="publishDate", encode=_iso),
        ),
        EntityKind.PAGE: (
            FieldRule("title", "title"),
            FieldRule("slug", "handle"),
            FieldRule("content", "body"),
            FieldRule("status", "isPublished", values=_SHOPIFY_POST_STATUS, fallback="draft"),
        ),
        EntityKind.CUSTOMER: (
            FieldRule("email", "email"),
            FieldRule("first_name", "firstName"),
            FieldRule("last_name", "lastName"),
            FieldRule("phone", "phone", decode=_str_or_none),
            FieldRule("tags", "tags", encode=_as_list, decode=_string_tuple),
            FieldRule("note", "note", decode=_str_or_none),
        ),
    },
}

# The sandbox platform stores universal snapshots as-is.
FIELD_MAPS[PlatformName.MEMORY] = {
    kind: tuple(FieldRule(name, name) for name in entity_fields(kind))
    for kind in EntityKind
}

# Extra top-level keys a platform needs whenever a given field is written.
WRITE_COMPANIONS: dict[tuple[PlatformName, EntityKind, str], dict[str, Any]] = {
    (PlatformName.WOOCOMMERCE, EntityKind.PRODUCT, "inventory_quantity"): {"manage_stock": True},
}

# Identifier location in each platform's read payload.
ID_PATHS: dict[PlatformName, str] = {
    PlatformName.WOOCOMMERCE: "id",
    PlatformName.SHOPIFY: "id",
    PlatformName.MEMORY: "id",
}

# Fields the detector compares, in reporting order.
TRACKED_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.PRODUCT: ("title", "description", "status", "price", "compare_at_price", "sku", "inventory_quantity", "tags", "product_type"),
    EntityKind.COLLECTION: ("title", "description"),
    EntityKind.BLOG_POST: ("title", "content", "excerpt", "status", "tags"),
    EntityKind.PAGE: ("title", "content", "status"),
    EntityKind.CUSTOMER: ("first_name", "last_name", "phone", "tags", "note"),
    EntityKind.REVIEW: ("rating", "content", "reviewer_name", "status"),
    EntityKind.SHIPPING_ZONE: ("name", "order"),
}

REQUIRED_FIELDS: dict[EntityKind, tuple[str, ...]] = {
    EntityKind.PRODUCT: ("title",),
    EntityKind.COLLECTION: ("title",),
    EntityKind.BLOG_POST: ("title", "content"),
    EntityKind.PAGE: ("title",),
    EntityKind.CUSTOMER: ("email",),
    EntityKind.REVIEW: ("product_id", "content", "reviewer_name", "reviewer_email"),
    EntityKind.SHIPPING_ZONE: ("name",),
}


def rules_for(platform: PlatformName, kind: EntityKind) -> tuple[FieldRule, ...]:
    try:
        return FIELD_MAPS[platform][kind]
    except KeyError:
        raise PermanentError(f"{kind.value} is not supported on {platform.value}", platform=platform.value) from None


def supports(platform: PlatformName, kind: EntityKind, field: str, *, write: bool = False) -> bool:
    for rule in FIELD_MAPS.get(platform, {}).get(kind, ()):
        if rule.field == field:
            return rule.target is not None if write else True
    return False


def comparable_fields(kind: EntityKind, source: PlatformName, destination: PlatformName) -> tuple[str, ...]:
    """Tracked fields readable on both sides and writable on the destination."""
    return tuple(
        f for f in TRACKED_FIELDS[kind]
        if supports(source, kind, f) and supports(destination, kind, f, write=True)
    )


def from_payload(platform: PlatformName, kind: EntityKind, raw: Mapping[str, Any]) -> EntityBase:
    """Build a universal snapshot from a platform-native payload."""
    data: dict[str, Any] = {}
    for rule in rules_for(platform, kind):
        value = rule.read(raw)
        if value is not None:
            data[rule.field] = value
    raw_id = get_path(raw, ID_PATHS[platform])
    if raw_id is None:
        raise PermanentError(f"{platform.value} {kind.value} payload has no id", platform=platform.value)
    model = ENTITY_MODELS[kind]
    return model(id=str(raw_id), platform=platform, **data)


def to_payload(entity: EntityBase, platform: PlatformName, *, fields: Optional[tuple[str, ...]] = None) -> dict[str, Any]:
    """Translate a universal snapshot into a create/update payload for ``platform``.

    ``fields`` restricts the payload to a subset (partial update); unset values
    are omitted so an update never blanks a destination field.
    """
    kind = EntityKind(entity.kind)  # type: ignore[attr-defined]
    payload: dict[str, Any] = {}
    for rule in rules_for(platform, kind):
        target = rule.target
        if target is None:
            continue
        if fields is not None and rule.field not in fields:
            continue
        value = getattr(entity, rule.field, None)
        if value is None:
            continue
        set_path(payload, target, rule.write(value))
        payload.update(WRITE_COMPANIONS.get((platform, kind, rule.field), {}))
    return payload


def validate_entity(entity: EntityBase) -> list[str]:
    """Return human readable problems that would make a destination write fail."""
    kind = EntityKind(entity.kind)  # type: ignore[attr-defined]
    errors: list[str] = []
    for field in REQUIRED_FIELDS[kind]:
        value = getattr(entity, field, None)
        if value in (None, "", ()):
            errors.append(f"{kind.value} {field} is required")
    if kind == EntityKind.CUSTOMER and not (getattr(entity, "first_name") or getattr(entity, "last_name")):
        errors.append("customer name is required")
    if kind == EntityKind.REVIEW and not 1 <= getattr(entity, "rating") <= 5:
        errors.append("review rating must be between 1 and 5")
    return errors


def preview_warnings(entity: EntityBase, source: PlatformName, destination: PlatformName) -> list[str]:
    """Data-loss warnings for a migration, without touching the destination."""
    kind = EntityKind(entity.kind)  # type: ignore[attr-defined]
    warnings: list[str] = []
    for rule in rules_for(source, kind):
        value = getattr(entity, rule.field, None)
        if value in (None, "", ()):
            continue
        if not supports(destination, kind, rule.field, write=True):
            warnings.append(f"{rule.field} is not writable on {destination.value} and will be dropped")
    if kind in (EntityKind.BLOG_POST, EntityKind.PAGE):
        content = getattr(entity, "content", "")
        if "[" in content and source == PlatformName.WOOCOMMERCE:
            warnings.append("content contains WordPress shortcodes that will not render on the destination")
        if "<img" in content:
            warnings.append("image URLs still point at the source platform")
    return warnings


__all__ = [
    "FieldRule",
    "FIELD_MAPS",
    "TRACKED_FIELDS",
    "REQUIRED_FIELDS",
    "get_path",
    "set_path",
    "rules_for",
    "supports",
    "comparable_fields",
    "from_payload",
    "to_payload",
    "validate_entity",
    "preview_warnings",
]
