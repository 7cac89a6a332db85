"""
Universal entity snapshots.

Each kind is a frozen pydantic model tagged by ``kind`` so a snapshot can be
carried through HTTP payloads and job records and re-parsed without losing its
type. Platform clients translate their native shapes into these models via the
mapping tables in ``storesync.services.mapping``.
"""
from datetime import datetime
from typing import Annotated, Literal, Optional, Union, Any

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from storesync.models.db.enums import EntityKind, PlatformName


class EntityBase(BaseModel):
    """Fields shared by every snapshot: the platform-native id and its platform."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Platform-native identifier")
    platform: PlatformName


class Product(EntityBase):
    kind: Literal["product"] = "product"
    title: str = ""
    slug: str = ""
    description: str = ""
    status: Literal["draft", "published", "archived"] = "draft"
    price: Optional[str] = None
    compare_at_price: Optional[str] = None
    sku: Optional[str] = None
    inventory_quantity: Optional[int] = None
    tags: tuple[str, ...] = ()
    product_type: Optional[str] = None


class Collection(EntityBase):
    kind: Literal["collection"] = "collection"
    title: str = ""
    slug: str = ""
    description: str = ""


class BlogPost(EntityBase):
    kind: Literal["blog_post"] = "blog_post"
    title: str = ""
    slug: str = ""
    content: str = ""
    excerpt: str = ""
    status: Literal["draft", "published"] = "draft"
    tags: tuple[str, ...] = ()
    published_at: Optional[datetime] = None


class ContentPage(EntityBase):
    """A standalone storefront page (about, FAQ, policies)."""
    kind: Literal["page"] = "page"
    title: str = ""
    slug: str = ""
    content: str = ""
    status: Literal["draft", "published"] = "draft"


class Customer(EntityBase):
    kind: Literal["customer"] = "customer"
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    phone: Optional[str] = None
    tags: tuple[str, ...] = ()
    note: Optional[str] = None


class Review(EntityBase):
    kind: Literal["review"] = "review"
    product_id: str = ""
    rating: int = Field(default=0, ge=0, le=5)
    title: Optional[str] = None
    content: str = ""
    reviewer_name: str = ""
    reviewer_email: str = ""
    status: Literal["approved", "pending", "spam"] = "pending"
    verified: bool = False


class ShippingZone(EntityBase):
    kind: Literal["shipping_zone"] = "shipping_zone"
    name: str = ""
    order: int = 0


Entity = Annotated[
    Union[Product, Collection, BlogPost, ContentPage, Customer, Review, ShippingZone],
    Field(discriminator="kind"),
]

ENTITY_MODELS: dict[EntityKind, type[EntityBase]] = {
    EntityKind.PRODUCT: Product,
    EntityKind.COLLECTION: Collection,
    EntityKind.BLOG_POST: BlogPost,
    EntityKind.PAGE: ContentPage,
    EntityKind.CUSTOMER: Customer,
    EntityKind.REVIEW: Review,
    EntityKind.SHIPPING_ZONE: ShippingZone,
}

_entity_adapter: TypeAdapter = TypeAdapter(Entity)


def parse_entity(data: dict[str, Any]) -> EntityBase:
    """Validate a tagged dict (``kind`` required) into its entity model."""
    return _entity_adapter.validate_python(data)


def entity_fields(kind: EntityKind) -> list[str]:
    """Kind-specific field names, excluding the shared id/platform/kind fields."""
    model = ENTITY_MODELS[kind]
    return [name for name in model.model_fields if name not in ("id", "platform", "kind")]


__all__ = [
    "EntityBase",
    "Product",
    "Collection",
    "BlogPost",
    "ContentPage",
    "Customer",
    "Review",
    "ShippingZone",
    "Entity",
    "ENTITY_MODELS",
    "parse_entity",
    "entity_fields",
]
