"""Central Enum definitions for core domain states.

These replace scattered string literals so DB models, schemas, clients and
the job machinery agree on platform names, entity kinds and job states.
"""
from __future__ import annotations
import enum


class PlatformName(str, enum.Enum):
    WOOCOMMERCE = "woocommerce"
    SHOPIFY = "shopify"
    MEMORY = "memory"


class EntityKind(str, enum.Enum):
    PRODUCT = "product"
    COLLECTION = "collection"
    BLOG_POST = "blog_post"
    PAGE = "page"
    CUSTOMER = "customer"
    REVIEW = "review"
    SHIPPING_ZONE = "shipping_zone"


# Kinds the diff/sync pipeline can move between platforms. Shipping zones are
# export-only.
SYNCABLE_KINDS: frozenset[EntityKind] = frozenset({
    EntityKind.PRODUCT,
    EntityKind.COLLECTION,
    EntityKind.BLOG_POST,
    EntityKind.PAGE,
    EntityKind.CUSTOMER,
    EntityKind.REVIEW,
})


class JobStatus(str, enum.Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class LogLevel(str, enum.Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


__all__ = [
    "PlatformName",
    "EntityKind",
    "SYNCABLE_KINDS",
    "JobStatus",
    "LogLevel",
]
