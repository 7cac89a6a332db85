from .base import ResponseBase
from .entities import (
    EntityBase, Product, Collection, BlogPost, ContentPage, Customer, Review, ShippingZone,
    Entity, ENTITY_MODELS, parse_entity,
)
from .sync import (
    Difference,
    SyncResult,
    ComparisonSummary,
    DetectionReport,
    JobSnapshot,
    CompareRequest,
    DifferenceIn,
    SyncRequest,
    BulkMigrateRequest,
    SingleMigrateRequest,
    PreviewResponse,
    DeleteRequest,
    DeleteOutcome,
)
from .connections import Connection, ConnectionRead, ConnectionConfigIn
from .inventory import (
    InventoryDifference,
    InventoryReport,
    InventorySyncResult,
    InventorySyncReport,
    InventoryCompareRequest,
    InventorySyncRequest,
)

__all__ = [
    # Base
    "ResponseBase",

    # Entities
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

    # Sync / jobs
    "Difference",
    "SyncResult",
    "ComparisonSummary",
    "DetectionReport",
    "JobSnapshot",
    "CompareRequest",
    "DifferenceIn",
    "SyncRequest",
    "BulkMigrateRequest",
    "SingleMigrateRequest",
    "PreviewResponse",
    "DeleteRequest",
    "DeleteOutcome",

    # Connections
    "Connection",
    "ConnectionRead",
    "ConnectionConfigIn",

    # Inventory
    "InventoryDifference",
    "InventoryReport",
    "InventorySyncResult",
    "InventorySyncReport",
    "InventoryCompareRequest",
    "InventorySyncRequest",
]
