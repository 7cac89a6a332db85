"""
Pydantic schemas for stock-level comparison and sync.
"""
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from storesync.models.db.enums import PlatformName

StockStatus = Literal["instock", "outofstock"]


class InventoryDifference(BaseModel):
    """A matched product whose stock differs between the two stores."""
    matching_key: str
    title: str = ""
    sku: str = ""
    source_platform: PlatformName
    destination_platform: PlatformName
    source_id: str
    destination_id: str
    source_quantity: int
    destination_quantity: int
    difference: int = Field(description="source_quantity - destination_quantity")
    source_status: StockStatus
    destination_status: StockStatus


class InventorySummary(BaseModel):
    source_platform: PlatformName
    destination_platform: PlatformName
    source_count: int
    destination_count: int
    matched: int
    with_differences: int
    untracked: int = Field(0, description="Matched products where neither side tracks stock")


class InventoryReport(BaseModel):
    differences: List[InventoryDifference]
    summary: InventorySummary


class InventorySyncResult(BaseModel):
    index: int = Field(ge=0)
    matching_key: str
    title: str = ""
    destination_id: str
    success: bool
    old_quantity: int
    new_quantity: int
    error_message: Optional[str] = None
    error_kind: Optional[str] = None
    attempts: int = 0
    platform: PlatformName


class InventorySyncSummary(BaseModel):
    total: int
    succeeded: int
    failed: int


class InventorySyncReport(BaseModel):
    results: List[InventorySyncResult]
    summary: InventorySyncSummary


# ----------------------------- request bodies ----------------------------- #
class InventoryCompareRequest(BaseModel):
    source_of_truth: str = Field("", description="woocommerce or shopify")


class InventoryItemIn(BaseModel):
    """One stock correction as posted by callers, usually copied from a comparison."""
    matching_key: str
    destination_id: str
    source_quantity: int
    destination_quantity: int = 0
    title: str = ""


class InventorySyncRequest(BaseModel):
    source_of_truth: str = Field("", description="woocommerce or shopify")
    items: List[InventoryItemIn] = Field(default_factory=list)
