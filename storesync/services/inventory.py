"""Stock-level comparison and correction between the two stores.

Products are paired by their matching key (SKU, else slug) and, failing that,
by normalized title. Only the first variant's quantity is compared, the same
variant the product mapping reads. A quantity the platform does not report is
taken as zero; pairs where neither side reports one are counted as untracked
and skipped.

``sync_inventory`` writes the source quantity onto each posted destination
product through ``PlatformFetcher.call``, so corrections get the same retry
and circuit breaker treatment as any other write. One failed item never stops
the rest.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from storesync.errors import PermanentError, ValidationError
from storesync.integrations.base import PlatformClient
from storesync.models.db.enums import EntityKind, PlatformName
from storesync.models.schemas.entities import EntityBase, Product
from storesync.models.schemas.inventory import (
    InventoryDifference,
    InventoryItemIn,
    InventoryReport,
    InventorySummary,
    InventorySyncReport,
    InventorySyncResult,
    InventorySyncSummary,
)
from storesync.services.difference_detector import matching_key, normalize_key
from storesync.services.mapping import to_payload
from storesync.services.platform_fetcher import PlatformFetcher
from storesync.services.sync_executor import error_kind_of
from storesync.utils import get_logger

logger = get_logger(__name__)

STOCK_FIELDS = ("inventory_quantity",)


def stock_status(quantity: int) -> str:
    return "instock" if quantity > 0 else "outofstock"


def _title_key(entity: EntityBase) -> Optional[str]:
    key = normalize_key(getattr(entity, "title", None))
    return f"title:{key}" if key else None


def _index(products: Sequence[EntityBase]) -> Dict[str, EntityBase]:
    index: Dict[str, EntityBase] = {}
    for product in products:
        for key in (matching_key(product), _title_key(product)):
            if key is not None:
                index.setdefault(key, product)
    return index


def compare_inventory(
    source: Sequence[EntityBase],
    destination: Sequence[EntityBase],
    source_platform: PlatformName,
    destination_platform: PlatformName,
) -> InventoryReport:
    """Report matched products whose stock differs; unmatched products are ignored."""
    if source_platform == destination_platform:
        raise ValidationError("source and destination platforms must differ")
    index = _index(destination)

    differences: List[InventoryDifference] = []
    matched = untracked = 0
    for product in source:
        key = matching_key(product)
        target = index.get(key) if key else None
        if target is None:
            title_key = _title_key(product)
            target = index.get(title_key) if title_key else None
        if target is None:
            continue
        matched += 1

        source_qty = getattr(product, "inventory_quantity", None)
        destination_qty = getattr(target, "inventory_quantity", None)
        if source_qty is None and destination_qty is None:
            untracked += 1
            continue
        source_qty = source_qty or 0
        destination_qty = destination_qty or 0
        if source_qty == destination_qty:
            continue
        differences.append(InventoryDifference(
            matching_key=key or _title_key(product) or product.id,
            title=getattr(product, "title", "") or "",
            sku=getattr(product, "sku", None) or "",
            source_platform=source_platform,
            destination_platform=destination_platform,
            source_id=product.id,
            destination_id=target.id,
            source_quantity=source_qty,
            destination_quantity=destination_qty,
            difference=source_qty - destination_qty,
            source_status=stock_status(source_qty),
            destination_status=stock_status(destination_qty),
        ))

    summary = InventorySummary(
        source_platform=source_platform,
        destination_platform=destination_platform,
        source_count=len(source),
        destination_count=len(destination),
        matched=matched,
        with_differences=len(differences),
        untracked=untracked,
    )
    logger.info(
        "Inventory comparison complete",
        source_platform=source_platform.value,
        destination_platform=destination_platform.value,
        matched=matched,
        with_differences=len(differences),
    )
    return InventoryReport(differences=differences, summary=summary)


async def sync_inventory(
    items: Sequence[InventoryItemIn],
    destination_client: PlatformClient,
    fetcher: PlatformFetcher,
) -> InventorySyncReport:
    """Set each destination product's stock to the posted source quantity."""
    if not items:
        raise ValidationError("items must be a non-empty list")

    results: List[InventorySyncResult] = []
    for index, item in enumerate(items):
        stock = Product(
            id=item.destination_id,
            platform=destination_client.platform,
            inventory_quantity=item.source_quantity,
        )
        base = {
            "index": index,
            "matching_key": item.matching_key,
            "title": item.title,
            "destination_id": item.destination_id,
            "old_quantity": item.destination_quantity,
            "new_quantity": item.source_quantity,
            "platform": destination_client.platform,
        }
        try:
            payload = to_payload(stock, destination_client.field_platform, fields=STOCK_FIELDS)
        except PermanentError as e:
            results.append(InventorySyncResult(success=False, error_message=str(e), error_kind=e.kind, **base))
            continue

        outcome = await fetcher.call(
            destination_client.platform.value,
            lambda: destination_client.update_one(EntityKind.PRODUCT, item.destination_id, payload),
            description="update_one product stock",
        )
        if outcome.success:
            results.append(InventorySyncResult(success=True, attempts=outcome.attempts, **base))
            continue
        logger.warning(
            "Stock update failed",
            index=index,
            matching_key=item.matching_key,
            destination_id=item.destination_id,
            error=str(outcome.error),
        )
        results.append(InventorySyncResult(
            success=False,
            error_message=str(outcome.error),
            error_kind=error_kind_of(outcome.error),
            attempts=outcome.attempts,
            **base,
        ))

    succeeded = sum(1 for r in results if r.success)
    return InventorySyncReport(
        results=results,
        summary=InventorySyncSummary(total=len(results), succeeded=succeeded, failed=len(results) - succeeded),
    )


__all__ = ["compare_inventory", "sync_inventory", "stock_status"]
