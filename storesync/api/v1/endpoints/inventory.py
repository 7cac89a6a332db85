"""
Stock-level comparison and correction endpoints.
"""
import time

from fastapi import APIRouter, Depends, Request

from storesync.api.deps import get_client_resolver, get_fetcher, get_request_id, to_http_exception
from storesync.errors import JobSetupError, PlatformError, ValidationError
from storesync.integrations.platforms import ClientResolver
from storesync.models.db.enums import EntityKind
from storesync.models.schemas.base import ResponseBase
from storesync.models.schemas.inventory import InventoryCompareRequest, InventorySyncRequest
from storesync.services.inventory import compare_inventory, sync_inventory
from storesync.services.platform_fetcher import PlatformFetcher
from storesync.services.sync_requests import resolve_sync_platforms
from storesync.utils import get_logger, log_business_event, log_performance

router = APIRouter()
logger = get_logger(__name__)


@router.post("/compare", response_model=ResponseBase, summary="Compare stock levels across both stores")
async def inventory_compare(
    body: InventoryCompareRequest,
    request: Request,
    resolver: ClientResolver = Depends(get_client_resolver),
    fetcher: PlatformFetcher = Depends(get_fetcher),
) -> ResponseBase:
    start_time = time.time()
    request_id = get_request_id(request)
    try:
        source, destination = resolve_sync_platforms(body.source_of_truth)
        async with resolver(source) as source_client, resolver(destination) as destination_client:
            source_products = await fetcher.fetch_all(source_client, EntityKind.PRODUCT)
            destination_products = await fetcher.fetch_all(destination_client, EntityKind.PRODUCT)
    except (ValidationError, JobSetupError, PlatformError) as e:
        logger.warning("Inventory comparison failed", error=str(e), request_id=request_id)
        raise to_http_exception(e) from e

    report = compare_inventory(source_products, destination_products, source, destination)
    log_performance(
        operation="inventory_compare",
        duration_ms=(time.time() - start_time) * 1000,
        additional_data={"matched": report.summary.matched, "differences": len(report.differences)},
    )
    return ResponseBase(
        success=True,
        message=f"Found {len(report.differences)} stock difference(s)",
        data=report.model_dump(mode="json"),
    )


@router.post("/sync", response_model=ResponseBase, summary="Copy source stock levels onto the destination")
async def inventory_sync(
    body: InventorySyncRequest,
    request: Request,
    resolver: ClientResolver = Depends(get_client_resolver),
    fetcher: PlatformFetcher = Depends(get_fetcher),
) -> ResponseBase:
    """Runs inline; each posted item is one stock write on the destination."""
    request_id = get_request_id(request)
    try:
        source, destination = resolve_sync_platforms(body.source_of_truth)
        if not body.items:
            raise ValidationError("items must be a non-empty list")
        async with resolver(destination) as destination_client:
            report = await sync_inventory(body.items, destination_client, fetcher)
    except (ValidationError, JobSetupError) as e:
        logger.warning("Inventory sync rejected", error=str(e), request_id=request_id)
        raise to_http_exception(e) from e

    log_business_event(
        event_type="inventory_synced",
        details={
            "source": source.value,
            "destination": destination.value,
            "total": report.summary.total,
            "succeeded": report.summary.succeeded,
            "failed": report.summary.failed,
        },
        request_id=request_id,
    )
    return ResponseBase(
        success=report.summary.failed == 0,
        message=f"Updated stock for {report.summary.succeeded} of {report.summary.total} product(s)",
        data=report.model_dump(mode="json"),
    )
