"""
Cross-platform comparison and batch sync endpoints.
"""
import time

from fastapi import APIRouter, Depends, HTTPException, Request, status

from storesync.api.deps import (
    get_client_resolver,
    get_fetcher,
    get_job_queue,
    get_request_id,
    to_http_exception,
)
from storesync.errors import JobSetupError, PlatformError, ValidationError
from storesync.integrations.platforms import ClientResolver
from storesync.jobs.migration_queue import JobQueue
from storesync.models.schemas.base import ResponseBase
from storesync.models.schemas.sync import CompareRequest, SyncRequest
from storesync.services.difference_detector import detect_differences
from storesync.services.platform_fetcher import PlatformFetcher
from storesync.services.sync_requests import build_differences, resolve_kind, resolve_sync_platforms
from storesync.utils import get_logger, log_business_event, log_performance

router = APIRouter()
logger = get_logger(__name__)


@router.post("/{kind}/compare", response_model=ResponseBase, summary="Compare a kind across both stores")
async def compare(
    kind: str,
    body: CompareRequest,
    request: Request,
    resolver: ClientResolver = Depends(get_client_resolver),
    fetcher: PlatformFetcher = Depends(get_fetcher),
) -> ResponseBase:
    """Fetch every entity of ``kind`` from both platforms and report what the destination lacks."""
    start_time = time.time()
    request_id = get_request_id(request)
    try:
        entity_kind = resolve_kind(kind)
        source, destination = resolve_sync_platforms(body.source_of_truth)
        async with resolver(source) as source_client, resolver(destination) as destination_client:
            source_entities = await fetcher.fetch_all(source_client, entity_kind)
            destination_entities = await fetcher.fetch_all(destination_client, entity_kind)
    except (ValidationError, JobSetupError, PlatformError) as e:
        logger.warning("Comparison failed", kind=kind, error=str(e), request_id=request_id)
        raise to_http_exception(e) from e

    report = detect_differences(
        entity_kind,
        source_entities,
        destination_entities,
        source,
        destination,
        include_snapshots=body.include_snapshots,
    )
    log_performance(
        operation="compare",
        duration_ms=(time.time() - start_time) * 1000,
        additional_data={"kind": entity_kind.value, "differences": len(report.differences)},
    )
    return ResponseBase(
        success=True,
        message=f"Found {len(report.differences)} difference(s)",
        data=report.model_dump(mode="json"),
    )


@router.post(
    "/{kind}",
    response_model=ResponseBase,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Trigger a batch sync job",
)
async def trigger_sync(
    kind: str,
    body: SyncRequest,
    request: Request,
    queue: JobQueue = Depends(get_job_queue),
) -> ResponseBase:
    """Enqueue the posted differences; the destination is the platform that is not the source of truth."""
    request_id = get_request_id(request)
    try:
        entity_kind = resolve_kind(kind)
        source, destination = resolve_sync_platforms(body.source_of_truth)
        differences = build_differences(entity_kind, source, destination, body.differences)
        job_id = queue.enqueue(
            differences,
            entity_kind,
            source,
            destination,
            priority=body.priority,
            request_id=request_id,
        )
    except ValidationError as e:
        logger.warning("Sync request rejected", kind=kind, error=str(e), request_id=request_id)
        raise to_http_exception(e) from e
    except OverflowError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Job queue is full") from e

    log_business_event(
        event_type="sync_triggered",
        details={"kind": entity_kind.value, "source": source.value, "destination": destination.value, "job_id": job_id},
        request_id=request_id,
    )
    return ResponseBase(
        success=True,
        message=f"Sync job queued with {len(differences)} item(s)",
        data={"job_id": job_id, "total": len(differences), "status_url": f"/api/v1/migrate/status/{job_id}"},
    )
