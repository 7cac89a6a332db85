"""
Explicit migration endpoints: bulk jobs, single items, previews and job status.
"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from storesync.api.deps import (
    get_client_resolver,
    get_executor,
    get_job_queue,
    get_request_id,
    to_http_exception,
)
from storesync.errors import JobNotFoundError, JobSetupError, PlatformError, ValidationError
from storesync.integrations.platforms import ClientResolver
from storesync.jobs.migration_queue import JobQueue
from storesync.models.schemas.base import ResponseBase
from storesync.models.schemas.entities import entity_fields
from storesync.models.schemas.sync import BulkMigrateRequest, SingleMigrateRequest
from storesync.services.sync_executor import SyncExecutor, creation_difference
from storesync.utils import get_logger, log_business_event

router = APIRouter()
logger = get_logger(__name__)


def _single_difference(body: SingleMigrateRequest):
    if not body.item_id.strip():
        raise ValidationError("item_id is required")
    # A known destination id turns the migration into a full overwrite of that entity.
    fields = entity_fields(body.type) if body.destination_id else None
    return creation_difference(
        body.type,
        body.item_id,
        body.source,
        body.destination,
        destination_id=body.destination_id,
        fields_changed=fields,
    )


@router.post(
    "/bulk",
    response_model=ResponseBase,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Migrate many items in a background job",
)
async def migrate_bulk(
    body: BulkMigrateRequest,
    request: Request,
    queue: JobQueue = Depends(get_job_queue),
) -> ResponseBase:
    request_id = get_request_id(request)
    try:
        if not body.item_ids:
            raise ValidationError("item_ids must be a non-empty list")
        if body.source == body.destination:
            raise ValidationError("Source and destination platforms must differ")
        differences = [
            creation_difference(body.type, item_id, body.source, body.destination)
            for item_id in body.item_ids
        ]
        job_id = queue.enqueue(
            differences,
            body.type,
            body.source,
            body.destination,
            priority=body.priority,
            request_id=request_id,
        )
    except ValidationError as e:
        logger.warning("Bulk migration rejected", error=str(e), request_id=request_id)
        raise to_http_exception(e) from e
    except OverflowError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Job queue is full") from e

    return ResponseBase(
        success=True,
        message=f"Migration job queued with {len(differences)} item(s)",
        data={"job_id": job_id, "total": len(differences), "status_url": f"/api/v1/migrate/status/{job_id}"},
    )


@router.post("/single", response_model=ResponseBase, summary="Migrate one item synchronously")
async def migrate_single(
    body: SingleMigrateRequest,
    request: Request,
    resolver: ClientResolver = Depends(get_client_resolver),
    executor: SyncExecutor = Depends(get_executor),
) -> ResponseBase:
    try:
        if body.source == body.destination:
            raise ValidationError("Source and destination platforms must differ")
        difference = _single_difference(body)
        source_client = resolver(body.source)
        destination_client = resolver(body.destination)
    except (ValidationError, JobSetupError) as e:
        raise to_http_exception(e) from e

    async with source_client, destination_client:
        result = await executor.sync_one(0, difference, source_client, destination_client)
    log_business_event(
        event_type="single_migration",
        details={
            "type": body.type.value,
            "source": body.source.value,
            "destination": body.destination.value,
            "item_id": body.item_id,
            "success": result.success,
        },
        request_id=get_request_id(request),
    )
    return ResponseBase(
        success=result.success,
        message="Item migrated" if result.success else f"Migration failed: {result.error_message}",
        data={"result": result.model_dump(mode="json")},
    )


@router.post("/preview", response_model=ResponseBase, summary="Preview the destination payload for one item")
async def migrate_preview(
    body: SingleMigrateRequest,
    resolver: ClientResolver = Depends(get_client_resolver),
    executor: SyncExecutor = Depends(get_executor),
) -> ResponseBase:
    try:
        if body.source == body.destination:
            raise ValidationError("Source and destination platforms must differ")
        difference = _single_difference(body)
        async with resolver(body.source) as source_client:
            preview = await executor.preview(difference, source_client, body.destination)
    except (ValidationError, JobSetupError, PlatformError) as e:
        raise to_http_exception(e) from e
    return ResponseBase(
        success=not preview.errors,
        message="Preview generated",
        data=preview.model_dump(mode="json"),
    )


@router.get("/status", response_model=ResponseBase, include_in_schema=False)
@router.get("/status/", response_model=ResponseBase, include_in_schema=False)
async def job_status_without_id() -> ResponseBase:
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Job ID is required")


@router.get("/status/{job_id}", response_model=ResponseBase, summary="Poll a migration job")
async def job_status(
    job_id: str,
    queue: JobQueue = Depends(get_job_queue),
) -> ResponseBase:
    if not job_id.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Job ID is required")
    try:
        snapshot = queue.get_job(job_id.strip())
    except JobNotFoundError as e:
        raise to_http_exception(e) from e
    return ResponseBase(
        success=True,
        message=f"Job is {snapshot.status.value}",
        data={"job": snapshot.model_dump(mode="json")},
    )


@router.get("/status/{job_id}/logs", response_model=ResponseBase, summary="Persisted event log of a job")
async def job_logs(
    job_id: str,
    queue: JobQueue = Depends(get_job_queue),
) -> ResponseBase:
    repository = queue.store.repository
    if repository is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Job persistence is disabled")
    try:
        queue.get_job(job_id)
    except JobNotFoundError as e:
        raise to_http_exception(e) from e
    logs = [
        {
            "level": entry.level.value,
            "message": entry.message,
            "details": entry.details,
            "created_at": entry.created_at.isoformat() if entry.created_at else None,
        }
        for entry in repository.logs(job_id)
    ]
    return ResponseBase(success=True, message=f"{len(logs)} log entr{'y' if len(logs) == 1 else 'ies'}", data={"logs": logs})


@router.get("/jobs", response_model=ResponseBase, summary="List migration jobs, newest first")
async def list_jobs(
    limit: int = Query(50, ge=1, le=500),
    queue: JobQueue = Depends(get_job_queue),
) -> ResponseBase:
    jobs = [s.model_dump(mode="json") for s in queue.list_jobs(limit)]
    return ResponseBase(success=True, message=f"Retrieved {len(jobs)} job(s)", data={"jobs": jobs})
