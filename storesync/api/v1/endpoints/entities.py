"""
Catalog audit endpoints: orphans, duplicates, explicit deletion and export.
"""
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response

from storesync.api.deps import get_client_resolver, get_fetcher, get_request_id, to_http_exception
from storesync.errors import JobSetupError, PlatformError, ValidationError
from storesync.integrations.platforms import ClientResolver
from storesync.models.db.enums import PlatformName
from storesync.models.schemas.base import ResponseBase
from storesync.models.schemas.sync import DeleteOutcome, DeleteRequest
from storesync.services.difference_detector import find_duplicates, find_orphans
from storesync.services.export import flatten_entity, to_csv, to_json_rows
from storesync.services.platform_fetcher import PlatformFetcher
from storesync.services.sync_requests import resolve_kind, resolve_sync_platforms
from storesync.utils import get_logger, log_business_event

router = APIRouter()
logger = get_logger(__name__)


@router.get("/{kind}/orphans", response_model=ResponseBase, summary="Destination entities missing from the source of truth")
async def orphans(
    kind: str,
    source_of_truth: str = Query(..., description="woocommerce or shopify"),
    resolver: ClientResolver = Depends(get_client_resolver),
    fetcher: PlatformFetcher = Depends(get_fetcher),
) -> ResponseBase:
    try:
        entity_kind = resolve_kind(kind)
        source, destination = resolve_sync_platforms(source_of_truth)
        async with resolver(source) as source_client, resolver(destination) as destination_client:
            source_entities = await fetcher.fetch_all(source_client, entity_kind)
            destination_entities = await fetcher.fetch_all(destination_client, entity_kind)
    except (ValidationError, JobSetupError, PlatformError) as e:
        raise to_http_exception(e) from e

    found = find_orphans(entity_kind, source_entities, destination_entities)
    return ResponseBase(
        success=True,
        message=f"Found {len(found)} orphaned {entity_kind.value}(s) on {destination.value}",
        data={"platform": destination.value, "count": len(found), "orphans": [flatten_entity(e) for e in found]},
    )


@router.get("/{kind}/duplicates", response_model=ResponseBase, summary="Matching keys used more than once on one platform")
async def duplicates(
    kind: str,
    platform: PlatformName = Query(...),
    resolver: ClientResolver = Depends(get_client_resolver),
    fetcher: PlatformFetcher = Depends(get_fetcher),
) -> ResponseBase:
    try:
        entity_kind = resolve_kind(kind, syncable_only=False)
        async with resolver(platform) as client:
            entities = await fetcher.fetch_all(client, entity_kind)
    except (ValidationError, JobSetupError, PlatformError) as e:
        raise to_http_exception(e) from e

    groups = find_duplicates(entity_kind, entities)
    return ResponseBase(
        success=True,
        message=f"Found {len(groups)} duplicated key(s)",
        data={"platform": platform.value, "duplicates": groups},
    )


@router.post("/{kind}/delete", response_model=ResponseBase, summary="Delete entities on one platform")
async def delete_entities(
    kind: str,
    body: DeleteRequest,
    request: Request,
    resolver: ClientResolver = Depends(get_client_resolver),
    fetcher: PlatformFetcher = Depends(get_fetcher),
) -> ResponseBase:
    """Explicit, human-initiated deletion. Each id is attempted independently."""
    try:
        entity_kind = resolve_kind(kind, syncable_only=False)
        if not body.ids:
            raise ValidationError("ids must be a non-empty list")
        client = resolver(body.platform)
    except (ValidationError, JobSetupError) as e:
        raise to_http_exception(e) from e

    outcomes = []
    async with client:
        for entity_id in body.ids:
            outcome = await fetcher.call(
                body.platform.value,
                lambda: client.delete_one(entity_kind, entity_id, body.hard_delete),
                description=f"delete_one {entity_kind.value}",
            )
            outcomes.append(DeleteOutcome(
                id=entity_id,
                success=outcome.success,
                error_message=None if outcome.success else str(outcome.error),
            ))

    deleted = sum(1 for o in outcomes if o.success)
    log_business_event(
        event_type="entities_deleted",
        details={
            "platform": body.platform.value,
            "kind": entity_kind.value,
            "requested": len(body.ids),
            "deleted": deleted,
            "hard_delete": body.hard_delete,
        },
        request_id=get_request_id(request),
    )
    return ResponseBase(
        success=deleted == len(outcomes),
        message=f"Deleted {deleted} of {len(outcomes)} {entity_kind.value}(s)",
        data={"results": [o.model_dump() for o in outcomes]},
    )


@router.get("/{kind}/export", summary="Export every entity of a kind as CSV or JSON")
async def export_entities(
    kind: str,
    platform: PlatformName = Query(...),
    format: Literal["csv", "json"] = Query("csv"),
    status_filter: Optional[str] = Query(None, alias="status"),
    resolver: ClientResolver = Depends(get_client_resolver),
    fetcher: PlatformFetcher = Depends(get_fetcher),
):
    try:
        entity_kind = resolve_kind(kind, syncable_only=False)
        filters = {"status": status_filter} if status_filter else None
        async with resolver(platform) as client:
            entities = await fetcher.fetch_all(client, entity_kind, filters=filters)
    except (ValidationError, JobSetupError, PlatformError) as e:
        raise to_http_exception(e) from e

    if format == "json":
        return ResponseBase(
            success=True,
            message=f"Exported {len(entities)} {entity_kind.value}(s)",
            data={"platform": platform.value, "count": len(entities), "items": to_json_rows(entities)},
        )
    filename = f"{platform.value}-{entity_kind.value}-export.csv"
    return Response(
        content=to_csv(entity_kind, entities),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
