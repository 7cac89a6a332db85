"""
Platform connection management endpoints.
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status

from storesync.api.deps import get_connection_store, get_request_id, to_http_exception
from storesync.errors import PermanentError
from storesync.integrations.platforms import build_client
from storesync.models.db.enums import PlatformName
from storesync.models.schemas.base import ResponseBase
from storesync.models.schemas.connections import ConnectionConfigIn, ConnectionRead
from storesync.services.connection_store import ConnectionStore
from storesync.utils import get_logger, log_business_event

router = APIRouter()
logger = get_logger(__name__)


@router.get("", response_model=ResponseBase, summary="List platform connections")
async def list_connections(
    store: ConnectionStore = Depends(get_connection_store),
) -> ResponseBase:
    connections = [ConnectionRead.masked(c).model_dump(mode="json") for c in store.list_connections()]
    return ResponseBase(
        success=True,
        message=f"Retrieved {len(connections)} connection(s)",
        data={"connections": connections},
    )


@router.put("/{platform}", response_model=ResponseBase, summary="Save platform credentials")
async def save_connection(
    platform: PlatformName,
    payload: ConnectionConfigIn,
    request: Request,
    store: ConnectionStore = Depends(get_connection_store),
) -> ResponseBase:
    """Store credentials for a platform, verifying them first unless ``test`` is false."""
    try:
        client = build_client(platform, payload.config)
    except PermanentError as e:
        raise to_http_exception(e) from e

    is_connected = True
    if payload.test:
        async with client:
            is_connected = await client.test_connection()
    connection = store.save(platform, payload.config, is_connected=is_connected, tested=payload.test)

    log_business_event(
        event_type="connection_saved",
        details={"platform": platform.value, "is_connected": is_connected},
        request_id=get_request_id(request),
    )
    return ResponseBase(
        success=is_connected,
        message="Connection verified" if is_connected else "Credentials saved but the connection test failed",
        data={"connection": ConnectionRead.masked(connection).model_dump(mode="json")},
    )


@router.post("/{platform}/test", response_model=ResponseBase, summary="Re-test a stored connection")
async def test_connection(
    platform: PlatformName,
    store: ConnectionStore = Depends(get_connection_store),
) -> ResponseBase:
    connection = store.get_connection(platform)
    if connection is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No {platform.value} connection configured")
    try:
        client = build_client(platform, connection.config)
    except PermanentError as e:
        raise to_http_exception(e) from e

    async with client:
        ok = await client.test_connection()
    updated = store.mark_tested(platform, ok)
    logger.info("Connection tested", platform=platform.value, is_connected=ok)
    return ResponseBase(
        success=ok,
        message="Connection OK" if ok else "Connection test failed",
        data={"connection": ConnectionRead.masked(updated or connection).model_dump(mode="json")},
    )


@router.delete("/{platform}", response_model=ResponseBase, summary="Disconnect a platform")
async def disconnect(
    platform: PlatformName,
    request: Request,
    store: ConnectionStore = Depends(get_connection_store),
) -> ResponseBase:
    if not store.disconnect(platform):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"No {platform.value} connection configured")
    log_business_event(
        event_type="connection_removed",
        details={"platform": platform.value},
        request_id=get_request_id(request),
    )
    return ResponseBase(success=True, message=f"{platform.value} disconnected")
