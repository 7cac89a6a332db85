"""
Dependencies for database sessions and the services held on app.state.
"""
from typing import Generator

from fastapi import HTTPException, Request, status
from sqlalchemy.orm import Session

from storesync.database import SessionLocal
from storesync.errors import (
    JobNotFoundError,
    JobSetupError,
    NotFoundError,
    PermanentError,
    PlatformError,
    ValidationError,
)
from storesync.integrations.platforms import ClientResolver
from storesync.jobs.migration_queue import JobQueue
from storesync.services.connection_store import ConnectionStore
from storesync.services.platform_fetcher import PlatformFetcher
from storesync.services.sync_executor import SyncExecutor
from storesync.utils import get_logger

logger = get_logger(__name__)


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.
    Ensures proper session lifecycle management with automatic cleanup.

    Yields:
        Session: SQLAlchemy database session
    """
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error("Database session error", error=str(e), exc_info=True)
        db.rollback()
        raise
    finally:
        db.close()


def _state(request: Request, name: str):
    value = getattr(request.app.state, name, None)
    if value is None:
        logger.error("Application service not initialised", service=name)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"{name.replace('_', ' ').capitalize()} not available",
        )
    return value


def get_job_queue(request: Request) -> JobQueue:
    return _state(request, "job_queue")


def get_connection_store(request: Request) -> ConnectionStore:
    return _state(request, "connection_store")


def get_client_resolver(request: Request) -> ClientResolver:
    return _state(request, "client_resolver")


def get_fetcher(request: Request) -> PlatformFetcher:
    fetcher = getattr(request.app.state, "fetcher", None)
    return fetcher if fetcher is not None else PlatformFetcher()


def get_executor(request: Request) -> SyncExecutor:
    """Executor for synchronous (single item) migrations, sharing the app's fetcher."""
    return SyncExecutor(fetcher=get_fetcher(request))


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID", "unknown")


def to_http_exception(exc: Exception) -> HTTPException:
    """Map domain errors onto HTTP status codes."""
    if isinstance(exc, (ValidationError, JobSetupError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, (NotFoundError, JobNotFoundError)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, PermanentError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, PlatformError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")
