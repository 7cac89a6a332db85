"""
FastAPI application main module.
Wires the connection store, job store, platform resolver and worker pool
together at startup and exposes them to endpoints through app.state.
"""
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException
import time
import uuid
from contextlib import asynccontextmanager
from storesync.api.deps import get_db
from storesync.api.v1 import api_router
from storesync.utils import setup_logging, get_logger
from storesync.utils.circuit_breaker import GLOBAL_CIRCUIT_BREAKER
from storesync.config import CORS_ORIGINS, LOG_FILE, LOG_LEVEL, QUEUE_SETTINGS
from storesync.database import Base, SessionLocal, engine
from storesync.integrations.platforms import ConnectionClientResolver
from storesync.jobs import JobQueue, JobRepository, JobStore
from storesync.services.connection_store import ConnectionStore
from storesync.services.platform_fetcher import PlatformFetcher
from storesync.services.sync_executor import SyncExecutor

# Setup logging before creating the app
setup_logging(
    log_level=LOG_LEVEL,
    log_file=LOG_FILE,
    enable_console=True
)

logger = get_logger(__name__)

SERVICE_NAME = "storesync"
VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Builds the long-lived services on startup and drains the workers on shutdown.
    """
    logger.info("Application startup initiated")
    queue = None
    try:
        logger.info("Creating database tables")
        Base.metadata.create_all(bind=engine)

        connection_store = ConnectionStore(SessionLocal)
        repository = JobRepository(SessionLocal) if QUEUE_SETTINGS["persist_jobs"] else None
        store = JobStore(repository)
        resolver = ConnectionClientResolver(connection_store)
        fetcher = PlatformFetcher()
        queue = JobQueue(store, resolver, executor_factory=lambda: SyncExecutor(fetcher=fetcher))

        # endpoints read services from app.state rather than importing this module
        app.state.connection_store = connection_store
        app.state.client_resolver = resolver
        app.state.fetcher = fetcher
        app.state.job_queue = queue

        queue.start()
        logger.info("Migration queue + workers started", workers=len(queue.workers), persist_jobs=repository is not None)
        logger.info("Application startup completed successfully")
        yield
    except Exception as e:  # pragma: no cover
        logger.error("Application startup failed", error=str(e), exc_info=True)
        raise
    finally:
        logger.info("Application shutdown initiated")
        if queue is not None:
            queue.shutdown()
            logger.info("Migration workers stopped")
        logger.info("Application shutdown completed")


app = FastAPI(
    title="StoreSync",
    description="""
    Keeps a WooCommerce store and a Shopify store in step.

    ## Features
    * **Comparison** - detect entities missing or different on the destination store
    * **Background sync jobs** - queued, prioritised and pollable
    * **Explicit migration** - bulk, single item and preview
    * **Catalog audits** - orphans, duplicate keys, deletion and CSV export
    """,
    version=VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/api/v1/openapi.json",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(GZipMiddleware, minimum_size=1000)


@app.middleware("http")
async def add_request_context_and_logging(request: Request, call_next):
    """
    Add request ID, timing, and request/response logging.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    request.state.start_time = time.time()

    logger.info(
        "Request started",
        method=request.method,
        url=str(request.url),
        user_agent=request.headers.get("User-Agent"),
        remote_addr=request.client.host if request.client else "unknown",
        request_id=request_id
    )

    response = await call_next(request)

    process_time = time.time() - request.state.start_time
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))
    response.headers["X-Content-Type-Options"] = "nosniff"

    logger.info(
        "Request completed",
        method=request.method,
        url=str(request.url),
        status_code=response.status_code,
        process_time_ms=round(process_time * 1000, 2),
        request_id=request_id
    )

    return response


def jsonable_errors(exc: RequestValidationError) -> list:
    # pydantic v2 may put the raw exception object under "ctx"
    return [{k: v for k, v in err.items() if k != "ctx"} for err in exc.errors()]


def error_response(request: Request, status_code: int, message: str, **extra) -> JSONResponse:
    """Envelope shared by every error handler, tagged with the request id."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "message": message,
            **extra,
            "request_id": getattr(request.state, "request_id", "unknown"),
        }
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters."""
    details = jsonable_errors(exc)
    logger.warning("Request validation failed", errors=details, url=str(request.url), method=request.method)
    return error_response(request, 422, "Request validation failed", details=details)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Expected errors raised by endpoints and dependencies."""
    logger.warning("HTTP exception", status_code=exc.status_code, detail=exc.detail, url=str(request.url), method=request.method)
    return error_response(request, exc.status_code, exc.detail)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Anything an endpoint did not map; details stay in the log."""
    logger.error(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        request_id=getattr(request.state, "request_id", "unknown"),
        url=str(request.url),
        method=request.method,
        exc_info=True
    )
    return error_response(request, 500, "Internal server error")


@app.get("/health", tags=["health"], summary="Basic health check")
async def health_check():
    """Basic health check endpoint for load balancers."""
    return {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "timestamp": time.time(),
    }


@app.get("/health/detailed", tags=["health"], summary="Detailed health check")
async def detailed_health_check(db: Session = Depends(get_db)):
    """Detailed health check with database, queue and circuit breaker status."""
    health_status = {
        "status": "healthy",
        "service": SERVICE_NAME,
        "version": VERSION,
        "timestamp": time.time(),
        "checks": {}
    }

    try:
        db.execute(text("SELECT 1"))
        health_status["checks"]["database"] = "healthy"
    except SQLAlchemyError as e:
        health_status["checks"]["database"] = f"unhealthy: {str(e)}"
        health_status["status"] = "degraded"

    queue = getattr(app.state, "job_queue", None)
    if queue is not None:
        health_status["checks"]["queue"] = queue.snapshot()
    else:
        health_status["checks"]["queue"] = "not started"
        health_status["status"] = "degraded"

    health_status["checks"]["circuit_breakers"] = GLOBAL_CIRCUIT_BREAKER.snapshot()
    return health_status


@app.get("/", tags=["root"])
async def root():
    """API root endpoint with basic information."""
    return {
        "message": "StoreSync API",
        "version": VERSION,
        "documentation": "/docs",
        "health_check": "/health",
        "api_base": "/api/v1"
    }


app.include_router(api_router, prefix="/api/v1")

# Development server configuration
if __name__ == "__main__":
    import uvicorn

    logger.info("Starting development server")

    uvicorn.run(
        "storesync.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        reload_dirs=["storesync"],
        log_level="info",
        access_log=True
    )
