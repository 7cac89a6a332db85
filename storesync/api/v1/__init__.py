"""
API v1 router initialization and setup.
"""
from fastapi import APIRouter
from .endpoints import connections, sync, migrate, entities, inventory

api_router = APIRouter()

api_router.include_router(
    connections.router,
    prefix="/connections",
    tags=["connections"]
)

api_router.include_router(
    sync.router,
    prefix="/sync",
    tags=["sync"]
)

api_router.include_router(
    migrate.router,
    prefix="/migrate",
    tags=["migrate"]
)

api_router.include_router(
    entities.router,
    prefix="/entities",
    tags=["entities"]
)

api_router.include_router(
    inventory.router,
    prefix="/inventory",
    tags=["inventory"]
)
