# servertracker/api/v1/api.py
from fastapi import APIRouter

from servertracker.api.routes import (
    maintenance,
    polls,
    servers,
    stats,
)

api_router = APIRouter()

api_router.include_router(
    servers.router,
    prefix="/servers",
    tags=["servers"],
)
api_router.include_router(
    polls.router,
    prefix="/polls",
    tags=["polls"],
)
api_router.include_router(
    stats.router,
    prefix="/stats",
    tags=["stats"],
)
api_router.include_router(
    maintenance.router,
    prefix="/maintenance",
    tags=["maintenance"],
)
