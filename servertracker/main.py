# servertracker/main.py
import asyncio
import logging
from typing import List

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from servertracker import __version__
from servertracker.api.v1.api import api_router
from servertracker.core.config import settings
from servertracker.core.errors import InvalidInputError, StorageFailure
from servertracker.core.logging import configure_logging
from servertracker.crud import api_query_metric as crud_api_query_metric
from servertracker.db.session import AsyncSessionLocal, init_db
from servertracker.services.poller import run_poll_loop
from servertracker.services.session_ledger import close_all_open_sessions
from servertracker.utils.time import now_ms

logger = logging.getLogger("tracker.main")

app = FastAPI(
    title=settings.APP_NAME,
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_poll_tasks: List[asyncio.Task] = []


@app.exception_handler(InvalidInputError)
async def invalid_input_handler(request: Request, exc: InvalidInputError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(StorageFailure)
async def storage_failure_handler(request: Request, exc: StorageFailure):
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.middleware("http")
async def record_api_query(request: Request, call_next):
    """Conta acessos por (ip, rota) nas rotas /api; falhas só vão para o log."""
    response = await call_next(request)

    if settings.API_METRICS_ENABLED and request.url.path.startswith("/api/"):
        try:
            async with AsyncSessionLocal() as db:
                await crud_api_query_metric.record(
                    db,
                    ip_address=request.client.host if request.client else None,
                    route=request.url.path,
                    user_agent=request.headers.get("user-agent"),
                    timestamp=now_ms(),
                )
        except Exception:
            logger.exception("Failed to record API query metric for %s", request.url.path)

    return response


@app.on_event("startup")
async def on_startup() -> None:
    configure_logging()

    await init_db()

    if settings.CLOSE_OPEN_SESSIONS_ON_STARTUP:
        await close_all_open_sessions()

    if settings.POLL_ENABLED:
        for identity in settings.poll_targets:
            logger.info("Starting poll task for %s...", identity)
            _poll_tasks.append(
                asyncio.create_task(
                    run_poll_loop(identity),
                    name=f"poll:{identity}",
                )
            )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    for task in _poll_tasks:
        logger.info("Stopping %s...", task.get_name())
        task.cancel()
    for task in _poll_tasks:
        try:
            await task
        except asyncio.CancelledError:
            logger.info("%s cancelled", task.get_name())
    _poll_tasks.clear()


@app.get("/health", tags=["health"])
async def healthcheck():
    return {"status": "ok"}


app.include_router(api_router, prefix="/api/v1")
