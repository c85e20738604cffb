# servertracker/api/routes/servers.py
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from servertracker.api.deps import get_db_session, get_server_identity
from servertracker.core.config import settings
from servertracker.crud import player_session as crud_player_session
from servertracker.crud import server as crud_server
from servertracker.schemas import (
    ActivePlayerSessionRead,
    PlayerSessionRead,
    ServerIdentity,
    ServerRead,
)

router = APIRouter()


@router.get("/", response_model=List[ServerRead])
async def list_servers(db: AsyncSession = Depends(get_db_session)):
    rows = await crud_server.get_multi(db)
    return [ServerRead.from_model(row) for row in rows]


@router.get("/{server_type}/{host}/{port}", response_model=ServerRead)
async def get_server(
    identity: ServerIdentity = Depends(get_server_identity),
    db: AsyncSession = Depends(get_db_session),
):
    row = await crud_server.get(db, identity)
    if not row:
        raise HTTPException(status_code=404, detail="Server not found")
    return ServerRead.from_model(row)


@router.get(
    "/{server_type}/{host}/{port}/sessions/active",
    response_model=List[ActivePlayerSessionRead],
)
async def list_active_sessions(
    identity: ServerIdentity = Depends(get_server_identity),
    db: AsyncSession = Depends(get_db_session),
):
    return await crud_player_session.list_active(db, identity)


@router.get(
    "/{server_type}/{host}/{port}/sessions/recent",
    response_model=List[PlayerSessionRead],
)
async def list_recent_sessions(
    identity: ServerIdentity = Depends(get_server_identity),
    limit: int = Query(default=settings.RECENT_SESSIONS_DEFAULT_LIMIT),
    db: AsyncSession = Depends(get_db_session),
):
    """Sessões mais recentes (started_at desc). limit<=0 -> 400."""
    return await crud_player_session.list_recent(
        db,
        identity,
        limit=limit,
        max_limit=settings.RECENT_SESSIONS_MAX_LIMIT,
    )
