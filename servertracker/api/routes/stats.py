# servertracker/api/routes/stats.py
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from servertracker.api.deps import get_db_session
from servertracker.crud import api_query_metric as crud_api_query_metric
from servertracker.crud import player_session as crud_player_session
from servertracker.schemas import ApiQueryMetricRead, DatabaseStats, PlayerSessionStats

router = APIRouter()


@router.get("/database", response_model=DatabaseStats)
async def get_database_stats(db: AsyncSession = Depends(get_db_session)):
    return await crud_player_session.get_stats(db)


@router.get("/players", response_model=List[PlayerSessionStats])
async def list_player_stats(db: AsyncSession = Depends(get_db_session)):
    return await crud_player_session.list_player_stats(db)


@router.get("/api-queries", response_model=List[ApiQueryMetricRead])
async def list_api_query_metrics(db: AsyncSession = Depends(get_db_session)):
    return await crud_api_query_metric.list_by_ip(db)
