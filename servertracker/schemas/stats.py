# servertracker/schemas/stats.py
from typing import List, Optional

from pydantic import BaseModel


class DatabaseStats(BaseModel):
    total_sessions: int = 0
    unique_players: int = 0
    active_sessions: int = 0
    server_count: int = 0


class PlayerSessionStats(BaseModel):
    player_name: str
    session_count: int
    first_seen: int


class ApiQueryRouteMetric(BaseModel):
    route: str
    query_count: int
    last_queried_at: int
    last_user_agent: Optional[str] = None


class ApiQueryMetricRead(BaseModel):
    ip_address: str
    total_queries: int
    last_queried_at: int
    routes: List[ApiQueryRouteMetric]
