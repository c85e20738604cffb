# servertracker/crud/__init__.py
from servertracker.crud.server import server
from servertracker.crud.player_session import player_session
from servertracker.crud.api_query_metric import api_query_metric

__all__ = [
    "server",
    "player_session",
    "api_query_metric",
]
