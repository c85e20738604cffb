# servertracker/models/__init__.py
from servertracker.models.server import GameServer
from servertracker.models.player_session import PlayerSession
from servertracker.models.api_query_metric import ApiQueryMetric

__all__ = [
    "GameServer",
    "PlayerSession",
    "ApiQueryMetric",
]
