from servertracker.db.base_class import Base  # noqa

from servertracker.models.server import GameServer  # noqa
from servertracker.models.player_session import PlayerSession  # noqa
from servertracker.models.api_query_metric import ApiQueryMetric  # noqa

__all__ = [
    "Base",
    "GameServer",
    "PlayerSession",
    "ApiQueryMetric",
]
