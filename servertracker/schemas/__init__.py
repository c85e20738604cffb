from servertracker.schemas.server import (
    ObservedPlayer,
    PollSnapshot,
    ServerIdentity,
    ServerRead,
)
from servertracker.schemas.player_session import (
    ActivePlayerSessionRead,
    PlayerSessionRead,
    PollResult,
)
from servertracker.schemas.stats import (
    ApiQueryMetricRead,
    ApiQueryRouteMetric,
    DatabaseStats,
    PlayerSessionStats,
)
from servertracker.schemas.consolidation import ConsolidationSummary

__all__ = [
    "ObservedPlayer",
    "PollSnapshot",
    "ServerIdentity",
    "ServerRead",
    "ActivePlayerSessionRead",
    "PlayerSessionRead",
    "PollResult",
    "ApiQueryMetricRead",
    "ApiQueryRouteMetric",
    "DatabaseStats",
    "PlayerSessionStats",
    "ConsolidationSummary",
]
