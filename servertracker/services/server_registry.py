from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from servertracker.crud import server as crud_server
from servertracker.schemas.server import ServerIdentity
from servertracker.utils.text import sanitize_int, sanitize_text

logger = logging.getLogger("tracker.registry")


def resolve_player_count(declared: Any, players_reported: int) -> int:
    """Declared count wins when it is a usable number, else the list length."""
    count = sanitize_int(declared)
    if count is None:
        return players_reported
    return count


async def record_server(
    db: AsyncSession,
    identity: ServerIdentity,
    *,
    timestamp: int,
    players_reported: int,
    name: Optional[str] = None,
    map: Optional[str] = None,
    player_count: Optional[int] = None,
    max_players: Optional[int] = None,
    ping: Optional[int] = None,
) -> None:
    """
    Upsert the registry row for one poll, inside the caller's transaction.

    Storage errors propagate so the whole poll is rolled back.
    """
    values = {
        "name": sanitize_text(name),
        "map": sanitize_text(map),
        "max_players": sanitize_int(max_players),
        "last_ping": sanitize_int(ping),
        "current_players": resolve_player_count(player_count, players_reported),
        "last_seen_at": timestamp,
    }
    logger.debug("Recording server %s: %s", identity, values)
    await crud_server.upsert(db, identity, values)
