import asyncio
import logging
from typing import Awaitable, Callable, Optional

import a2s

from servertracker.core.config import settings
from servertracker.core.errors import StorageFailure
from servertracker.db.session import AsyncSessionLocal
from servertracker.schemas.player_session import PollResult
from servertracker.schemas.server import ObservedPlayer, PollSnapshot, ServerIdentity
from servertracker.services.session_ledger import ingest_poll
from servertracker.utils.text import sanitize_int, sanitize_number
from servertracker.utils.time import now_ms

logger = logging.getLogger("tracker.poller")

QueryFunc = Callable[[ServerIdentity, float], Awaitable[PollSnapshot]]


def snapshot_from_a2s(identity: ServerIdentity, info, players, *, queried_at: int) -> PollSnapshot:
    """Map A2S_INFO / A2S_PLAYER results onto a PollSnapshot."""
    ping = sanitize_number(getattr(info, "ping", None))
    return PollSnapshot(
        server=identity,
        name=getattr(info, "server_name", None),
        map=getattr(info, "map_name", None),
        num_players=sanitize_int(getattr(info, "player_count", None)),
        max_players=sanitize_int(getattr(info, "max_players", None)),
        # a2s reports ping in seconds
        ping=int(round(ping * 1000)) if ping is not None else None,
        players=[
            ObservedPlayer(
                name=getattr(p, "name", None),
                start_offset_seconds=sanitize_number(getattr(p, "duration", None)),
            )
            for p in players
        ],
        queried_at=queried_at,
    )


async def query_a2s(identity: ServerIdentity, timeout: float) -> PollSnapshot:
    address = (identity.host, identity.port)
    info = await a2s.ainfo(address, timeout=timeout)
    players = await a2s.aplayers(address, timeout=timeout)
    return snapshot_from_a2s(identity, info, players, queried_at=now_ms())


async def poll_once(
    identity: ServerIdentity,
    *,
    query: QueryFunc = query_a2s,
    timeout: Optional[float] = None,
    session_factory=AsyncSessionLocal,
) -> Optional[PollResult]:
    """
    Query one server and ingest the result.

    A failed query or a failed commit skips this cycle: the ledger stays as
    it was after the last successful poll. Returns None when skipped.
    """
    timeout = settings.POLL_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        snapshot = await query(identity, timeout)
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        logger.warning("Query failed for %s, skipping cycle: %s", identity, exc)
        return None

    try:
        result = await ingest_poll(snapshot, session_factory=session_factory)
    except StorageFailure:
        logger.exception("Poll for %s not stored, skipping cycle", identity)
        return None

    logger.debug(
        "Polled %s (players=%s created=%s updated=%s closed=%s)",
        identity,
        len(snapshot.players),
        result.created,
        result.updated,
        result.closed,
    )
    return result


async def run_poll_loop(
    identity: ServerIdentity,
    *,
    interval_seconds: int | None = None,
    query: QueryFunc = query_a2s,
    session_factory=AsyncSessionLocal,
) -> None:
    interval = max(interval_seconds or settings.POLL_INTERVAL_SECONDS, 1)
    logger.info("Poll loop enabled for %s (interval_seconds=%s)", identity, interval)
    while True:
        try:
            await poll_once(identity, query=query, session_factory=session_factory)
        except asyncio.CancelledError:
            logger.info("Poll loop for %s cancelled", identity)
            raise
        except Exception:
            logger.exception("Poll loop iteration failed for %s", identity)
        try:
            await asyncio.sleep(interval)
        except asyncio.CancelledError:
            logger.info("Poll loop for %s cancelled", identity)
            raise
