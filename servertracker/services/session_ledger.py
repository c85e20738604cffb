"""Session ledger: turns "who is online right now" snapshots into sessions.

There is no disconnect event in the query protocols, so absence from a poll
is the only close signal. Each poll is reconciled against the open sessions
of its server:

    (open sessions, observed names) -> (to_create, to_update, to_close)

``plan_transitions`` computes that triple without touching storage;
``apply_poll`` writes it inside the caller's transaction and ``ingest_poll``
wraps registry + ledger in one transaction per poll.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from servertracker.core.config import settings
from servertracker.core.errors import StorageFailure
from servertracker.crud import player_session as crud_player_session
from servertracker.db.session import AsyncSessionLocal
from servertracker.models.player_session import PlayerSession
from servertracker.schemas.player_session import PollResult
from servertracker.schemas.server import ObservedPlayer, PollSnapshot, ServerIdentity
from servertracker.services.locks import server_lock
from servertracker.services.server_registry import record_server
from servertracker.utils.text import normalize_player_name, sanitize_number, sanitize_text
from servertracker.utils.time import now_ms

logger = logging.getLogger("tracker.ledger")


@dataclass(frozen=True)
class SeenPlayer:
    name: str
    steam_id: Optional[str] = None
    start_offset_seconds: Optional[float] = None


@dataclass(frozen=True)
class SessionStart:
    player_name: str
    steam_id: Optional[str]
    started_at: int
    last_seen_at: int


@dataclass(frozen=True)
class SessionTouch:
    session_id: int
    last_seen_at: int
    # only set when the open session has no steam id yet
    steam_id: Optional[str] = None


@dataclass(frozen=True)
class SessionClose:
    session_id: int
    ended_at: int


@dataclass
class SessionTransitions:
    to_create: List[SessionStart] = field(default_factory=list)
    to_update: List[SessionTouch] = field(default_factory=list)
    to_close: List[SessionClose] = field(default_factory=list)

    def as_result(self) -> PollResult:
        return PollResult(
            created=len(self.to_create),
            updated=len(self.to_update),
            closed=len(self.to_close),
        )


def _player_field(player: Any, name: str) -> Any:
    if isinstance(player, dict):
        return player.get(name)
    return getattr(player, name, None)


def normalize_observed_players(
    players: Iterable[ObservedPlayer | dict] | None,
    placeholder: str,
) -> List[SeenPlayer]:
    """
    Trim names (blank -> placeholder) and steam ids, keep the first entry
    of each name. Duplicate entries are noisy protocol data, not errors.
    """
    seen: Dict[str, SeenPlayer] = {}
    duplicates = 0
    for player in players or []:
        name = normalize_player_name(_player_field(player, "name"), placeholder)
        if name in seen:
            duplicates += 1
            continue
        seen[name] = SeenPlayer(
            name=name,
            steam_id=sanitize_text(_player_field(player, "steam_id")),
            start_offset_seconds=sanitize_number(_player_field(player, "start_offset_seconds")),
        )
    if duplicates:
        logger.warning("Ignored %s duplicate player entries in one poll", duplicates)
    return list(seen.values())


def resolve_started_at(timestamp: int, offset_seconds: Optional[float]) -> int:
    """Convert a declared connection duration into an absolute start time."""
    offset = sanitize_number(offset_seconds)
    if offset is None or offset < 0:
        return timestamp
    started_at = timestamp - int(round(offset * 1000))
    if started_at <= 0:
        return timestamp
    return started_at


def plan_transitions(
    open_sessions: Sequence[Any],
    observed: Sequence[SeenPlayer],
    timestamp: int,
) -> SessionTransitions:
    """
    Reconcile the open sessions of one server with one poll.

    ``open_sessions`` are rows (or anything with id, player_name, steam_id,
    started_at) with ended_at NULL, snapshotted before any write.
    ``observed`` must already be normalized and deduplicated.
    """
    plan = SessionTransitions()

    open_by_name: Dict[str, List[Any]] = {}
    for row in sorted(open_sessions, key=lambda r: (r.started_at, r.id)):
        open_by_name.setdefault(row.player_name, []).append(row)

    observed_names = set()
    for player in observed:
        observed_names.add(player.name)
        rows = open_by_name.get(player.name)
        if not rows:
            plan.to_create.append(
                SessionStart(
                    player_name=player.name,
                    steam_id=player.steam_id,
                    started_at=resolve_started_at(timestamp, player.start_offset_seconds),
                    last_seen_at=timestamp,
                )
            )
            continue

        current, extra = rows[0], rows[1:]
        plan.to_update.append(
            SessionTouch(
                session_id=current.id,
                last_seen_at=timestamp,
                steam_id=player.steam_id if current.steam_id is None else None,
            )
        )
        if extra:
            # more than one open row for a name: keep the earliest one going
            logger.warning(
                "Player %r had %s open sessions; closing all but id=%s",
                player.name,
                len(rows),
                current.id,
            )
            plan.to_close.extend(SessionClose(session_id=row.id, ended_at=timestamp) for row in extra)

    for name, rows in open_by_name.items():
        if name in observed_names:
            continue
        plan.to_close.extend(SessionClose(session_id=row.id, ended_at=timestamp) for row in rows)

    return plan


def _create_sessions(
    db: AsyncSession,
    identity: ServerIdentity,
    starts: Sequence[SessionStart],
) -> None:
    for start in starts:
        db.add(
            PlayerSession(
                server_type=identity.type,
                host=identity.host,
                port=identity.port,
                player_name=start.player_name,
                steam_id=start.steam_id,
                started_at=start.started_at,
                last_seen_at=start.last_seen_at,
                ended_at=None,
            )
        )


def _touch_sessions(
    rows_by_id: Dict[int, PlayerSession],
    touches: Sequence[SessionTouch],
) -> None:
    for touch in touches:
        row = rows_by_id[touch.session_id]
        row.last_seen_at = max(row.last_seen_at, touch.last_seen_at)
        if touch.steam_id and row.steam_id is None:
            row.steam_id = touch.steam_id


def _close_missing(
    rows_by_id: Dict[int, PlayerSession],
    closes: Sequence[SessionClose],
) -> None:
    for close in closes:
        rows_by_id[close.session_id].ended_at = close.ended_at


async def apply_poll(
    db: AsyncSession,
    identity: ServerIdentity,
    timestamp: int,
    players: Iterable[ObservedPlayer | dict] | None,
    *,
    placeholder: str | None = None,
) -> SessionTransitions:
    """
    Apply one poll to the ledger inside the caller's transaction.

    An empty player list is valid and closes every open session.
    """
    observed = normalize_observed_players(players, placeholder or settings.UNNAMED_PLAYER_NAME)
    open_rows = await crud_player_session.list_active(db, identity)
    plan = plan_transitions(open_rows, observed, timestamp)

    rows_by_id = {row.id: row for row in open_rows}
    _touch_sessions(rows_by_id, plan.to_update)
    _create_sessions(db, identity, plan.to_create)
    _close_missing(rows_by_id, plan.to_close)
    await db.flush()

    logger.debug(
        "Poll applied for %s at %s (created=%s updated=%s closed=%s)",
        identity,
        timestamp,
        len(plan.to_create),
        len(plan.to_update),
        len(plan.to_close),
    )
    return plan


async def ingest_poll(
    snapshot: PollSnapshot,
    *,
    session_factory=AsyncSessionLocal,
    placeholder: str | None = None,
) -> PollResult:
    """
    Ingest one poll: registry upsert + ledger transitions, one transaction.

    Two polls for the same server are serialized; on any failure nothing
    is applied. Storage errors surface as StorageFailure.
    """
    identity = ServerIdentity.parse(*snapshot.server.key())
    timestamp = now_ms() if snapshot.queried_at is None else snapshot.queried_at
    players = snapshot.players or []

    async with server_lock(identity.key()):
        async with session_factory() as db:
            try:
                async with db.begin():
                    await record_server(
                        db,
                        identity,
                        timestamp=timestamp,
                        players_reported=len(players),
                        name=snapshot.name,
                        map=snapshot.map,
                        player_count=snapshot.num_players,
                        max_players=snapshot.max_players,
                        ping=snapshot.ping,
                    )
                    plan = await apply_poll(
                        db,
                        identity,
                        timestamp,
                        players,
                        placeholder=placeholder,
                    )
            except SQLAlchemyError as exc:
                logger.error("Poll for %s could not be committed: %s", identity, exc)
                raise StorageFailure(f"Poll for {identity} could not be committed") from exc

    return plan.as_result()


async def close_all_open_sessions(
    *,
    timestamp: int | None = None,
    session_factory=AsyncSessionLocal,
) -> int:
    """Close sessions left open by a previous process (startup sweep)."""
    timestamp = now_ms() if timestamp is None else timestamp
    async with session_factory() as db:
        async with db.begin():
            closed = await crud_player_session.close_all_open(db, timestamp=timestamp)
    if closed:
        logger.info("Closed %s sessions left open by a previous run", closed)
    return closed
