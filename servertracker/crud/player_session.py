# servertracker/crud/player_session.py
from __future__ import annotations

from typing import Iterable, List, NamedTuple

from sqlalchemy import delete, distinct, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from servertracker.core.errors import InvalidInputError
from servertracker.models.player_session import PlayerSession
from servertracker.models.server import GameServer
from servertracker.schemas.server import ServerIdentity
from servertracker.schemas.stats import DatabaseStats, PlayerSessionStats


class ExactDuplicateGroup(NamedTuple):
    server_type: str
    host: str
    port: int
    player_name: str
    started_at: int
    total: int


class PlayerGroup(NamedTuple):
    server_type: str
    host: str
    port: int
    player_name: str
    total: int


def _for_server(stmt, server_type: str, host: str, port: int):
    return stmt.where(
        PlayerSession.server_type == server_type,
        PlayerSession.host == host,
        PlayerSession.port == port,
    )


class CRUDPlayerSession:
    """
    Queries over player_sessions. Nothing here commits: writers run inside
    the ledger/consolidation transactions, readers never mutate.
    """

    # ------------------------------------------------------------------
    # Read views
    # ------------------------------------------------------------------

    async def list_active(
        self,
        db: AsyncSession,
        identity: ServerIdentity,
    ) -> List[PlayerSession]:
        stmt = _for_server(select(PlayerSession), *identity.key())
        stmt = stmt.where(PlayerSession.ended_at.is_(None)).order_by(
            PlayerSession.started_at.asc(),
            PlayerSession.id.asc(),
        )
        res = await db.execute(stmt)
        return list(res.scalars().all())

    async def list_recent(
        self,
        db: AsyncSession,
        identity: ServerIdentity,
        *,
        limit: int,
        max_limit: int | None = None,
    ) -> List[PlayerSession]:
        if limit is None or limit <= 0:
            raise InvalidInputError(f"limit must be positive, got {limit!r}")
        if max_limit is not None:
            limit = min(limit, max_limit)

        stmt = _for_server(select(PlayerSession), *identity.key())
        stmt = stmt.order_by(
            PlayerSession.started_at.desc(),
            PlayerSession.id.desc(),
        ).limit(limit)
        res = await db.execute(stmt)
        return list(res.scalars().all())

    async def get_stats(self, db: AsyncSession) -> DatabaseStats:
        stmt = select(
            select(func.count()).select_from(PlayerSession).scalar_subquery(),
            select(func.count(distinct(PlayerSession.player_name))).scalar_subquery(),
            select(func.count()).select_from(GameServer).scalar_subquery(),
            select(func.count())
            .select_from(PlayerSession)
            .where(PlayerSession.ended_at.is_(None))
            .scalar_subquery(),
        )
        total, unique_players, servers, active = (await db.execute(stmt)).one()
        return DatabaseStats(
            total_sessions=total or 0,
            unique_players=unique_players or 0,
            server_count=servers or 0,
            active_sessions=active or 0,
        )

    async def list_player_stats(self, db: AsyncSession) -> List[PlayerSessionStats]:
        session_count = func.count().label("session_count")
        stmt = (
            select(
                PlayerSession.player_name,
                session_count,
                func.min(PlayerSession.started_at).label("first_seen"),
            )
            .group_by(PlayerSession.player_name)
            .order_by(session_count.desc(), PlayerSession.player_name.asc())
        )
        res = await db.execute(stmt)
        return [
            PlayerSessionStats(
                player_name=row.player_name,
                session_count=row.session_count,
                first_seen=row.first_seen,
            )
            for row in res.all()
        ]

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    async def close_all_open(self, db: AsyncSession, *, timestamp: int) -> int:
        stmt = (
            update(PlayerSession)
            .where(PlayerSession.ended_at.is_(None))
            .values(ended_at=timestamp)
        )
        res = await db.execute(stmt)
        return res.rowcount or 0

    # ------------------------------------------------------------------
    # Consolidation
    # ------------------------------------------------------------------

    async def list_exact_duplicate_groups(self, db: AsyncSession) -> List[ExactDuplicateGroup]:
        total = func.count().label("total")
        stmt = (
            select(
                PlayerSession.server_type,
                PlayerSession.host,
                PlayerSession.port,
                PlayerSession.player_name,
                PlayerSession.started_at,
                total,
            )
            .group_by(
                PlayerSession.server_type,
                PlayerSession.host,
                PlayerSession.port,
                PlayerSession.player_name,
                PlayerSession.started_at,
            )
            .having(func.count() > 1)
            .order_by(total.desc(), PlayerSession.player_name.asc())
        )
        res = await db.execute(stmt)
        return [ExactDuplicateGroup(*row) for row in res.all()]

    async def list_exact_duplicates(
        self,
        db: AsyncSession,
        group: ExactDuplicateGroup,
    ) -> List[PlayerSession]:
        stmt = _for_server(select(PlayerSession), group.server_type, group.host, group.port)
        stmt = stmt.where(
            PlayerSession.player_name == group.player_name,
            PlayerSession.started_at == group.started_at,
        ).order_by(PlayerSession.id.asc())
        res = await db.execute(stmt)
        return list(res.scalars().all())

    async def list_multi_session_players(self, db: AsyncSession) -> List[PlayerGroup]:
        stmt = (
            select(
                PlayerSession.server_type,
                PlayerSession.host,
                PlayerSession.port,
                PlayerSession.player_name,
                func.count().label("total"),
            )
            .group_by(
                PlayerSession.server_type,
                PlayerSession.host,
                PlayerSession.port,
                PlayerSession.player_name,
            )
            .having(func.count() > 1)
            .order_by(
                PlayerSession.server_type,
                PlayerSession.host,
                PlayerSession.port,
                PlayerSession.player_name,
            )
        )
        res = await db.execute(stmt)
        return [PlayerGroup(*row) for row in res.all()]

    async def list_player_sessions(
        self,
        db: AsyncSession,
        group: PlayerGroup,
    ) -> List[PlayerSession]:
        stmt = _for_server(select(PlayerSession), group.server_type, group.host, group.port)
        stmt = stmt.where(PlayerSession.player_name == group.player_name).order_by(
            PlayerSession.started_at.asc(),
            PlayerSession.id.asc(),
        )
        res = await db.execute(stmt)
        return list(res.scalars().all())

    async def delete_ids(self, db: AsyncSession, ids: Iterable[int]) -> int:
        ids = list(ids)
        if not ids:
            return 0
        res = await db.execute(delete(PlayerSession).where(PlayerSession.id.in_(ids)))
        return res.rowcount or 0


player_session = CRUDPlayerSession()
