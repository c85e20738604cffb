# servertracker/crud/server.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from servertracker.models.server import GameServer
from servertracker.schemas.server import ServerIdentity

# best-effort protocol fields: NULL in a poll means "no opinion"
COALESCED_FIELDS = ("name", "map", "max_players", "last_ping")
# always overwritten by the latest poll
OVERWRITTEN_FIELDS = ("current_players", "last_seen_at")


def dialect_insert(db: AsyncSession, table):
    """INSERT construct with ON CONFLICT support for the session's dialect."""
    if db.bind.dialect.name == "postgresql":
        return pg_insert(table)
    return sqlite_insert(table)


class CRUDGameServer:
    async def get(
        self,
        db: AsyncSession,
        identity: ServerIdentity,
    ) -> Optional[GameServer]:
        return await db.get(GameServer, (identity.type, identity.host, identity.port))

    async def get_multi(self, db: AsyncSession) -> List[GameServer]:
        stmt = select(GameServer).order_by(
            GameServer.server_type,
            GameServer.host,
            GameServer.port,
        )
        res = await db.execute(stmt)
        return list(res.scalars().all())

    async def count(self, db: AsyncSession) -> int:
        res = await db.execute(select(func.count()).select_from(GameServer))
        return int(res.scalar_one())

    async def upsert(
        self,
        db: AsyncSession,
        identity: ServerIdentity,
        values: Dict[str, Any],
    ) -> None:
        """
        Atomic insert-or-update keyed by (server_type, host, port).

        Does not commit; runs inside the caller's transaction.
        """
        table = GameServer.__table__
        row = {
            "server_type": identity.type,
            "host": identity.host,
            "port": identity.port,
            **{field: values.get(field) for field in COALESCED_FIELDS + OVERWRITTEN_FIELDS},
        }

        stmt = dialect_insert(db, table).values(**row)
        set_ = {field: func.coalesce(stmt.excluded[field], table.c[field]) for field in COALESCED_FIELDS}
        set_.update({field: stmt.excluded[field] for field in OVERWRITTEN_FIELDS})
        stmt = stmt.on_conflict_do_update(
            index_elements=["server_type", "host", "port"],
            set_=set_,
        )
        await db.execute(stmt)


server = CRUDGameServer()
