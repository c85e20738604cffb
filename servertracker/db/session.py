# servertracker/db/session.py

from pathlib import Path

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from servertracker.core.config import settings
from servertracker.db.base import Base


def _build_engine(url: str):
    """
    Engine assíncrono a partir de settings.database_url.

    SQLite: garante o diretório do arquivo, usa NullPool (conexões curtas,
    uma por unidade de trabalho) e liga WAL + foreign_keys em cada conexão.
    """
    parsed = make_url(url)
    if not parsed.drivername.startswith("sqlite"):
        return create_async_engine(url, future=True, echo=False)

    if parsed.database and parsed.database != ":memory:":
        Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)

    sqlite_engine = create_async_engine(
        url,
        future=True,
        echo=False,
        poolclass=NullPool,
    )

    @event.listens_for(sqlite_engine.sync_engine, "connect")
    def _sqlite_pragmas(dbapi_connection, connection_record):  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return sqlite_engine


engine = _build_engine(settings.database_url)

# ----------------------------------------------------------------------
# Factory de sessão assíncrona
# ----------------------------------------------------------------------
AsyncSessionLocal = sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def init_db() -> None:
    """
    Cria as tabelas com base no Base.metadata.

    Em produção, o ideal é usar Alembic para migrations.
    Para desenvolvimento/local, isso aqui resolve.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
