# servertracker/api/deps.py
import hmac
from collections.abc import AsyncGenerator

from fastapi import Header, HTTPException, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from servertracker.core.config import settings
from servertracker.db.session import AsyncSessionLocal
from servertracker.schemas.server import ServerIdentity


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session


def get_session_factory():
    """Factory usada pelos serviços que abrem as próprias transações."""
    return AsyncSessionLocal


def get_server_identity(
    server_type: str = Path(...),
    host: str = Path(...),
    port: int = Path(...),
) -> ServerIdentity:
    return ServerIdentity.parse(server_type, host, port)


async def require_admin(
    x_admin_token: str | None = Header(default=None),
) -> None:
    """
    Protege as rotas de manutenção quando ADMIN_TOKEN estiver configurado.
    Sem ADMIN_TOKEN (dev/local) as rotas ficam abertas.
    """
    expected = settings.ADMIN_TOKEN
    if not expected:
        return
    if not x_admin_token or not hmac.compare_digest(x_admin_token, expected):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin token inválido ou ausente.",
        )
