import os
import tempfile

# precisa vir antes de qualquer import de servertracker (settings/engine)
_TMP_DIR = tempfile.mkdtemp(prefix="server-tracker-tests-")
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///" + os.path.join(_TMP_DIR, "tracker-test.db")
os.environ["POLL_ENABLED"] = "false"
os.environ["CLOSE_OPEN_SESSIONS_ON_STARTUP"] = "false"

import pytest

from servertracker.db.base import Base
from servertracker.db.session import engine
from servertracker.services import locks


@pytest.fixture
async def reset_db():
    """Schema limpo por teste."""
    locks._locks.clear()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
