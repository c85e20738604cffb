# servertracker/schemas/player_session.py
from typing import Optional

from pydantic import BaseModel, ConfigDict


class ActivePlayerSessionRead(BaseModel):
    player_name: str
    steam_id: Optional[str] = None
    started_at: int
    last_seen_at: int

    model_config = ConfigDict(from_attributes=True)


class PlayerSessionRead(ActivePlayerSessionRead):
    id: int
    ended_at: Optional[int] = None


class PollResult(BaseModel):
    """What one ingested poll did to the ledger."""

    created: int
    updated: int
    closed: int
