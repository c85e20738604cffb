# servertracker/schemas/server.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from servertracker.core.errors import InvalidInputError


class ServerIdentity(BaseModel):
    """Composite key of a tracked game server."""

    type: str = Field(..., min_length=1, max_length=64)
    host: str = Field(..., min_length=1, max_length=255)
    port: int = Field(..., ge=1, le=65535)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def parse(cls, type: str, host: str, port: int) -> "ServerIdentity":
        """Build an identity, raising InvalidInputError instead of a pydantic error."""
        server_type = (type or "").strip()
        host = (host or "").strip()
        if not server_type or not host:
            raise InvalidInputError("Server type and host must not be empty")
        if isinstance(port, bool) or not isinstance(port, int) or not 1 <= port <= 65535:
            raise InvalidInputError(f"Invalid server port {port!r}")
        return cls(type=server_type, host=host, port=port)

    def key(self) -> tuple[str, str, int]:
        return (self.type, self.host, self.port)

    def __str__(self) -> str:
        return f"{self.type}:{self.host}:{self.port}"


class ObservedPlayer(BaseModel):
    name: Optional[str] = None
    steam_id: Optional[str] = None
    # seconds the server says the player has been connected
    start_offset_seconds: Optional[float] = None


class PollSnapshot(BaseModel):
    """One query result for one server, as produced by a poller."""

    server: ServerIdentity
    name: Optional[str] = None
    map: Optional[str] = None
    num_players: Optional[int] = None
    max_players: Optional[int] = None
    ping: Optional[int] = None
    players: List[ObservedPlayer] = Field(default_factory=list)
    # epoch millis; None = now
    queried_at: Optional[int] = None


class ServerRead(BaseModel):
    type: str
    host: str
    port: int
    name: Optional[str] = None
    map: Optional[str] = None
    current_players: Optional[int] = None
    max_players: Optional[int] = None
    ping: Optional[int] = None
    last_seen_at: int

    @classmethod
    def from_model(cls, row) -> "ServerRead":
        return cls(
            type=row.server_type,
            host=row.host,
            port=row.port,
            name=row.name,
            map=row.map,
            current_players=row.current_players,
            max_players=row.max_players,
            ping=row.last_ping,
            last_seen_at=row.last_seen_at,
        )
