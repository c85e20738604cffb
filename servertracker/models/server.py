# servertracker/models/server.py
from __future__ import annotations

from typing import List, Optional, TYPE_CHECKING

from sqlalchemy import BigInteger, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from servertracker.db.base_class import Base

if TYPE_CHECKING:
    from servertracker.models.player_session import PlayerSession


class GameServer(Base):
    """
    One row per physical server ever polled, keyed by (type, host, port).

    Everything except the key and last_seen_at comes from best-effort
    protocol parsing and may be missing.
    """

    __tablename__ = "servers"

    server_type: Mapped[str] = mapped_column(String(64), primary_key=True)
    host: Mapped[str] = mapped_column(String(255), primary_key=True)
    port: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    map: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    max_players: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    current_players: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    last_ping: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # epoch millis
    last_seen_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    sessions: Mapped[List["PlayerSession"]] = relationship(
        back_populates="server",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
