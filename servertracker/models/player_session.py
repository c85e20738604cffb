# servertracker/models/player_session.py
from __future__ import annotations

from typing import Optional, TYPE_CHECKING

from sqlalchemy import BigInteger, ForeignKeyConstraint, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from servertracker.db.base_class import Base

if TYPE_CHECKING:
    from servertracker.models.server import GameServer


class PlayerSession(Base):
    """
    One continuous presence of a named player on one server.

    ended_at NULL = open session. At most one open row per
    (server, player_name) is kept by the ledger, not by a constraint.
    """

    __tablename__ = "player_sessions"
    __table_args__ = (
        ForeignKeyConstraint(
            ["server_type", "host", "port"],
            ["servers.server_type", "servers.host", "servers.port"],
            ondelete="CASCADE",
        ),
        Index(
            "idx_player_sessions_active",
            "server_type",
            "host",
            "port",
            "ended_at",
            "last_seen_at",
        ),
        Index("idx_player_sessions_name", "player_name"),
        # ids are never reused, so lowest id == earliest created
        {"sqlite_autoincrement": True},
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    server_type: Mapped[str] = mapped_column(String(64), nullable=False)
    host: Mapped[str] = mapped_column(String(255), nullable=False)
    port: Mapped[int] = mapped_column(Integer, nullable=False)

    player_name: Mapped[str] = mapped_column(String(255), nullable=False)
    steam_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # epoch millis
    started_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    last_seen_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    ended_at: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    server: Mapped["GameServer"] = relationship(back_populates="sessions")

    @property
    def is_open(self) -> bool:
        return self.ended_at is None
