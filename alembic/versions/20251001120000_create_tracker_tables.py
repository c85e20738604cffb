"""create servers, player_sessions and api_query_metrics

Revision ID: 20251001120000
Revises:
Create Date: 2025-10-01 12:00:00.000000
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20251001120000"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "servers",
        sa.Column("server_type", sa.String(length=64), nullable=False),
        sa.Column("host", sa.String(length=255), nullable=False),
        sa.Column("port", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("map", sa.String(length=255), nullable=True),
        sa.Column("max_players", sa.Integer(), nullable=True),
        sa.Column("current_players", sa.Integer(), nullable=True),
        sa.Column("last_ping", sa.Integer(), nullable=True),
        sa.Column("last_seen_at", sa.BigInteger(), nullable=False),
        sa.PrimaryKeyConstraint("server_type", "host", "port"),
    )

    op.create_table(
        "player_sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("server_type", sa.String(length=64), nullable=False),
        sa.Column("host", sa.String(length=255), nullable=False),
        sa.Column("port", sa.Integer(), nullable=False),
        sa.Column("player_name", sa.String(length=255), nullable=False),
        sa.Column("steam_id", sa.String(length=64), nullable=True),
        sa.Column("started_at", sa.BigInteger(), nullable=False),
        sa.Column("last_seen_at", sa.BigInteger(), nullable=False),
        sa.Column("ended_at", sa.BigInteger(), nullable=True),
        sa.ForeignKeyConstraint(
            ["server_type", "host", "port"],
            ["servers.server_type", "servers.host", "servers.port"],
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    op.create_index(
        "idx_player_sessions_active",
        "player_sessions",
        ["server_type", "host", "port", "ended_at", "last_seen_at"],
        unique=False,
    )
    op.create_index(
        "idx_player_sessions_name",
        "player_sessions",
        ["player_name"],
        unique=False,
    )

    op.create_table(
        "api_query_metrics",
        sa.Column("ip_address", sa.String(length=64), nullable=False),
        sa.Column("route", sa.String(length=255), nullable=False),
        sa.Column("user_agent", sa.String(length=512), nullable=True),
        sa.Column("last_queried_at", sa.BigInteger(), nullable=False),
        sa.Column("query_count", sa.Integer(), nullable=False, server_default="1"),
        sa.PrimaryKeyConstraint("ip_address", "route"),
    )
    op.create_index(
        "idx_api_query_metrics_last",
        "api_query_metrics",
        ["last_queried_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("idx_api_query_metrics_last", table_name="api_query_metrics")
    op.drop_table("api_query_metrics")
    op.drop_index("idx_player_sessions_name", table_name="player_sessions")
    op.drop_index("idx_player_sessions_active", table_name="player_sessions")
    op.drop_table("player_sessions")
    op.drop_table("servers")
