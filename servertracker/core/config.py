# servertracker/core/config.py
from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from servertracker.core.errors import InvalidInputError
from servertracker.schemas.server import ServerIdentity


class Settings(BaseSettings):
    """
    Configurações globais do tracker.

    Lê o .env e expõe propriedades derivadas usadas no código:
    - settings.database_url (sqlite+aiosqlite por padrão, ou postgresql+asyncpg)
    - settings.poll_targets (lista de ServerIdentity a partir de POLL_TARGETS)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignora qualquer variável extra que não tenhamos declarado
    )

    APP_NAME: str = "Server Tracker"
    LOG_LEVEL: str = "INFO"

    # ------------------------------------------------------------------
    # Banco
    # ------------------------------------------------------------------
    data_dir: str = "data"

    tracker_db_host: Optional[str] = None
    tracker_db_port: int = 5432
    tracker_db_user: str = "tracker"
    tracker_db_password: str = "tracker"
    tracker_db_name: str = "server_tracker"

    # Opcional: DATABASE_URL direto no .env tem prioridade
    DATABASE_URL: Optional[str] = Field(
        default=None,
        alias="DATABASE_URL",
    )

    # ------------------------------------------------------------------
    # Poller
    # ------------------------------------------------------------------
    POLL_ENABLED: bool = True
    # "rust:136.0.0.1:28017,csgo:example.org:27015"
    POLL_TARGETS: str = ""
    POLL_INTERVAL_SECONDS: int = 30
    POLL_TIMEOUT_SECONDS: float = 5.0

    # ------------------------------------------------------------------
    # Sessões
    # ------------------------------------------------------------------
    UNNAMED_PLAYER_NAME: str = "(unnamed player)"
    CLOSE_OPEN_SESSIONS_ON_STARTUP: bool = True
    SESSION_MERGE_GAP_MS: int = 5000

    RECENT_SESSIONS_DEFAULT_LIMIT: int = 25
    RECENT_SESSIONS_MAX_LIMIT: int = 500

    # ------------------------------------------------------------------
    # API
    # ------------------------------------------------------------------
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 3000
    API_METRICS_ENABLED: bool = True
    ADMIN_TOKEN: Optional[str] = None

    # ==================================================================
    # Propriedades derivadas
    # ==================================================================

    @property
    def database_url(self) -> str:
        """
        URL async do banco para o SQLAlchemy.

        Prioridade:
        1) DATABASE_URL, se setada
        2) tracker_db_* quando tracker_db_host estiver setado (Postgres)
        3) arquivo SQLite em data_dir/server-tracker.db
        """
        url = self.DATABASE_URL
        if not url and self.tracker_db_host:
            url = (
                f"postgresql+asyncpg://"
                f"{self.tracker_db_user}:{self.tracker_db_password}"
                f"@{self.tracker_db_host}:{self.tracker_db_port}/{self.tracker_db_name}"
            )
        if not url:
            db_path = Path(self.data_dir) / "server-tracker.db"
            url = f"sqlite+aiosqlite:///{db_path}"

        if url.startswith("postgresql://"):
            url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
        elif url.startswith("sqlite://"):
            url = url.replace("sqlite://", "sqlite+aiosqlite://", 1)

        return url

    @property
    def poll_targets(self) -> List[ServerIdentity]:
        """
        Converte POLL_TARGETS em identidades:

        "rust:10.0.0.5:28017, csgo:game.example.org:27015"
        """
        targets: List[ServerIdentity] = []
        for raw in self.POLL_TARGETS.split(","):
            raw = raw.strip()
            if not raw:
                continue
            server_type, sep, rest = raw.partition(":")
            host, sep2, port = rest.rpartition(":")
            if not sep or not sep2 or not port.isdigit():
                raise InvalidInputError(f"Invalid poll target {raw!r}, expected type:host:port")
            targets.append(ServerIdentity.parse(server_type, host, int(port)))
        return targets


settings = Settings()
