# servertracker/__main__.py
import uvicorn

from servertracker.core.config import settings


def main() -> None:
    """Sobe a API (e os pollers configurados) com uvicorn."""
    uvicorn.run(
        "servertracker.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    main()
