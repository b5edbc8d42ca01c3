# config.py

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

from starlette.config import Config

logger = logging.getLogger(__name__)

# Local development falls back to a SQLite file. Production sets DATABASE_URL,
# e.g. postgresql://[USER]:[PASSWORD]@[DB_HOST]:5432/[DB_NAME]
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./autosave.db"


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the auto-save engine, injected into services."""

    database_url: str = DEFAULT_DATABASE_URL
    api_key: str = ""
    log_level: str = "INFO"
    sql_echo: bool = False
    create_tables: bool = True

    # Destination routing (credit / vault contribution / stock purchase)
    destination_timeout_seconds: float = 10.0
    destination_max_attempts: int = 3
    destination_retry_backoff_seconds: float = 0.5

    # Parallel fan-out over the rules fired by one transaction
    fanout_concurrency: int = 8
    auto_process_round_ups: bool = True

    # Analytics: nominal horizon for the "behind schedule" nudge
    behind_schedule_horizon_days: int = 365


def _async_database_url(url: str) -> str:
    """Point plain postgres URLs at the async psycopg driver."""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+psycopg://", 1)
    return url


def load_settings(config: Optional[Config] = None) -> Settings:
    """Reads settings from the environment (and a .env file when present)."""
    config = config or Config(".env")

    database_url = config("DATABASE_URL", default=None)
    if not database_url:
        logger.warning("DATABASE_URL is not set; using %s", DEFAULT_DATABASE_URL)
        database_url = DEFAULT_DATABASE_URL

    return Settings(
        database_url=_async_database_url(database_url),
        api_key=config("AUTOSAVE_API_KEY", default=""),
        log_level=config("LOG_LEVEL", default="INFO"),
        sql_echo=config("SQL_ECHO", cast=bool, default=False),
        create_tables=config("CREATE_TABLES", cast=bool, default=True),
        destination_timeout_seconds=config("DESTINATION_TIMEOUT_SECONDS", cast=float, default=10.0),
        destination_max_attempts=config("DESTINATION_MAX_ATTEMPTS", cast=int, default=3),
        destination_retry_backoff_seconds=config("DESTINATION_RETRY_BACKOFF_SECONDS", cast=float, default=0.5),
        fanout_concurrency=config("FANOUT_CONCURRENCY", cast=int, default=8),
        auto_process_round_ups=config("AUTO_PROCESS_ROUND_UPS", cast=bool, default=True),
        behind_schedule_horizon_days=config("BEHIND_SCHEDULE_HORIZON_DAYS", cast=int, default=365),
    )


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


@lru_cache()
def get_settings() -> Settings:
    return load_settings()
