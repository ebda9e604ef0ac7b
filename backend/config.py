"""Runtime settings loaded from the environment (and an optional .env file).

Environment variables:
    DATABASE_URL     database connection string; falls back to local SQLite
    DATABASE_PATH    SQLite file used by the fallback (default ./sweats.db)
    HYPIXEL_API_KEY  key for the player statistics API
    URCHIN_KEY       key for the Urchin tagging API
    PORT             listen port (default 3000)
    LOG_LEVEL        root log level (default INFO)

Missing values are logged as warnings; routes that depend on them fail when
called instead of blocking startup.
"""
import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import find_dotenv, load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_PORT = 3000


@dataclass(frozen=True)
class Settings:
    database_url: str
    hypixel_api_key: str | None = None
    urchin_key: str | None = None
    port: int = DEFAULT_PORT
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv(find_dotenv(usecwd=True))

        database_url = os.getenv("DATABASE_URL")
        if not database_url:
            db_path = os.getenv("DATABASE_PATH", "./sweats.db")
            logger.warning(
                f"DATABASE_URL not set; using local SQLite at {db_path}. "
                "DB features will use this file until DATABASE_URL is set."
            )
            database_url = f"sqlite:///{db_path}"

        # Some hosts hand out postgres:// but SQLAlchemy needs postgresql://
        if database_url.startswith("postgres://"):
            database_url = database_url.replace("postgres://", "postgresql://", 1)

        hypixel_api_key = os.getenv("HYPIXEL_API_KEY", "").strip() or None
        if not hypixel_api_key:
            logger.warning("HYPIXEL_API_KEY not set. Hypixel requests will fail until set.")

        urchin_key = os.getenv("URCHIN_KEY", "").strip() or None
        if not urchin_key:
            logger.warning("URCHIN_KEY not set. Urchin lookups will fall back until set.")

        try:
            port = int(os.getenv("PORT", DEFAULT_PORT))
        except ValueError:
            logger.warning(f"Invalid PORT {os.getenv('PORT')!r}; using {DEFAULT_PORT}")
            port = DEFAULT_PORT

        return cls(
            database_url=database_url,
            hypixel_api_key=hypixel_api_key,
            urchin_key=urchin_key,
            port=port,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache
def get_settings() -> Settings:
    """Settings for this process, read from the environment once."""
    return Settings.from_env()
