# app/core/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables (or a local `.env` file)
    at runtime.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "Family Organizer"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./family_organizer.db",
        description="SQLAlchemy-compatible database URL",
    )

    INTERNAL_API_KEY: str | None = Field(
        default=None,
        description="API key required for hitting /internal endpoints",
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level for console output (DEBUG/INFO/WARNING/ERROR).",
    )

    DEFAULT_TASK_XP: int = Field(
        default=1,
        description="XP points assigned to a task when none are given on creation.",
    )

    XP_PER_LEVEL: int = Field(
        default=100,
        description="XP needed per level in the monthly XP ledger.",
    )
    MAX_LEVEL: int = Field(
        default=10,
        description="Highest reachable level in a month.",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Settings are read and validated only once per process.
    """
    return Settings()
