"""Application Configuration - environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) - single instance per process
    - store_timeout_seconds bounds every store operation

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
    - environment=LOCAL creates tables from ORM metadata at startup; PROD never does
"""

from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    environment: Literal["LOCAL", "PROD"] = "LOCAL"

    # Database
    database_url: str = (
        "postgresql+asyncpg://subs:subs@db:5432/subs"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    @field_validator("environment", mode="before")
    @classmethod
    def upper_environment(cls, v: str) -> str:
        return v.upper() if isinstance(v, str) else v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Store
    store_timeout_seconds: float = 5.0

    # Pagination
    default_page_limit: int = 10
    max_page_limit: int = 100

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
