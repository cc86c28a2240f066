"""Application configuration via pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """CleanBook settings, read from the environment and ``.env``."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "CleanBook"
    app_version: str = "1.0.0"
    environment: Literal["development", "test", "staging", "production"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    # Realtime subscribers live in one process, so more workers split the rooms
    workers: int = Field(default=1, ge=1)

    # Database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "cleanbook"
    postgres_password: str = Field(default="cleanbook_secret")
    postgres_db: str = "cleanbook"
    db_pool_size: int = 20
    db_max_overflow: int = 10
    # Full URL override, e.g. sqlite+aiosqlite:///./cleanbook.db
    database_dsn: Optional[str] = None
    # create_all on startup instead of running migrations
    auto_create_tables: bool = False

    @computed_field
    @property
    def database_url(self) -> str:
        """Async SQLAlchemy URL; PostgreSQL via asyncpg unless overridden."""
        if self.database_dsn:
            return self.database_dsn
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Redis (rate limiting)
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    @computed_field
    @property
    def redis_url(self) -> str:
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Access tokens
    jwt_secret_key: str = Field(default="change-me-in-production")
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Realtime
    hub_queue_size: int = Field(default=64, ge=1)

    # Rate limiting
    rate_limit_per_minute: int = 100

    # CORS
    cors_origins: List[str] = ["http://localhost:3000"]

    @property
    def rate_limit_enabled(self) -> bool:
        return self.environment not in ("development", "test")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
