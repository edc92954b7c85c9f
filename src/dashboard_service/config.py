"""Application configuration management."""

from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Application Settings
    # -------------------------------------------------------------------------
    app_name: str = "aues-dashboard"
    app_env: Literal["development", "staging", "production", "test"] = "development"
    debug: bool = False
    log_level: str = "INFO"

    # -------------------------------------------------------------------------
    # API Settings
    # -------------------------------------------------------------------------
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_workers: int = 2
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, v: str | list[str]) -> list[str]:
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(",")]
        return v

    # -------------------------------------------------------------------------
    # PostgreSQL Database
    # -------------------------------------------------------------------------
    database_url_override: str = Field(
        default="",
        validation_alias=AliasChoices("database_url", "database_url_override"),
    )
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "aues"
    postgres_password: str = ""
    postgres_db: str = "aues_dashboard"
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_recycle: int = 1800

    @property
    def database_url(self) -> str:
        """Construct async database connection URL."""
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def database_url_sync(self) -> str:
        """Construct synchronous connection URL (for Alembic)."""
        if self.database_url_override:
            return (
                self.database_url_override.replace("+asyncpg", "")
                .replace("+aiosqlite", "")
            )
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # -------------------------------------------------------------------------
    # Redis
    # -------------------------------------------------------------------------
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: str = ""
    redis_db: int = 0

    @property
    def redis_url(self) -> str:
        """Construct Redis connection URL."""
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # -------------------------------------------------------------------------
    # Celery
    # -------------------------------------------------------------------------
    celery_broker_url: str = ""
    celery_result_backend: str = ""

    @property
    def celery_broker(self) -> str:
        """Get Celery broker URL, defaulting to Redis URL."""
        return self.celery_broker_url or self.redis_url

    @property
    def celery_backend(self) -> str:
        """Get Celery result backend URL, defaulting to Redis URL."""
        return self.celery_result_backend or self.redis_url

    # -------------------------------------------------------------------------
    # Security
    # -------------------------------------------------------------------------
    cron_secret: str = ""
    admin_api_key: str = ""
    encryption_key: str = ""

    # -------------------------------------------------------------------------
    # Site settings cache
    # -------------------------------------------------------------------------
    settings_cache_ttl_seconds: int = 300

    # -------------------------------------------------------------------------
    # Squarespace Commerce API
    # -------------------------------------------------------------------------
    squarespace_base_url: str = "https://api.squarespace.com"
    squarespace_api_version: str = "1.0"
    squarespace_user_agent: str = "AUES Dashboard"
    squarespace_api_timeout: int = 30

    # -------------------------------------------------------------------------
    # Rubric (QPay) membership API
    # Used when the site settings row has no Rubric credentials.
    # -------------------------------------------------------------------------
    rubric_api_url: str = ""
    rubric_email: str = ""
    rubric_session_id: str = ""
    rubric_api_timeout: int = 30

    # -------------------------------------------------------------------------
    # Sync Settings
    # -------------------------------------------------------------------------
    order_sync_min_interval_seconds: int = 300
    member_sync_min_interval_seconds: int = 60
    order_line_item_chunk_size: int = 500
    member_update_batch_size: int = 100
    member_update_concurrency: int = 4

    # -------------------------------------------------------------------------
    # Sync Worker Settings
    # -------------------------------------------------------------------------
    sync_orders_interval_minutes: int = 5
    sync_members_fallback_interval_minutes: int = 30


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
