"""Application Configuration: environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache): single instance per process

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults for every non-secret setting; SESSION_BACKEND=memory needs no infra
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Telegram
    telegram_bot_token: str = "telegram-token-placeholder"
    telegram_api_url: str = "https://api.telegram.org"
    telegram_poll_timeout: int = 30
    telegram_polling_enabled: bool = True

    # YouTrack
    youtrack_url: str = "https://example.myjetbrains.com/youtrack"
    youtrack_hub_url: str = "https://example.myjetbrains.com/hub"
    youtrack_client_id: str = "youtrack-client-placeholder"
    youtrack_scope: str = "YouTrack"
    backlog_query: str = "#Unresolved"
    backlog_page_size: int = Field(5, gt=0)

    # OAuth redirect (implicit flow lands on GET /oauth/callback)
    auth_callback_url: str = "http://127.0.0.1:8000/oauth/callback"
    access_token_capacity: int = 100
    csrf_capacity: int = 1000

    # Callback tokens
    callback_codec: Literal["compact", "opaque"] = "compact"
    callback_cache_size: int = Field(100, gt=0)

    # Session persistence
    session_backend: Literal["memory", "sql", "redis"] = "memory"
    database_url: str = "postgresql+asyncpg://bot:bot@db:5432/bot"

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosted Postgres hands out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10
    database_create_schema: bool = False
    redis_url: str = "redis://localhost:6379/0"

    # Outbound HTTP
    http_timeout_seconds: float = 30.0
    http_max_retries: int = 3
    http_base_delay_ms: int = 500
    http_max_delay_ms: int = 30_000

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
