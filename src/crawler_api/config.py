"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Application
    app_name: str = "crawler-api"
    debug: bool = False
    environment: str = "development"

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

    # Database (SQLite for local dev, MySQL/PostgreSQL for prod)
    database_url: str = "sqlite+aiosqlite:///./crawler.db"

    # Frontend
    frontend_url: str = "http://localhost:3000"

    # API
    api_prefix: str = "/api"
    sites_page_size_max: int = 100

    # Snowflake node identity (must be unique per running process)
    datacenter_id: int = 1
    worker_id: int = 1
    id_epoch_ms: int = 1609459200000  # 2021-01-01T00:00:00Z

    # Slug resolution
    slug_max_attempts: int = 5
    slug_timeout_seconds: float | None = None

    # Headless browser
    crawl_headless: bool = True
    crawl_nav_timeout_ms: int = 30000


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
