"""
Configuration management using Pydantic Settings.

All configuration is loaded from environment variables with sensible defaults.
"""

from pathlib import Path
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_USER_AGENT = "subnet-hub-builder/1.0"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Build inputs/outputs
    manifest_path: str = Field("subnet.json", description="Path to the hub manifest")
    output_dir: str = Field("_site", description="Directory the built site is written to")
    index_post_limit: int = Field(50, description="Posts listed on the hub index page")

    # Outbound HTTP
    user_agent: str = Field(DEFAULT_USER_AGENT, description="User-Agent sent on every request")
    verify_timeout: float = Field(10.0, description="Timeout for back-link page fetches (seconds)")
    manifest_timeout: float = Field(10.0, description="Timeout for peer manifest fetches (seconds)")
    feed_timeout: float = Field(15.0, description="Timeout for feed fetches (seconds)")
    max_concurrent_fetches: int = Field(5, description="Max concurrent outbound requests")

    # Widget cache
    widget_cache_ttl_minutes: int = Field(30, description="Freshness window of cached hub feeds")

    # Database
    database_url: Optional[str] = Field(None, description="SQLAlchemy URL (leave empty for SQLite)")
    database_path: str = Field("./data/subnet_hub.db", description="SQLite file path")

    # Server
    port: int = Field(8000, description="HTTP server port")

    # Logging
    log_level: str = Field("INFO", description="Log level")
    log_json: bool = Field(False, description="Output logs as JSON")

    @field_validator("max_concurrent_fetches")
    @classmethod
    def positive_concurrency(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_concurrent_fetches must be at least 1")
        return v

    @property
    def effective_database_url(self) -> str:
        """Get the effective database URL (configured URL or SQLite file)."""
        if self.database_url:
            return self.database_url

        db_path = Path(self.database_path)
        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError:
            # Read-only checkouts (CI runners) fall back to /tmp
            db_path = Path("/tmp") / db_path.name
            db_path.parent.mkdir(parents=True, exist_ok=True)

        return f"sqlite:///{db_path.absolute()}"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


def clear_settings_cache():
    """Clear the settings cache (useful for tests)."""
    get_settings.cache_clear()
