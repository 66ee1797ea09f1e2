"""
Configuration management for the TalentRadar data pipeline.

Uses Pydantic settings for type-safe configuration with environment variable support.
All settings can be overridden via environment variables.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings with environment variable support.

    All settings can be overridden via environment variables, e.g.
    API_FOOTBALL_KEY, MAX_API_CALLS, POPULATION_LEAGUE_IDS='[39, 140]'.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # ==========================================================================
    # Application Metadata
    # ==========================================================================
    app_name: str = "TalentRadar Data API"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = Field(default="INFO", description="Root log level for the CLI and admin app")

    # ==========================================================================
    # Database Configuration
    # ==========================================================================
    database_url: Optional[str] = Field(
        default=None,
        description="PostgreSQL connection string",
    )
    database_pool_size: int = Field(default=10, ge=1, le=50)

    # ==========================================================================
    # API-Football Configuration
    # ==========================================================================
    api_football_key: Optional[str] = Field(
        default=None,
        description="RapidAPI subscription key for API-Football",
    )
    api_football_host: str = "v3.football.api-sports.io"
    api_football_base_url: str = "https://v3.football.api-sports.io"
    request_timeout: float = Field(default=30.0, gt=0)

    # Spacing between requests and retry backoff, in seconds
    request_interval: float = Field(default=0.15, ge=0)
    retry_base_delay: float = Field(default=3.0, ge=0)
    max_retry_attempts: int = Field(default=3, ge=1, le=10)
    page_delay: float = Field(default=0.5, ge=0)

    # ==========================================================================
    # Population Run
    # ==========================================================================
    current_season: int = 2025
    max_api_calls: int = Field(default=75000, ge=1, description="Daily API call ceiling")
    population_league_ids: list[int] = Field(
        default=[1128],
        description="League ids scanned for U21 players on every run",
    )
    u21_max_age: int = 21
    populate_on_startup: bool = False

    # Daily trigger (local time)
    population_cron_hour: int = Field(default=2, ge=0, le=23)
    population_cron_minute: int = Field(default=0, ge=0, le=59)

    @computed_field
    @property
    def fallback_seasons(self) -> list[int]:
        """Seasons tried when the API cannot list a player's seasons."""
        return [self.current_season - offset for offset in range(1, 6)]


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
