"""
Application configuration using pydantic-settings.

Loads configuration from environment variables and .env files.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Database
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/talentflow.db",
        description="SQLAlchemy async connection string for the collection store",
    )

    # Simulated transport
    latency_min_ms: int = Field(
        default=400,
        ge=0,
        description="Lower bound of the general latency window in milliseconds",
    )
    latency_max_ms: int = Field(
        default=1200,
        ge=0,
        description="Upper bound of the general latency window in milliseconds",
    )
    high_volume_latency_min_ms: int = Field(
        default=600,
        ge=0,
        description="Lower bound of the latency window for high-volume reads",
    )
    high_volume_latency_max_ms: int = Field(
        default=1500,
        ge=0,
        description="Upper bound of the latency window for high-volume reads",
    )
    write_failure_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Probability that a write-class operation fails",
    )
    reorder_failure_rate: float = Field(
        default=0.15,
        ge=0.0,
        le=1.0,
        description="Probability that a bulk reorder fails",
    )

    # Boards
    jobs_page_size: int = Field(
        default=10,
        ge=1,
        description="Page size of the jobs board window",
    )
    candidates_page_size: int = Field(
        default=1000,
        ge=1,
        description="Number of candidates loaded into the kanban board",
    )

    # Application
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode (echoes SQL)",
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application settings instance.
    """
    return Settings()
