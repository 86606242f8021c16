"""
Application configuration using Pydantic settings.
"""
from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Document Store Configuration
    store_base_url: str = Field(
        default="https://store.example.com",
        description="Base URL for the field/profile document store"
    )
    store_api_key: str = Field(
        default="",
        description="API key for the document store"
    )
    store_timeout: float = Field(
        default=30.0,
        description="Request timeout in seconds for store calls"
    )

    # Retry Configuration
    max_retry_attempts: int = Field(
        default=3,
        description="Maximum number of retry attempts for store calls"
    )
    retry_backoff_multiplier: int = Field(
        default=1,
        description="Multiplier for exponential backoff"
    )
    retry_min_wait: int = Field(
        default=4,
        description="Minimum wait time in seconds between retries"
    )
    retry_max_wait: int = Field(
        default=10,
        description="Maximum wait time in seconds between retries"
    )

    # Field Game Parameters
    grid_width: int = Field(
        default=10,
        description="Number of tile columns in a newly scanned field"
    )
    grid_height: int = Field(
        default=10,
        description="Number of tile rows in a newly scanned field"
    )
    growth_delay_seconds: float = Field(
        default=2.0,
        description="Delay before a watered tile grows"
    )
    starting_points: int = Field(
        default=0,
        description="Point balance of a session opened without a stored profile"
    )

    # Session Lifetime
    session_idle_ttl_seconds: float = Field(
        default=3600.0,
        description="Idle time after which a game session is closed and dropped"
    )
    max_sessions: int = Field(
        default=1000,
        description="Maximum number of open game sessions"
    )

    # Scan Oracle
    scan_latency_seconds: float = Field(
        default=3.0,
        description="Simulated analysis time for a field scan"
    )
    scan_default_size_acres: float = Field(
        default=2.5,
        description="Field size reported by the simulated scan oracle"
    )
    scan_seed: Optional[int] = Field(
        default=None,
        description="Random seed for the simulated scan oracle"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )

    # CORS Configuration
    cors_origins: list[str] = Field(
        default=["*"],
        description="Allowed CORS origins (use specific origins in production)"
    )

    # Rate Limiting
    rate_limit_requests: int = Field(
        default=100,
        description="Maximum scan requests per minute per client"
    )

    # Application Settings
    app_name: str = Field(
        default="FieldQuest Farm Game API",
        description="Application name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    debug: bool = Field(
        default=False,
        description="Debug mode"
    )

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
