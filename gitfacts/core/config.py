"""
Configuration module with strict validation.

Key principles:
- APP STARTUP does NOT require GITHUB_TOKEN
- Authenticated GitHub calls DO use the token when it is configured
- Freshness windows, pagination bounds and retry settings are configurable
- Safe defaults for all optional settings
"""
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings with validation.

    Loads from environment variables and .env file.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Database (REQUIRED for API startup)
    database_url: str = Field(
        ...,
        description="SQLAlchemy connection URL for the fact store"
    )

    # GitHub API Configuration (OPTIONAL for startup, RECOMMENDED for ingestion)
    github_token: Optional[str] = Field(
        default=None,
        description="GitHub token - optional but unauthenticated calls are limited to 60/hour"
    )

    github_api_base_url: str = Field(
        default="https://api.github.com",
        description="Base URL of the GitHub REST API"
    )

    github_user_agent: str = Field(
        default="gitfacts-analytics/0.1",
        description="User-Agent header sent with every GitHub request"
    )

    github_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300.0,
        description="Read timeout for a single GitHub request"
    )

    github_connect_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=120.0,
        description="Connect timeout for a single GitHub request"
    )

    # Freshness windows
    account_ttl_hours: float = Field(
        default=24.0,
        gt=0,
        description="Hours before a stored account is refetched"
    )

    repository_ttl_hours: float = Field(
        default=6.0,
        gt=0,
        description="Hours before a stored repository is refetched"
    )

    # Pagination bounds
    commit_page_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Commits requested per page when ingesting a repository"
    )

    commit_max_pages: int = Field(
        default=5,
        ge=1,
        le=5,
        description="Hard cap on commit pages fetched per ingestion run"
    )

    account_commit_batch_size: int = Field(
        default=30,
        ge=1,
        le=100,
        description="Recent commits ingested per repository during an account refresh"
    )

    commit_detail_limit: int = Field(
        default=0,
        ge=0,
        le=500,
        description="New commits per repository refresh whose line stats are fetched individually (0 disables)"
    )

    comparison_max_keys: int = Field(
        default=10,
        ge=1,
        le=10,
        description="Maximum number of accounts or repositories in one comparison"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    # Retry Configuration
    max_retries: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Maximum attempts for transient (5xx/network) GitHub failures"
    )

    retry_backoff_factor: float = Field(
        default=2.0,
        ge=1.0,
        le=10.0,
        description="Exponential backoff factor for retries"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is one of the standard levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return v_upper


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get or create the global settings instance.

    Lazy loaded on first access and reused afterwards; tests call
    reset_settings() to start from a clean state.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Reset the global settings instance."""
    global _settings
    _settings = None
