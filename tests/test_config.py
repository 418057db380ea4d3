"""
Unit tests for configuration module.

Tests run WITHOUT .env file and WITHOUT a GitHub token.
"""
import pytest

from gitfacts.core.config import (
    Settings,
    get_settings,
    reset_settings,
)


@pytest.mark.unit
def test_config_requires_database_url(clean_env):
    """Database URL is required for app startup."""
    with pytest.raises(Exception):  # Pydantic validation error
        Settings(_env_file=None)


@pytest.mark.unit
def test_config_token_optional_for_startup(clean_env, monkeypatch):
    """The GitHub token is optional for app startup."""
    monkeypatch.setenv("DATABASE_URL", "sqlite://")

    settings = Settings(_env_file=None)
    assert settings.database_url == "sqlite://"
    assert settings.github_token is None


@pytest.mark.unit
def test_config_defaults(clean_env, monkeypatch):
    """Default values for optional settings."""
    monkeypatch.setenv("DATABASE_URL", "sqlite://")

    settings = Settings(_env_file=None)

    assert settings.github_api_base_url == "https://api.github.com"
    assert settings.account_ttl_hours == 24.0
    assert settings.repository_ttl_hours == 6.0
    assert settings.commit_page_size == 100
    assert settings.commit_max_pages == 5
    assert settings.account_commit_batch_size == 30
    assert settings.commit_detail_limit == 0
    assert settings.comparison_max_keys == 10
    assert settings.log_level == "INFO"
    assert settings.max_retries == 3
    assert settings.retry_backoff_factor == 2.0


@pytest.mark.unit
def test_config_custom_values(clean_env, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("ACCOUNT_TTL_HOURS", "12")
    monkeypatch.setenv("REPOSITORY_TTL_HOURS", "1.5")
    monkeypatch.setenv("MAX_RETRIES", "5")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings(_env_file=None)

    assert settings.account_ttl_hours == 12.0
    assert settings.repository_ttl_hours == 1.5
    assert settings.max_retries == 5
    assert settings.log_level == "DEBUG"


@pytest.mark.unit
def test_config_rejects_invalid_log_level(clean_env, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("LOG_LEVEL", "CHATTY")

    with pytest.raises(Exception):
        Settings(_env_file=None)


@pytest.mark.unit
def test_config_commit_pages_capped(clean_env, monkeypatch):
    """More than five commit pages per run is not configurable."""
    monkeypatch.setenv("DATABASE_URL", "sqlite://")
    monkeypatch.setenv("COMMIT_MAX_PAGES", "6")

    with pytest.raises(Exception):
        Settings(_env_file=None)


@pytest.mark.unit
def test_get_settings_is_cached(clean_env, monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "sqlite://")

    first = get_settings()
    assert get_settings() is first

    reset_settings()
    assert get_settings() is not first
