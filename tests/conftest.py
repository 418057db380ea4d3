"""
Pytest configuration and shared fixtures.
"""
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from gitfacts.core.config import Settings, reset_settings
from gitfacts.core.models import Base
from github_fakes import NOW, FakeGitHubClient


@pytest.fixture(scope="function")
def clean_env(monkeypatch):
    """
    Clean environment for testing.

    Removes all app-related env vars to ensure clean state.
    """
    env_vars = [
        "DATABASE_URL",
        "GITHUB_TOKEN",
        "GITHUB_API_BASE_URL",
        "LOG_LEVEL",
        "MAX_RETRIES",
        "RETRY_BACKOFF_FACTOR",
        "ACCOUNT_TTL_HOURS",
        "REPOSITORY_TTL_HOURS",
        "COMMIT_MAX_PAGES",
        "COMMIT_DETAIL_LIMIT",
    ]
    for var in env_vars:
        monkeypatch.delenv(var, raising=False)

    # Reset settings singleton
    reset_settings()

    yield

    # Reset again after test
    reset_settings()


@pytest.fixture(scope="function")
def test_db():
    """
    Create an in-memory SQLite database for testing.

    Fresh database for each test. StaticPool keeps a single connection so
    the TestClient's worker threads see the same tables.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def settings(clean_env):
    """Settings with defaults only (no .env, no token)."""
    return Settings(_env_file=None, database_url="sqlite://")


@pytest.fixture
def clock():
    """A clock frozen at NOW; tests move it with clock.advance(...)."""

    class FrozenClock:
        def __init__(self):
            self.now = NOW

        def __call__(self) -> datetime:
            return self.now

        def advance(self, **kwargs) -> None:
            self.now = self.now + timedelta(**kwargs)

    return FrozenClock()


@pytest.fixture
def fake_github():
    """In-memory GitHub with no users or repositories."""
    return FakeGitHubClient()
