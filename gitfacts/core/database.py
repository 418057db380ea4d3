"""
Fact store engine and session handling.
"""

import logging
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from gitfacts.core.config import get_settings
from gitfacts.core.models import Base

logger = logging.getLogger(__name__)

_engine: Optional[Engine] = None
_SessionLocal: Optional[sessionmaker] = None


def build_engine(database_url: str) -> Engine:
    """
    Create an engine for the given URL.

    SQLite connections are shared across the API worker threads, so the
    same-thread check is turned off; server databases get a small pool.
    """
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


def get_engine() -> Engine:
    """The process-wide engine, built from settings on first use."""
    global _engine
    if _engine is None:
        _engine = build_engine(get_settings().database_url)
        logger.info(f"Fact store engine created ({_engine.dialect.name})")
    return _engine


def create_tables(engine: Optional[Engine] = None) -> None:
    """Create the account, repository, commit, contributor and search log tables if missing."""
    engine = engine or get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info(f"Fact store tables ready: {', '.join(sorted(Base.metadata.tables))}")


def check_connection(engine: Optional[Engine] = None) -> None:
    """Run a trivial query; raises whatever the driver raises."""
    engine = engine or get_engine()
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))


def get_session_factory() -> sessionmaker:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _SessionLocal


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency yielding one session per request.

    Usage:
        @router.get("/endpoint")
        def endpoint(db: Session = Depends(get_db)):
            ...
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
