"""
gitfacts API application.

Serves account and repository analytics computed from a local store of
GitHub facts, refetching from GitHub when the stored facts are stale.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gitfacts.api.v1 import analytics, search_logs
from gitfacts.core.config import get_settings
from gitfacts.core.database import check_connection, create_tables

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Apply the configured log level and make sure the fact store tables exist."""
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)

    logger.info(f"Starting gitfacts {VERSION} (log level {settings.log_level})")
    if not settings.github_token:
        logger.warning("GITHUB_TOKEN not set; GitHub allows 60 unauthenticated requests per hour")
    logger.info(
        f"Freshness windows: accounts {settings.account_ttl_hours}h, "
        f"repositories {settings.repository_ttl_hours}h"
    )

    create_tables()
    yield
    logger.info("gitfacts stopped")


app = FastAPI(
    title="gitfacts",
    description="GitHub account and repository analytics backed by a local fact store",
    version=VERSION,
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(analytics.router, prefix="/api/v1")
app.include_router(search_logs.router, prefix="/api/v1")


@app.get("/")
def root():
    return {
        "service": "gitfacts",
        "version": VERSION,
        "analytics": "/api/v1/analytics",
        "search_logs": "/api/v1/search-logs",
        "docs": "/docs",
    }


@app.get("/health")
def health_check():
    """
    Fact store connectivity plus whether GitHub calls will be authenticated.

    Reports "degraded" rather than failing when the database is unreachable.
    """
    settings = get_settings()
    status = {
        "status": "healthy",
        "database": "connected",
        "github_token_configured": bool(settings.github_token),
    }
    try:
        check_connection()
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        status["status"] = "degraded"
        status["database"] = f"error: {e}"
    return status
