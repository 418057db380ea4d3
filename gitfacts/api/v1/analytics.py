"""
GitHub analytics API endpoints.

Thin mapping from HTTP to GitHubAnalyticsService; error kinds become
status codes here and nowhere else.
"""

from typing import Dict, Generator, List

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from gitfacts.core.database import get_db
from gitfacts.services.github_analytics import GitHubAnalyticsService
from gitfacts.services.results import ErrorKind, ServiceResult
from gitfacts.services.schemas import (
    AccountAnalytics,
    DashboardSummary,
    LanguageStatistics,
    RateLimitStatus,
    RepositoryAnalytics,
    RepositorySummary,
    TrendingRepository,
)

router = APIRouter(prefix="/analytics", tags=["analytics"])

ERROR_STATUS = {
    ErrorKind.REMOTE_NOT_FOUND: 404,
    ErrorKind.VALIDATION_ERROR: 400,
    ErrorKind.REMOTE_CLIENT_ERROR: 502,
    ErrorKind.REMOTE_SERVER_ERROR: 502,
    ErrorKind.REMOTE_NETWORK_ERROR: 502,
    ErrorKind.INTERNAL_AGGREGATION_ERROR: 500,
}


def get_analytics_service(db: Session = Depends(get_db)) -> Generator[GitHubAnalyticsService, None, None]:
    service = GitHubAnalyticsService(db)
    try:
        yield service
    finally:
        service.close()


def unwrap(result: ServiceResult):
    """Return the value or raise the HTTPException matching the error kind."""
    if result.ok:
        return result.value
    raise HTTPException(
        status_code=ERROR_STATUS.get(result.error, 500),
        detail={"error": result.error.value, "message": result.message},
    )


# Request Models


class CompareUsersRequest(BaseModel):
    """Usernames to compare."""

    usernames: List[str] = Field(..., description="1 to 10 GitHub usernames")


class CompareReposRequest(BaseModel):
    """Repositories to compare."""

    repositories: List[str] = Field(..., description="1 to 10 'owner/repo' keys")


# Endpoints


@router.get(
    "/users/{username}",
    response_model=AccountAnalytics,
    summary="Get account analytics",
    description="""
    Analytics for a GitHub account.

    Served from stored facts while they are fresh (24h); refetched from
    GitHub otherwise.
    """,
)
def get_account_analytics(
    username: str,
    service: GitHubAnalyticsService = Depends(get_analytics_service),
):
    return unwrap(service.get_account_analytics(username))


@router.post(
    "/users/{username}/refresh",
    response_model=AccountAnalytics,
    summary="Refresh account analytics",
)
def refresh_account_analytics(
    username: str,
    service: GitHubAnalyticsService = Depends(get_analytics_service),
):
    """Refetch the account from GitHub regardless of freshness."""
    return unwrap(service.refresh_account_analytics(username))


@router.get(
    "/repos/{owner}/{repo}",
    response_model=RepositoryAnalytics,
    summary="Get repository analytics",
    description="""
    Analytics for a repository: commits, contributors, code churn and activity.

    Served from stored facts while they are fresh (6h).
    """,
)
def get_repository_analytics(
    owner: str,
    repo: str,
    service: GitHubAnalyticsService = Depends(get_analytics_service),
):
    return unwrap(service.get_repository_analytics(owner, repo))


@router.post(
    "/repos/{owner}/{repo}/refresh",
    response_model=RepositoryAnalytics,
    summary="Refresh repository analytics",
)
def refresh_repository_analytics(
    owner: str,
    repo: str,
    service: GitHubAnalyticsService = Depends(get_analytics_service),
):
    return unwrap(service.refresh_repository_analytics(owner, repo))


@router.post(
    "/compare/users",
    response_model=Dict[str, AccountAnalytics],
    summary="Compare accounts",
    description="Analytics for up to 10 accounts. Accounts that cannot be resolved are omitted.",
)
def compare_users(
    request: CompareUsersRequest,
    service: GitHubAnalyticsService = Depends(get_analytics_service),
):
    return unwrap(service.compare_accounts(request.usernames))


@router.post(
    "/compare/repos",
    response_model=Dict[str, RepositoryAnalytics],
    summary="Compare repositories",
    description="Analytics for up to 10 repositories. Repositories that cannot be resolved are omitted.",
)
def compare_repos(
    request: CompareReposRequest,
    service: GitHubAnalyticsService = Depends(get_analytics_service),
):
    return unwrap(service.compare_repositories(request.repositories))


@router.get(
    "/trending",
    response_model=List[TrendingRepository],
    summary="Trending repositories",
    description="Stored repositories created recently, most starred first.",
)
def get_trending(
    days: int = Query(7, ge=0, le=365),
    min_stars: int = Query(10, ge=0),
    limit: int = Query(20, ge=1, le=100),
    service: GitHubAnalyticsService = Depends(get_analytics_service),
):
    return unwrap(service.list_trending_repositories(days, min_stars, limit))


@router.get(
    "/users/{username}/repositories",
    response_model=List[RepositorySummary],
    summary="List an account's repositories",
    description="""
    Stored repositories of an account, one page at a time.

    Reads the fact store only; request the account's analytics first to
    populate it.
    """,
)
def list_user_repositories(
    username: str,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=100),
    sort_by: str = Query("stars_count", description="Repository field to order by"),
    sort_dir: str = Query("desc", description="asc or desc"),
    service: GitHubAnalyticsService = Depends(get_analytics_service),
):
    return unwrap(service.list_account_repositories(username, page, size, sort_by, sort_dir))


@router.get(
    "/repositories/language/{language}",
    response_model=List[RepositorySummary],
    summary="Repositories by language",
    description="Stored repositories tagged with a language, most starred first.",
)
def list_repositories_by_language(
    language: str,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=100),
    service: GitHubAnalyticsService = Depends(get_analytics_service),
):
    return unwrap(service.list_repositories_by_language(language, page, size))


@router.get(
    "/languages/stats",
    response_model=LanguageStatistics,
    summary="Language statistics",
)
def get_language_statistics(
    service: GitHubAnalyticsService = Depends(get_analytics_service),
):
    """Repository count per language and the number of distinct languages."""
    return unwrap(service.get_language_statistics())


@router.get(
    "/dashboard",
    response_model=DashboardSummary,
    summary="Dashboard summary",
)
def get_dashboard(
    service: GitHubAnalyticsService = Depends(get_analytics_service),
):
    """Store-wide counts and language totals."""
    return unwrap(service.get_dashboard_summary())


@router.get(
    "/rate-limit",
    response_model=RateLimitStatus,
    summary="GitHub rate limit",
)
def get_rate_limit(
    service: GitHubAnalyticsService = Depends(get_analytics_service),
):
    return unwrap(service.get_rate_limit_status())
