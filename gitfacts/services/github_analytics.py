"""
GitHub analytics service: the public operation surface.

Wires the client, fact store, ingestion coordinator, aggregator and
comparison service together. Every public method returns a ServiceResult
and never raises.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from gitfacts.core.config import Settings, get_settings
from gitfacts.core.fact_store import FactStore
from gitfacts.core.keyed_lock import KeyedLock
from gitfacts.core.models import Account, CommitFact, ContributorFact, RepositoryFact
from gitfacts.services.analytics_service import AnalyticsAggregator
from gitfacts.services.comparison_service import ComparisonService
from gitfacts.services.exceptions import ValidationError
from gitfacts.services.freshness import EntityKind, FreshnessPolicy
from gitfacts.services.results import ErrorKind, IngestionReport, ServiceResult, error_kind_for
from gitfacts.services.schemas import (
    AccountAnalytics,
    DashboardSummary,
    LanguageCount,
    LanguageStatistics,
    RateLimitStatus,
    RepositoryAnalytics,
    RepositorySummary,
    TrendingRepository,
)
from gitfacts.sources.github.client import GitHubClient
from gitfacts.sources.github.ingest import IngestionCoordinator, RepositoryKey
from gitfacts.utils.datetime import from_epoch, utc_now

logger = logging.getLogger(__name__)

RECENT_PUSH_WINDOW = timedelta(days=7)
MAX_PAGE_SIZE = 100
REPOSITORY_SORT_FIELDS = (
    "stars_count",
    "forks_count",
    "watchers_count",
    "size_kb",
    "repo_name",
    "github_created_at",
    "last_push_at",
)


def _missing_kind(report: IngestionReport, step: str) -> ErrorKind:
    """Why an ensure_* returned nothing: the recorded error, else not found."""
    return report.degraded.get(step, ErrorKind.REMOTE_NOT_FOUND)


class GitHubAnalyticsService:
    """
    Service for account and repository analytics backed by the fact store.
    """

    def __init__(
        self,
        db: Session,
        client: Optional[GitHubClient] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utc_now,
        locks: Optional[KeyedLock] = None,
    ):
        self.settings = settings or get_settings()
        self._owns_client = client is None
        self.client = client or GitHubClient.from_settings(self.settings)
        self.clock = clock
        self.store = FactStore(db)
        self.coordinator = IngestionCoordinator(
            self.store,
            self.client,
            policy=FreshnessPolicy.from_settings(self.settings),
            locks=locks,
            clock=clock,
            commit_page_size=self.settings.commit_page_size,
            commit_max_pages=self.settings.commit_max_pages,
            account_commit_batch_size=self.settings.account_commit_batch_size,
            commit_detail_limit=self.settings.commit_detail_limit,
        )
        self.aggregator = AnalyticsAggregator(self.store, clock=clock)
        self.comparison = ComparisonService(
            self._account_analytics_or_none,
            self._repository_analytics_or_none,
            max_keys=self.settings.comparison_max_keys,
        )

    def close(self) -> None:
        if self._owns_client:
            self.client.close()

    # ------------------------------------------------------------------
    # Internal builders
    # ------------------------------------------------------------------

    def _account_result(self, account: Optional[Account], report: IngestionReport, username: str):
        if account is None:
            kind = _missing_kind(report, f"account:{username}")
            return ServiceResult.failure(kind, f"Account '{username}' could not be obtained")
        analytics = self.aggregator.build_account_analytics(account)
        for step, kind in report.degraded.items():
            analytics.degraded_sections.setdefault(step, kind.value)
        return ServiceResult.success(analytics)

    def _repository_result(
        self, repository: Optional[RepositoryFact], report: IngestionReport, owner: str, repo: str
    ):
        if repository is None:
            kind = report.degraded.get(
                f"repository:{owner}/{repo}", _missing_kind(report, f"account:{owner}")
            )
            return ServiceResult.failure(kind, f"Repository '{owner}/{repo}' could not be obtained")
        analytics = self.aggregator.build_repository_analytics(repository)
        for step, kind in report.degraded.items():
            analytics.degraded_sections.setdefault(step, kind.value)
        return ServiceResult.success(analytics)

    def _unexpected(self, operation: str, e: Exception) -> ServiceResult:
        logger.error(f"{operation} failed unexpectedly: {e}", exc_info=True)
        self.store.db.rollback()
        return ServiceResult.failure(ErrorKind.INTERNAL_AGGREGATION_ERROR, str(e))

    def _account_analytics_or_none(self, username: str) -> Optional[AccountAnalytics]:
        return self.get_account_analytics(username).value

    def _repository_analytics_or_none(self, owner: str, repo: str) -> Optional[RepositoryAnalytics]:
        return self.get_repository_analytics(owner, repo).value

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def get_account_analytics(self, username: str) -> ServiceResult[AccountAnalytics]:
        """Analytics for an account, refetching it first if stale."""
        logger.info(f"Getting analytics for account: {username}")
        try:
            report = IngestionReport()
            account = self.coordinator.ensure_account(username, report)
            return self._account_result(account, report, username)
        except Exception as e:
            return self._unexpected(f"Account analytics for {username}", e)

    def refresh_account_analytics(self, username: str) -> ServiceResult[AccountAnalytics]:
        """Force a refetch of the account, then return its analytics."""
        logger.info(f"Refreshing analytics for account: {username}")
        try:
            report = IngestionReport()
            account = self.coordinator.force_refresh(EntityKind.ACCOUNT, username, report)
            return self._account_result(account, report, username)
        except Exception as e:
            return self._unexpected(f"Account refresh for {username}", e)

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    def get_repository_analytics(self, owner: str, repo: str) -> ServiceResult[RepositoryAnalytics]:
        """Analytics for a repository, refetching it first if stale."""
        logger.info(f"Getting analytics for repository: {owner}/{repo}")
        try:
            report = IngestionReport()
            repository = self.coordinator.ensure_repository(owner, repo, report)
            return self._repository_result(repository, report, owner, repo)
        except Exception as e:
            return self._unexpected(f"Repository analytics for {owner}/{repo}", e)

    def refresh_repository_analytics(self, owner: str, repo: str) -> ServiceResult[RepositoryAnalytics]:
        """Force a refetch of the repository, then return its analytics."""
        logger.info(f"Refreshing analytics for repository: {owner}/{repo}")
        try:
            report = IngestionReport()
            repository = self.coordinator.force_refresh(EntityKind.REPOSITORY, (owner, repo), report)
            return self._repository_result(repository, report, owner, repo)
        except Exception as e:
            return self._unexpected(f"Repository refresh for {owner}/{repo}", e)

    # ------------------------------------------------------------------
    # Comparisons
    # ------------------------------------------------------------------

    def compare_accounts(self, usernames: Sequence[str]) -> ServiceResult[Dict[str, AccountAnalytics]]:
        try:
            return ServiceResult.success(self.comparison.compare_accounts(usernames))
        except ValidationError as e:
            logger.warning(f"Rejected account comparison: {e}")
            return ServiceResult.failure(ErrorKind.VALIDATION_ERROR, str(e))
        except Exception as e:
            return self._unexpected("Account comparison", e)

    def compare_repositories(
        self, keys: Sequence[RepositoryKey]
    ) -> ServiceResult[Dict[str, RepositoryAnalytics]]:
        try:
            return ServiceResult.success(self.comparison.compare_repositories(keys))
        except ValidationError as e:
            logger.warning(f"Rejected repository comparison: {e}")
            return ServiceResult.failure(ErrorKind.VALIDATION_ERROR, str(e))
        except Exception as e:
            return self._unexpected("Repository comparison", e)

    # ------------------------------------------------------------------
    # Store-wide views
    # ------------------------------------------------------------------

    def list_trending_repositories(
        self, since_days: int = 7, min_stars: int = 0, limit: int = 10
    ) -> ServiceResult[List[TrendingRepository]]:
        """
        Repositories created in the last ``since_days`` days with more than
        ``min_stars`` stars, most starred first. Reads the store only.
        """
        if since_days < 0 or min_stars < 0 or limit < 1:
            return ServiceResult.failure(
                ErrorKind.VALIDATION_ERROR,
                "since_days and min_stars must be >= 0 and limit must be >= 1",
            )
        try:
            created_after = self.clock() - timedelta(days=since_days)
            rows = self.store.list_trending(created_after, min_stars, limit)
            return ServiceResult.success([
                TrendingRepository(
                    full_name=r.full_name,
                    owner_username=r.owner_username,
                    repo_name=r.repo_name,
                    description=r.description,
                    language=r.language,
                    stars_count=r.stars_count or 0,
                    forks_count=r.forks_count or 0,
                    github_created_at=r.github_created_at,
                )
                for r in rows
            ])
        except Exception as e:
            return self._unexpected("Trending repositories", e)

    def list_account_repositories(
        self,
        username: str,
        page: int = 0,
        size: int = 20,
        sort_by: str = "stars_count",
        sort_dir: str = "desc",
    ) -> ServiceResult[List[RepositorySummary]]:
        """
        One page of an account's stored repositories. Reads the store only.

        ``page`` is zero based; ``sort_by`` is one of REPOSITORY_SORT_FIELDS
        and ``sort_dir`` is "asc" or "desc" (any case).
        """
        direction = sort_dir.lower()
        if page < 0 or size < 1 or size > MAX_PAGE_SIZE:
            return ServiceResult.failure(
                ErrorKind.VALIDATION_ERROR, f"page must be >= 0 and size between 1 and {MAX_PAGE_SIZE}"
            )
        if sort_by not in REPOSITORY_SORT_FIELDS:
            return ServiceResult.failure(
                ErrorKind.VALIDATION_ERROR,
                f"sort_by must be one of {', '.join(REPOSITORY_SORT_FIELDS)}",
            )
        if direction not in ("asc", "desc"):
            return ServiceResult.failure(ErrorKind.VALIDATION_ERROR, "sort_dir must be 'asc' or 'desc'")

        logger.info(f"Listing repositories for {username} (page {page}, size {size}, {sort_by} {direction})")
        try:
            rows = self.store.page_repositories_by_owner(
                username, sort_by, direction == "desc", page * size, size
            )
            return ServiceResult.success([RepositorySummary.model_validate(r) for r in rows])
        except Exception as e:
            return self._unexpected(f"Repository listing for {username}", e)

    def list_repositories_by_language(
        self, language: str, page: int = 0, size: int = 20
    ) -> ServiceResult[List[RepositorySummary]]:
        """One page of stored repositories with this language tag, most starred first."""
        if page < 0 or size < 1 or size > MAX_PAGE_SIZE:
            return ServiceResult.failure(
                ErrorKind.VALIDATION_ERROR, f"page must be >= 0 and size between 1 and {MAX_PAGE_SIZE}"
            )
        try:
            rows = self.store.page_repositories_by_language(language, page * size, size)
            return ServiceResult.success([RepositorySummary.model_validate(r) for r in rows])
        except Exception as e:
            return self._unexpected(f"Repositories for language {language}", e)

    def get_language_statistics(self) -> ServiceResult[LanguageStatistics]:
        """Repository count per language across the store."""
        try:
            breakdown = [
                LanguageCount(language=language, repository_count=count)
                for language, count in self.store.count_repositories_by_language()
            ]
            return ServiceResult.success(
                LanguageStatistics(language_breakdown=breakdown, total_languages=len(breakdown))
            )
        except Exception as e:
            return self._unexpected("Language statistics", e)

    def get_dashboard_summary(self) -> ServiceResult[DashboardSummary]:
        """Store-wide counts, languages by repository count and recent pushes."""
        try:
            return ServiceResult.success(
                DashboardSummary(
                    total_accounts=self.store.count(Account),
                    total_repositories=self.store.count(RepositoryFact),
                    total_commits=self.store.count(CommitFact),
                    total_contributors=self.store.count(ContributorFact),
                    top_languages=[
                        LanguageCount(language=language, repository_count=count)
                        for language, count in self.store.count_repositories_by_language()
                    ],
                    recently_active_repositories=self.store.count_recently_pushed(
                        self.clock() - RECENT_PUSH_WINDOW
                    ),
                )
            )
        except Exception as e:
            return self._unexpected("Dashboard summary", e)

    def get_rate_limit_status(self) -> ServiceResult[RateLimitStatus]:
        """Current GitHub quota, for reporting only."""
        result = self.client.get_rate_limit()
        if not result.ok:
            return ServiceResult.failure(error_kind_for(result.error), str(result.error))

        rate = (result.data or {}).get("rate") or {}
        reset = rate.get("reset")
        observed = self.client.observed_rate_limit()
        return ServiceResult.success(
            RateLimitStatus(
                limit=rate.get("limit"),
                remaining=rate.get("remaining"),
                reset_at=from_epoch(reset) if isinstance(reset, int) else None,
                used=rate.get("used"),
                authenticated=bool(self.client.api_key),
                observed_remaining=observed.get("remaining"),
                observed_reset_at=observed.get("reset_at"),
            )
        )
