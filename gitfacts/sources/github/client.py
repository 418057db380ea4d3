"""
GitHub API Client.

Fetches user, repository, commit and contributor data from the GitHub REST API.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Any, Generic, TypeVar
from datetime import datetime

import httpx

from gitfacts.core.api_errors import APIError, classify_http_error
from gitfacts.core.config import Settings, get_settings
from gitfacts.core.http_client import BaseAPIClient
from gitfacts.utils.datetime import from_epoch

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class FetchResult(Generic[T]):
    """
    Outcome of one GitHub call: the payload, or the error that prevented it.

    The client never raises; callers inspect ``ok`` and decide how to degrade.
    """

    data: Optional[T] = None
    error: Optional[APIError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def not_found(self) -> bool:
        return self.error is not None and self.error.status_code == 404


class GitHubClient(BaseAPIClient):
    """
    Client for accessing the GitHub API with a single static token.

    Every public method converts transport and status failures into a
    failed FetchResult instead of raising.
    """

    SOURCE_NAME = "github"
    BASE_URL = "https://api.github.com"

    REPOS_PER_PAGE = 100
    CONTRIBUTORS_PER_PAGE = 100

    def __init__(self, token: Optional[str] = None, user_agent: str = "gitfacts-analytics/0.1", **kwargs):
        super().__init__(api_key=token, **kwargs)
        self.user_agent = user_agent
        self._rate_limit_remaining: Optional[int] = None
        self._rate_limit_reset: Optional[datetime] = None

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "GitHubClient":
        """Build a client from application settings."""
        settings = settings or get_settings()
        return cls(
            token=settings.github_token,
            user_agent=settings.github_user_agent,
            base_url=settings.github_api_base_url,
            max_retries=settings.max_retries,
            backoff_factor=settings.retry_backoff_factor,
            timeout=settings.github_timeout_seconds,
            connect_timeout=settings.github_connect_timeout_seconds,
            **kwargs,
        )

    def _build_headers(self) -> Dict[str, str]:
        """Get request headers with authentication."""
        headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": self.user_agent,
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _on_response(self, response: httpx.Response) -> None:
        """Track rate limits."""
        remaining = response.headers.get("X-RateLimit-Remaining")
        if remaining is not None and remaining.isdigit():
            self._rate_limit_remaining = int(remaining)
        reset = response.headers.get("X-RateLimit-Reset")
        if reset is not None and reset.isdigit():
            self._rate_limit_reset = from_epoch(reset)

    def _classify_status(self, response: httpx.Response) -> APIError:
        remaining = response.headers.get("X-RateLimit-Remaining")
        reset = response.headers.get("X-RateLimit-Reset")
        return classify_http_error(
            response.status_code,
            response.text[:500],
            self.SOURCE_NAME,
            rate_limit_remaining=int(remaining) if remaining and remaining.isdigit() else None,
            rate_limit_reset=int(reset) if reset and reset.isdigit() else None,
        )

    def _fetch(self, endpoint: str, params: Optional[Dict] = None, resource_id: str = "") -> FetchResult:
        """Run a GET and fold any failure into the result."""
        try:
            data = self.get(endpoint, params=params, resource_id=resource_id or endpoint)
        except APIError as e:
            if e.status_code == 404:
                logger.warning(f"GitHub resource not found: {resource_id or endpoint}")
            else:
                logger.error(f"GitHub request for {resource_id or endpoint} failed: {e}")
            return FetchResult(error=e)
        return FetchResult(data=data)

    def _fetch_list(self, endpoint: str, params: Optional[Dict] = None, resource_id: str = "") -> FetchResult:
        """Like _fetch, but an absent or non-list body is normalised to []."""
        result = self._fetch(endpoint, params=params, resource_id=resource_id)
        if result.ok and not isinstance(result.data, list):
            logger.warning(f"Expected a list from {endpoint}, got {type(result.data).__name__}")
            result.data = []
        if not result.ok:
            result.data = []
        return result

    def get_user(self, username: str) -> FetchResult[Dict[str, Any]]:
        """
        Get a user profile.

        Args:
            username: GitHub login

        Returns:
            FetchResult with the user payload
        """
        logger.info(f"Fetching user data for: {username}")
        return self._fetch(f"/users/{username}", resource_id=f"user {username}")

    def get_user_repos(self, username: str) -> FetchResult[List[Dict[str, Any]]]:
        """
        Get repositories for a user, most recently updated first.

        Only the first page (100 repositories) is requested.
        """
        logger.info(f"Fetching repositories for user: {username}")
        result = self._fetch_list(
            f"/users/{username}/repos",
            params={"type": "all", "sort": "updated", "per_page": self.REPOS_PER_PAGE},
            resource_id=f"repos of {username}",
        )
        if result.ok:
            logger.info(f"Fetched {len(result.data)} repositories for user: {username}")
        return result

    def get_repository(self, owner: str, repo: str) -> FetchResult[Dict[str, Any]]:
        """
        Get detailed information for a specific repository.

        Args:
            owner: Repository owner
            repo: Repository name
        """
        logger.info(f"Fetching repository data for: {owner}/{repo}")
        return self._fetch(f"/repos/{owner}/{repo}", resource_id=f"repo {owner}/{repo}")

    def get_repository_commits(
        self,
        owner: str,
        repo: str,
        page: int = 1,
        per_page: int = 100,
    ) -> FetchResult[List[Dict[str, Any]]]:
        """
        Get one page of commits for a repository, newest first.

        Args:
            owner: Repository owner
            repo: Repository name
            page: Page number (1-indexed)
            per_page: Results per page (max 100)
        """
        logger.info(f"Fetching commits for {owner}/{repo} (page: {page}, per_page: {per_page})")
        return self._fetch_list(
            f"/repos/{owner}/{repo}/commits",
            params={"page": page, "per_page": per_page},
            resource_id=f"commits of {owner}/{repo} page {page}",
        )

    def get_commit(self, owner: str, repo: str, sha: str) -> FetchResult[Dict[str, Any]]:
        """Get a single commit, including its line ``stats`` and ``files``."""
        logger.debug(f"Fetching commit {sha} of {owner}/{repo}")
        return self._fetch(f"/repos/{owner}/{repo}/commits/{sha}", resource_id=f"commit {sha} of {owner}/{repo}")

    def get_repository_contributors(self, owner: str, repo: str) -> FetchResult[List[Dict[str, Any]]]:
        """
        Get contributors for a repository with contribution counts.

        Args:
            owner: Repository owner
            repo: Repository name
        """
        logger.info(f"Fetching contributors for repository: {owner}/{repo}")
        return self._fetch_list(
            f"/repos/{owner}/{repo}/contributors",
            params={"per_page": self.CONTRIBUTORS_PER_PAGE},
            resource_id=f"contributors of {owner}/{repo}",
        )

    def get_rate_limit(self) -> FetchResult[Dict[str, Any]]:
        """Ask GitHub for the current quota (reporting only)."""
        logger.info("Checking GitHub API rate limit")
        return self._fetch("/rate_limit", resource_id="rate_limit")

    def observed_rate_limit(self) -> Dict[str, Any]:
        """Quota as seen in the headers of the most recent response."""
        return {
            "remaining": self._rate_limit_remaining,
            "reset_at": self._rate_limit_reset,
        }
