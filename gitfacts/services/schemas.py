"""
Analytics result models.

Every section has an "empty form" (its defaults) which is what callers see
when there is no data or when the section could not be built.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# Account analytics


class RepositoryStats(BaseModel):
    """Totals over an account's repositories."""

    total_repositories: int = 0
    total_stars: int = 0
    total_forks: int = 0
    total_watchers: int = 0
    total_size_kb: int = 0
    average_stars: float = 0.0
    most_used_language: str = "N/A"


class ContributionStats(BaseModel):
    """Totals over every commit of an account's repositories."""

    total_commits: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    total_changed_files: int = 0
    average_commits_per_repo: float = 0.0
    most_active_repository: str = "N/A"


class DailyActivity(BaseModel):
    date: str
    commits: int
    additions: int
    deletions: int


class ActivityStats(BaseModel):
    """Commit activity over the trailing month, by committer date."""

    last_activity: Optional[datetime] = None
    commits_last_month: int = 0
    commits_last_week: int = 0
    daily_activity: List[DailyActivity] = Field(default_factory=list)
    hourly_activity: Dict[int, int] = Field(default_factory=dict)


class TopRepository(BaseModel):
    repo_name: str
    full_name: str
    description: Optional[str] = None
    language: Optional[str] = None
    stars_count: int = 0
    forks_count: int = 0
    commits_count: int = 0
    last_push_at: Optional[datetime] = None


class LanguageStats(BaseModel):
    language: str
    repository_count: int
    total_stars: int
    percentage: float


class AccountAnalytics(BaseModel):
    """Profile plus derived statistics for one account."""

    username: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    location: Optional[str] = None
    company: Optional[str] = None
    email: Optional[str] = None
    public_repos: Optional[int] = None
    followers: Optional[int] = None
    following: Optional[int] = None
    github_created_at: Optional[datetime] = None
    last_refreshed_at: Optional[datetime] = None

    repository_stats: RepositoryStats = Field(default_factory=RepositoryStats)
    contribution_stats: ContributionStats = Field(default_factory=ContributionStats)
    activity_stats: ActivityStats = Field(default_factory=ActivityStats)
    top_repositories: List[TopRepository] = Field(default_factory=list)
    language_breakdown: List[LanguageStats] = Field(default_factory=list)

    degraded_sections: Dict[str, str] = Field(
        default_factory=dict,
        description="Section or ingestion step -> error kind that left it partial",
    )


# Repository analytics


class OwnerSummary(BaseModel):
    username: str
    name: Optional[str] = None
    avatar_url: Optional[str] = None


class CommitTimelineEntry(BaseModel):
    date: str
    commits: int
    additions: int
    deletions: int
    unique_contributors: int


class TopCommit(BaseModel):
    sha: str
    message: Optional[str] = None
    author_name: Optional[str] = None
    additions: int
    deletions: int
    changed_files: Optional[int] = None
    author_date: Optional[datetime] = None


class CommitAnalytics(BaseModel):
    total_commits: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    total_changed_files: int = 0
    average_additions_per_commit: float = 0.0
    average_deletions_per_commit: float = 0.0
    average_files_changed_per_commit: float = 0.0
    first_commit: Optional[datetime] = None
    last_commit: Optional[datetime] = None
    commit_timeline: List[CommitTimelineEntry] = Field(default_factory=list)
    commits_by_hour: Dict[int, int] = Field(default_factory=dict)
    top_commits: List[TopCommit] = Field(default_factory=list)


class TopContributor(BaseModel):
    contributor_name: str
    contribution_count: int = 0
    commits_count: int = 0
    additions_count: int = 0
    deletions_count: int = 0
    first_contribution: Optional[datetime] = None
    last_contribution: Optional[datetime] = None


class ContributorTimelineEntry(BaseModel):
    date: str
    new_contributors: int
    active_contributors: int
    total_contributors: int


class ContributorAnalytics(BaseModel):
    total_contributors: int = 0
    active_contributors: int = 0
    top_contributors: List[TopContributor] = Field(default_factory=list)
    contribution_distribution: Dict[str, int] = Field(default_factory=dict)
    contributor_timeline: List[ContributorTimelineEntry] = Field(default_factory=list)


class CodeAnalytics(BaseModel):
    total_lines: int = 0
    code_churn_rate: float = 0.0
    average_commit_size: int = 0
    main_file_types: List[str] = Field(default_factory=list)
    file_type_distribution: Dict[str, int] = Field(default_factory=dict)


class ActivityAnalytics(BaseModel):
    is_active: bool = False
    commits_last_week: int = 0
    commits_last_month: int = 0
    commits_last_year: int = 0
    weekly_average_commits: float = 0.0
    monthly_average_commits: float = 0.0
    busiest_days: List[str] = Field(default_factory=list)
    busiest_hours: List[str] = Field(default_factory=list)


class RepositoryAnalytics(BaseModel):
    """Repository metadata, owner summary and derived statistics."""

    repo_name: str
    full_name: str
    description: Optional[str] = None
    language: Optional[str] = None
    default_branch: Optional[str] = None
    is_private: bool = False
    stars_count: int = 0
    forks_count: int = 0
    watchers_count: int = 0
    size_kb: Optional[int] = None
    github_created_at: Optional[datetime] = None
    github_updated_at: Optional[datetime] = None
    last_push_at: Optional[datetime] = None
    last_analyzed_at: Optional[datetime] = None

    owner: Optional[OwnerSummary] = None

    commit_analytics: CommitAnalytics = Field(default_factory=CommitAnalytics)
    contributor_analytics: ContributorAnalytics = Field(default_factory=ContributorAnalytics)
    code_analytics: CodeAnalytics = Field(default_factory=CodeAnalytics)
    activity_analytics: ActivityAnalytics = Field(default_factory=ActivityAnalytics)

    degraded_sections: Dict[str, str] = Field(default_factory=dict)


# Store-wide views


class TrendingRepository(BaseModel):
    full_name: str
    owner_username: str
    repo_name: str
    description: Optional[str] = None
    language: Optional[str] = None
    stars_count: int = 0
    forks_count: int = 0
    github_created_at: Optional[datetime] = None


class RepositorySummary(BaseModel):
    """A stored repository row as listed by owner or by language."""

    full_name: str
    owner_username: str
    repo_name: str
    description: Optional[str] = None
    language: Optional[str] = None
    stars_count: int = 0
    forks_count: int = 0
    watchers_count: int = 0
    size_kb: Optional[int] = None
    github_created_at: Optional[datetime] = None
    last_push_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class LanguageCount(BaseModel):
    language: str
    repository_count: int


class LanguageStatistics(BaseModel):
    language_breakdown: List[LanguageCount]
    total_languages: int


class DashboardSummary(BaseModel):
    total_accounts: int
    total_repositories: int
    total_commits: int
    total_contributors: int
    top_languages: List[LanguageCount]
    recently_active_repositories: int


class RateLimitStatus(BaseModel):
    """Remote quota as reported by GitHub plus what the client last observed."""

    limit: Optional[int] = None
    remaining: Optional[int] = None
    reset_at: Optional[datetime] = None
    used: Optional[int] = None
    authenticated: bool = False
    observed_remaining: Optional[int] = None
    observed_reset_at: Optional[datetime] = None


# URL search log


class DailySearches(BaseModel):
    date: str
    total_searches: int
    successful_searches: int
    failed_searches: int


class TopSearchedUser(BaseModel):
    username: str
    search_count: int
    last_searched: Optional[datetime] = None


class TopSearchedRepository(BaseModel):
    owner_username: str
    repository_name: str
    search_count: int
    last_searched: Optional[datetime] = None


class SearchAnalytics(BaseModel):
    total_searches: int = 0
    successful_searches: int = 0
    failed_searches: int = 0
    success_rate: float = 0.0
    daily_searches: List[DailySearches] = Field(default_factory=list)
    hourly_distribution: Dict[int, int] = Field(default_factory=dict)
    top_searched_users: List[TopSearchedUser] = Field(default_factory=list)
    top_searched_repositories: List[TopSearchedRepository] = Field(default_factory=list)
    average_processing_time: float = 0.0
    max_processing_time: int = 0
    min_processing_time: int = 0
