"""
Analytics aggregation over stored GitHub facts.

Pure reads from the fact store: no network calls. Each section is built
independently; a section that fails is logged, reported in
``degraded_sections`` and returned in its empty form.
"""
import logging
from collections import Counter
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Callable, Dict, List, Optional, TypeVar

from gitfacts.core.fact_store import FactStore
from gitfacts.core.models import Account, CommitFact, ContributorFact, RepositoryFact
from gitfacts.services.exceptions import InternalAggregationError
from gitfacts.services.results import error_kind_for
from gitfacts.services.schemas import (
    AccountAnalytics,
    ActivityAnalytics,
    ActivityStats,
    CodeAnalytics,
    CommitAnalytics,
    CommitTimelineEntry,
    ContributionStats,
    ContributorAnalytics,
    ContributorTimelineEntry,
    DailyActivity,
    LanguageStats,
    OwnerSummary,
    RepositoryAnalytics,
    RepositoryStats,
    TopCommit,
    TopContributor,
    TopRepository,
)
from gitfacts.utils.datetime import months_before, utc_now

logger = logging.getLogger(__name__)

S = TypeVar("S")

TOP_N = 10
TIMELINE_DAYS = 30
BUSIEST_N = 3
WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def round_half_up(value: float, places: int = 2) -> float:
    """
    Round on the decimal representation, halves away from zero.

    33.335 -> 33.34, where float round() would give 33.33.
    """
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def _newest_first(items: List, attr: str) -> List:
    """Stable sort on a datetime attribute, newest first, missing values last."""
    return sorted(items, key=lambda i: getattr(i, attr) or datetime.min, reverse=True)


def _top_by_count(counts: Counter, n: int) -> List:
    """Keys with the highest counts; ties keep first-seen order."""
    return [key for key, _ in sorted(counts.items(), key=lambda kv: kv[1], reverse=True)[:n]]


def _top_by_count_then_key(counts: Counter, n: int) -> List:
    """Keys with the highest counts; ties go to the smaller key."""
    return [key for key, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[:n]]


def _sum(values) -> int:
    return sum(v for v in values if v is not None)


class AnalyticsAggregator:
    """Builds AccountAnalytics and RepositoryAnalytics from the fact store."""

    def __init__(self, store: FactStore, clock: Callable[[], datetime] = utc_now):
        self.store = store
        self.clock = clock

    def _section(
        self,
        name: str,
        build: Callable[[], S],
        empty: Callable[[], S],
        degraded: Dict[str, str],
    ) -> S:
        try:
            return build()
        except Exception as e:
            error = InternalAggregationError(name, e)
            logger.error(str(error), exc_info=True)
            degraded[name] = error_kind_for(error).value
            return empty()

    # ------------------------------------------------------------------
    # Account analytics
    # ------------------------------------------------------------------

    def build_account_analytics(self, account: Account) -> AccountAnalytics:
        now = self.clock()
        degraded: Dict[str, str] = {}

        repositories = self.store.list_repositories_by_owner(account.username)
        commits = _newest_first(
            self.store.list_commits_by_repositories(r.id for r in repositories),
            "committer_date",
        )

        analytics = AccountAnalytics(
            username=account.username,
            name=account.name,
            avatar_url=account.avatar_url,
            bio=account.bio,
            location=account.location,
            company=account.company,
            email=account.email,
            public_repos=account.public_repos,
            followers=account.followers,
            following=account.following,
            github_created_at=account.github_created_at,
            last_refreshed_at=account.last_refreshed_at,
        )
        analytics.repository_stats = self._section(
            "repository_stats", lambda: self.repository_stats(repositories), RepositoryStats, degraded
        )
        analytics.contribution_stats = self._section(
            "contribution_stats",
            lambda: self.contribution_stats(repositories, commits),
            ContributionStats,
            degraded,
        )
        analytics.activity_stats = self._section(
            "activity_stats", lambda: self.activity_stats(commits, now), ActivityStats, degraded
        )
        analytics.top_repositories = self._section(
            "top_repositories", lambda: self.top_repositories(repositories, commits), list, degraded
        )
        analytics.language_breakdown = self._section(
            "language_breakdown", lambda: self.language_breakdown(repositories), list, degraded
        )
        analytics.degraded_sections = degraded
        return analytics

    def repository_stats(self, repositories: List[RepositoryFact]) -> RepositoryStats:
        if not repositories:
            return RepositoryStats()

        total_stars = _sum(r.stars_count for r in repositories)
        languages = Counter(r.language for r in repositories if r.language is not None)
        most_used = _top_by_count(languages, 1)

        return RepositoryStats(
            total_repositories=len(repositories),
            total_stars=total_stars,
            total_forks=_sum(r.forks_count for r in repositories),
            total_watchers=_sum(r.watchers_count for r in repositories),
            total_size_kb=_sum(r.size_kb for r in repositories),
            average_stars=total_stars / len(repositories),
            most_used_language=most_used[0] if most_used else "N/A",
        )

    def contribution_stats(
        self, repositories: List[RepositoryFact], commits: List[CommitFact]
    ) -> ContributionStats:
        if not commits:
            return ContributionStats()

        names = {r.id: r.repo_name for r in repositories}
        per_repository = Counter(names.get(c.repository_id, str(c.repository_id)) for c in commits)
        touched = len({c.repository_id for c in commits})

        return ContributionStats(
            total_commits=len(commits),
            total_additions=_sum(c.additions for c in commits),
            total_deletions=_sum(c.deletions for c in commits),
            total_changed_files=_sum(c.changed_files for c in commits),
            average_commits_per_repo=_ratio(len(commits), touched),
            most_active_repository=_top_by_count(per_repository, 1)[0],
        )

    def activity_stats(self, commits: List[CommitFact], now: datetime) -> ActivityStats:
        month_ago = months_before(now, 1)
        week_ago = now - timedelta(days=7)
        recent = [c for c in commits if c.committer_date is not None and c.committer_date > month_ago]
        if not recent:
            return ActivityStats()

        days: Dict[str, List[CommitFact]] = {}
        hours: Counter = Counter()
        for c in recent:
            days.setdefault(c.committer_date.date().isoformat(), []).append(c)
            hours[c.committer_date.hour] += 1

        daily = [
            DailyActivity(
                date=day,
                commits=len(day_commits),
                additions=_sum(c.additions for c in day_commits),
                deletions=_sum(c.deletions for c in day_commits),
            )
            for day, day_commits in sorted(days.items(), reverse=True)
        ]

        return ActivityStats(
            last_activity=max(c.committer_date for c in recent),
            commits_last_month=len(recent),
            commits_last_week=sum(1 for c in recent if c.committer_date > week_ago),
            daily_activity=daily,
            hourly_activity=dict(sorted(hours.items())),
        )

    def top_repositories(
        self, repositories: List[RepositoryFact], commits: List[CommitFact]
    ) -> List[TopRepository]:
        commit_counts = Counter(c.repository_id for c in commits)
        ranked = sorted(repositories, key=lambda r: r.stars_count or 0, reverse=True)[:TOP_N]
        return [
            TopRepository(
                repo_name=r.repo_name,
                full_name=r.full_name,
                description=r.description,
                language=r.language,
                stars_count=r.stars_count or 0,
                forks_count=r.forks_count or 0,
                commits_count=commit_counts.get(r.id, 0),
                last_push_at=r.last_push_at,
            )
            for r in ranked
        ]

    def language_breakdown(self, repositories: List[RepositoryFact]) -> List[LanguageStats]:
        if not repositories:
            return []

        groups: Dict[str, List[RepositoryFact]] = {}
        for r in repositories:
            if r.language is not None:
                groups.setdefault(r.language, []).append(r)

        rows = [
            LanguageStats(
                language=language,
                repository_count=len(members),
                total_stars=_sum(r.stars_count for r in members),
                percentage=round_half_up(len(members) / len(repositories) * 100),
            )
            for language, members in groups.items()
        ]
        return sorted(rows, key=lambda row: row.repository_count, reverse=True)

    # ------------------------------------------------------------------
    # Repository analytics
    # ------------------------------------------------------------------

    def build_repository_analytics(self, repository: RepositoryFact) -> RepositoryAnalytics:
        now = self.clock()
        degraded: Dict[str, str] = {}

        commits = _newest_first(self.store.list_commits_by_repository(repository.id), "author_date")
        contributors = sorted(
            self.store.list_contributors_by_repository(repository.id),
            key=lambda c: c.contribution_count or 0,
            reverse=True,
        )
        owner = self.store.find_account(repository.owner_username)

        analytics = RepositoryAnalytics(
            repo_name=repository.repo_name,
            full_name=repository.full_name,
            description=repository.description,
            language=repository.language,
            default_branch=repository.default_branch,
            is_private=bool(repository.is_private),
            stars_count=repository.stars_count or 0,
            forks_count=repository.forks_count or 0,
            watchers_count=repository.watchers_count or 0,
            size_kb=repository.size_kb,
            github_created_at=repository.github_created_at,
            github_updated_at=repository.github_updated_at,
            last_push_at=repository.last_push_at,
            last_analyzed_at=repository.last_analyzed_at,
            owner=OwnerSummary(
                username=owner.username, name=owner.name, avatar_url=owner.avatar_url
            ) if owner else None,
        )
        analytics.commit_analytics = self._section(
            "commit_analytics", lambda: self.commit_analytics(commits), CommitAnalytics, degraded
        )
        analytics.contributor_analytics = self._section(
            "contributor_analytics",
            lambda: self.contributor_analytics(contributors, commits, now),
            ContributorAnalytics,
            degraded,
        )
        analytics.code_analytics = self._section(
            "code_analytics", lambda: self.code_analytics(repository, commits), CodeAnalytics, degraded
        )
        analytics.activity_analytics = self._section(
            "activity_analytics", lambda: self.activity_analytics(commits, now), ActivityAnalytics, degraded
        )
        analytics.degraded_sections = degraded
        return analytics

    def commit_analytics(self, commits: List[CommitFact]) -> CommitAnalytics:
        if not commits:
            return CommitAnalytics()

        total = len(commits)
        additions = _sum(c.additions for c in commits)
        deletions = _sum(c.deletions for c in commits)
        changed_files = _sum(c.changed_files for c in commits)
        dated = [c for c in commits if c.author_date is not None]

        return CommitAnalytics(
            total_commits=total,
            total_additions=additions,
            total_deletions=deletions,
            total_changed_files=changed_files,
            average_additions_per_commit=round_half_up(additions / total),
            average_deletions_per_commit=round_half_up(deletions / total),
            average_files_changed_per_commit=round_half_up(changed_files / total),
            first_commit=min((c.author_date for c in dated), default=None),
            last_commit=max((c.author_date for c in dated), default=None),
            commit_timeline=self.commit_timeline(dated),
            commits_by_hour=dict(sorted(Counter(c.author_date.hour for c in dated).items())),
            top_commits=self.top_commits(commits),
        )

    def commit_timeline(self, commits: List[CommitFact]) -> List[CommitTimelineEntry]:
        days: Dict[str, List[CommitFact]] = {}
        for c in commits:
            if c.author_date is not None:
                days.setdefault(c.author_date.date().isoformat(), []).append(c)

        entries = [
            CommitTimelineEntry(
                date=day,
                commits=len(day_commits),
                additions=_sum(c.additions for c in day_commits),
                deletions=_sum(c.deletions for c in day_commits),
                unique_contributors=len({c.author_name for c in day_commits if c.author_name is not None}),
            )
            for day, day_commits in days.items()
        ]
        entries.sort(key=lambda e: e.date, reverse=True)
        return entries[:TIMELINE_DAYS]

    def top_commits(self, commits: List[CommitFact], limit: int = TOP_N) -> List[TopCommit]:
        """Largest commits by additions + deletions; commits missing either count are skipped."""
        sized = [c for c in commits if c.additions is not None and c.deletions is not None]
        ranked = sorted(sized, key=lambda c: c.additions + c.deletions, reverse=True)[:limit]
        return [
            TopCommit(
                sha=c.sha,
                message=c.message,
                author_name=c.author_name,
                additions=c.additions,
                deletions=c.deletions,
                changed_files=c.changed_files,
                author_date=c.author_date,
            )
            for c in ranked
        ]

    def contributor_analytics(
        self,
        contributors: List[ContributorFact],
        commits: List[CommitFact],
        now: datetime,
    ) -> ContributorAnalytics:
        if not contributors:
            return ContributorAnalytics()

        three_months_ago = months_before(now, 3)
        active = sum(
            1 for c in contributors
            if c.last_contribution_at is not None and c.last_contribution_at > three_months_ago
        )

        top = []
        for contributor in contributors[:TOP_N]:
            name = contributor.contributor_name
            own = [c for c in commits if name in (c.author_name, c.author_login)]
            top.append(
                TopContributor(
                    contributor_name=name,
                    contribution_count=contributor.contribution_count or 0,
                    commits_count=len(own),
                    additions_count=_sum(c.additions for c in own),
                    deletions_count=_sum(c.deletions for c in own),
                    first_contribution=contributor.first_contribution_at,
                    last_contribution=contributor.last_contribution_at,
                )
            )

        first_days = Counter(
            c.first_contribution_at.date().isoformat()
            for c in contributors
            if c.first_contribution_at is not None
        )
        timeline = [
            ContributorTimelineEntry(
                date=day, new_contributors=n, active_contributors=n, total_contributors=n
            )
            for day, n in sorted(first_days.items(), reverse=True)[:TIMELINE_DAYS]
        ]

        return ContributorAnalytics(
            total_contributors=len(contributors),
            active_contributors=active,
            top_contributors=top,
            contribution_distribution={
                c.contributor_name: c.contribution_count or 0 for c in contributors
            },
            contributor_timeline=timeline,
        )

    def code_analytics(self, repository: RepositoryFact, commits: List[CommitFact]) -> CodeAnalytics:
        if not commits:
            return CodeAnalytics()

        additions = _sum(c.additions for c in commits)
        deletions = _sum(c.deletions for c in commits)
        language: Optional[str] = repository.language

        return CodeAnalytics(
            total_lines=additions - deletions,
            code_churn_rate=round_half_up((additions + deletions) / len(commits)),
            average_commit_size=(additions + deletions) // len(commits),
            main_file_types=[language] if language else [],
            file_type_distribution={language: 100} if language else {},
        )

    def activity_analytics(self, commits: List[CommitFact], now: datetime) -> ActivityAnalytics:
        dated = [c for c in commits if c.author_date is not None]
        thirty_days_ago = now - timedelta(days=30)
        week_ago = now - timedelta(days=7)
        month_ago = months_before(now, 1)
        year_ago = months_before(now, 12)

        last_year = sum(1 for c in dated if c.author_date > year_ago)

        weekdays = Counter(c.author_date.weekday() for c in dated)
        hours = Counter(c.author_date.hour for c in dated)

        return ActivityAnalytics(
            is_active=any(c.author_date > thirty_days_ago for c in dated),
            commits_last_week=sum(1 for c in dated if c.author_date > week_ago),
            commits_last_month=sum(1 for c in dated if c.author_date > month_ago),
            commits_last_year=last_year,
            weekly_average_commits=round_half_up(last_year / 52),
            monthly_average_commits=round_half_up(last_year / 12),
            busiest_days=[WEEKDAY_NAMES[d] for d in _top_by_count_then_key(weekdays, BUSIEST_N)],
            busiest_hours=[f"{h:02d}:00" for h in _top_by_count_then_key(hours, BUSIEST_N)],
        )
