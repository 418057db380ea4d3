"""
Audit log of GitHub URLs submitted for analysis.
"""
import logging
import re
from collections import Counter
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from gitfacts.core.models import UrlSearchLog
from gitfacts.services.analytics_service import round_half_up
from gitfacts.services.schemas import (
    DailySearches,
    SearchAnalytics,
    TopSearchedRepository,
    TopSearchedUser,
)
from gitfacts.utils.datetime import utc_now

logger = logging.getLogger(__name__)

USER_URL_PATTERN = re.compile(r"https://github\.com/([^/]+)/?")
REPO_URL_PATTERN = re.compile(r"https://github\.com/([^/]+)/([^/]+)/?")

SEARCH_TYPE_USER = "USER_PROFILE"
SEARCH_TYPE_REPOSITORY = "REPOSITORY"
SEARCH_TYPE_UNKNOWN = "UNKNOWN"

STATUS_PENDING = "PENDING"
STATUS_SUCCESS = "SUCCESS"

TOP_SEARCHED = 10


def classify_github_url(url: str) -> Tuple[str, Optional[str], Optional[str]]:
    """
    Classify a GitHub URL.

    Returns (search_type, username, repo). Repository URLs are checked
    first; anything that matches neither pattern is UNKNOWN.
    """
    url = (url or "").strip()
    match = REPO_URL_PATTERN.fullmatch(url)
    if match:
        return SEARCH_TYPE_REPOSITORY, match.group(1), match.group(2)
    match = USER_URL_PATTERN.fullmatch(url)
    if match:
        return SEARCH_TYPE_USER, match.group(1), None
    return SEARCH_TYPE_UNKNOWN, None, None


class SearchLogService:
    """Records URL searches and summarises them."""

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now):
        self.db = db
        self.clock = clock

    def log_search(
        self,
        github_url: str,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> UrlSearchLog:
        search_type, username, repo = classify_github_url(github_url)
        entry = UrlSearchLog(
            github_url=github_url,
            search_type=search_type,
            extracted_username=username,
            extracted_repo=repo,
            ip_address=ip_address,
            user_agent=user_agent,
            response_status=STATUS_PENDING,
            searched_at=self.clock(),
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        logger.info(f"Logged {search_type} search for {github_url} (id={entry.id})")
        return entry

    def update_log_status(
        self, log_id: int, status: str, processing_time_ms: Optional[int] = None
    ) -> Optional[UrlSearchLog]:
        """Set the outcome of a logged search; returns None if the id is unknown."""
        entry = self.db.query(UrlSearchLog).filter(UrlSearchLog.id == log_id).first()
        if entry is None:
            logger.warning(f"Search log {log_id} not found")
            return None
        entry.response_status = status
        entry.processing_time_ms = processing_time_ms
        self.db.commit()
        self.db.refresh(entry)
        return entry

    def get_search_analytics(self, days: int = 30) -> SearchAnalytics:
        since = self.clock() - timedelta(days=days)
        logs: List[UrlSearchLog] = (
            self.db.query(UrlSearchLog)
            .filter(UrlSearchLog.searched_at > since)
            .order_by(UrlSearchLog.id)
            .all()
        )
        if not logs:
            return SearchAnalytics()

        total = len(logs)
        successful = sum(1 for entry in logs if entry.response_status == STATUS_SUCCESS)
        timings = [entry.processing_time_ms for entry in logs if entry.processing_time_ms is not None]

        by_day: Dict[str, List[UrlSearchLog]] = {}
        for entry in logs:
            by_day.setdefault(entry.searched_at.date().isoformat(), []).append(entry)
        daily = []
        for day in sorted(by_day):
            day_logs = by_day[day]
            day_success = sum(1 for entry in day_logs if entry.response_status == STATUS_SUCCESS)
            daily.append(
                DailySearches(
                    date=day,
                    total_searches=len(day_logs),
                    successful_searches=day_success,
                    failed_searches=len(day_logs) - day_success,
                )
            )

        hourly = Counter(entry.searched_at.hour for entry in logs)

        return SearchAnalytics(
            total_searches=total,
            successful_searches=successful,
            failed_searches=total - successful,
            success_rate=round_half_up(successful / total * 100),
            daily_searches=daily,
            hourly_distribution=dict(sorted(hourly.items())),
            top_searched_users=self._top_users(logs),
            top_searched_repositories=self._top_repositories(logs),
            average_processing_time=round_half_up(sum(timings) / len(timings)) if timings else 0.0,
            max_processing_time=max(timings, default=0),
            min_processing_time=min(timings, default=0),
        )

    def _top_users(self, logs: List[UrlSearchLog]) -> List[TopSearchedUser]:
        groups: Dict[str, List[UrlSearchLog]] = {}
        for entry in logs:
            if entry.search_type == SEARCH_TYPE_USER and entry.extracted_username:
                groups.setdefault(entry.extracted_username, []).append(entry)
        rows = [
            TopSearchedUser(
                username=username,
                search_count=len(entries),
                last_searched=max(e.searched_at for e in entries),
            )
            for username, entries in groups.items()
        ]
        rows.sort(key=lambda r: r.search_count, reverse=True)
        return rows[:TOP_SEARCHED]

    def _top_repositories(self, logs: List[UrlSearchLog]) -> List[TopSearchedRepository]:
        groups: Dict[Tuple[str, str], List[UrlSearchLog]] = {}
        for entry in logs:
            if entry.search_type == SEARCH_TYPE_REPOSITORY and entry.extracted_username and entry.extracted_repo:
                groups.setdefault((entry.extracted_username, entry.extracted_repo), []).append(entry)
        rows = [
            TopSearchedRepository(
                owner_username=owner,
                repository_name=repo,
                search_count=len(entries),
                last_searched=max(e.searched_at for e in entries),
            )
            for (owner, repo), entries in groups.items()
        ]
        rows.sort(key=lambda r: r.search_count, reverse=True)
        return rows[:TOP_SEARCHED]
