"""
GitHub ingestion coordinator.

Decides when stored facts are stale, fetches from GitHub when they are and
merges the results into the fact store. Remote failures never escape: they
are logged, recorded on the IngestionReport and the stored data is served.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Tuple, Union

from gitfacts.core.fact_store import FactStore
from gitfacts.core.keyed_lock import KeyedLock
from gitfacts.core.models import Account, RepositoryFact
from gitfacts.services.freshness import EntityKind, FreshnessPolicy
from gitfacts.services.results import IngestionReport
from gitfacts.sources.github.client import GitHubClient
from gitfacts.sources.github.mappers import (
    account_fields,
    commit_fields,
    commit_stats_fields,
    contributor_fields,
    repository_fields,
)
from gitfacts.utils.datetime import utc_now

logger = logging.getLogger(__name__)

# Shared by every coordinator in the process.
refresh_locks = KeyedLock()

RepositoryKey = Union[str, Tuple[str, str]]


def split_repository_key(key: RepositoryKey) -> Tuple[str, str]:
    """Accept "owner/repo" or (owner, repo); raise ValueError otherwise."""
    if isinstance(key, str):
        parts = key.split("/")
    else:
        parts = list(key)
    if len(parts) != 2 or not all(isinstance(p, str) and p.strip() for p in parts):
        raise ValueError(f"Invalid repository key: {key!r}")
    return parts[0].strip(), parts[1].strip()


class IngestionCoordinator:
    """
    Keeps accounts and repositories fresh in the fact store.

    One instance per unit of work (it shares the caller's session); the
    per-key locks are process wide.
    """

    def __init__(
        self,
        store: FactStore,
        client: GitHubClient,
        policy: Optional[FreshnessPolicy] = None,
        locks: Optional[KeyedLock] = None,
        clock: Callable[[], datetime] = utc_now,
        commit_page_size: int = 100,
        commit_max_pages: int = 5,
        account_commit_batch_size: int = 30,
        commit_detail_limit: int = 0,
    ):
        self.store = store
        self.client = client
        self.policy = policy or FreshnessPolicy()
        self.locks = locks or refresh_locks
        self.clock = clock
        self.commit_page_size = commit_page_size
        self.commit_max_pages = commit_max_pages
        self.account_commit_batch_size = account_commit_batch_size
        self.commit_detail_limit = commit_detail_limit

    def _reload(self) -> None:
        # Another thread may have committed while we waited on the lock.
        self.store.db.expire_all()

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def ensure_account(self, username: str, report: Optional[IngestionReport] = None) -> Optional[Account]:
        """
        Return a fresh Account, fetching it from GitHub if needed.

        Returns None only when there is no stored row and the fetch failed.
        """
        report = report if report is not None else IngestionReport()

        with self.locks.hold(EntityKind.ACCOUNT.value, username):
            self._reload()
            account = self.store.find_account(username)
            now = self.clock()

            if account is not None and not self.policy.is_stale(
                EntityKind.ACCOUNT, account.last_refreshed_at, now
            ):
                logger.debug(f"Account {username} is fresh, serving stored facts")
                return account

            result = self.client.get_user(username)
            if not result.ok:
                report.record(f"account:{username}", result.error)
                if account is None:
                    logger.warning(f"Account {username} unavailable and not stored: {result.error}")
                    return None
                logger.warning(f"Refetch of account {username} failed, serving stored row: {result.error}")
                return account

            account = self.store.upsert_account(username, account_fields(result.data, now))
            report.fetched = True
            logger.info(f"Refreshed account {username} (id={account.id})")

            self.ensure_account_repositories(account, report)
            return account

    def ensure_account_repositories(self, account: Account, report: Optional[IngestionReport] = None) -> int:
        """
        Upsert each listed repository that is absent or stale and ingest a
        small batch of its recent commits.

        Returns the number of repositories (re)written.
        """
        report = report if report is not None else IngestionReport()
        username = account.username

        result = self.client.get_user_repos(username)
        if not result.ok:
            report.record(f"repositories:{username}", result.error)
            return 0

        now = self.clock()
        written = 0
        for payload in result.data:
            repo_name = payload.get("name") if isinstance(payload, dict) else None
            if not repo_name:
                continue
            try:
                # Lock order is always account, then repository.
                with self.locks.hold(EntityKind.REPOSITORY.value, f"{username}/{repo_name}"):
                    self._reload()
                    existing = self.store.find_repository(username, repo_name)
                    if existing is not None and not self.policy.is_stale(
                        EntityKind.REPOSITORY, existing.last_analyzed_at, now
                    ):
                        continue

                    repository = self.store.upsert_repository(
                        username, repo_name, repository_fields(payload, now)
                    )
                    written += 1
                    self.ingest_commits(
                        repository,
                        page_size=self.account_commit_batch_size,
                        max_pages=1,
                        detail_limit=0,
                        report=report,
                    )
            except Exception as e:
                logger.warning(f"Failed to ingest repository {username}/{repo_name}: {e}")
                self.store.db.rollback()
                report.record(f"repository:{username}/{repo_name}", e)

        logger.info(f"Ingested {written} repositories for account {username}")
        return written

    def _ensure_owner(self, owner: str, report: IngestionReport) -> Optional[Account]:
        """Make sure the owning account is stored; does not list its repositories."""
        with self.locks.hold(EntityKind.ACCOUNT.value, owner):
            self._reload()
            account = self.store.find_account(owner)
            if account is not None:
                return account

            result = self.client.get_user(owner)
            if not result.ok:
                report.record(f"account:{owner}", result.error)
                return None

            account = self.store.upsert_account(owner, account_fields(result.data, self.clock()))
            logger.info(f"Stored owner account {owner}")
            return account

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    def _fresh_repository(self, owner: str, repo_name: str) -> Optional[RepositoryFact]:
        with self.locks.hold(EntityKind.REPOSITORY.value, f"{owner}/{repo_name}"):
            self._reload()
            repository = self.store.find_repository(owner, repo_name)
            if repository is not None and not self.policy.is_stale(
                EntityKind.REPOSITORY, repository.last_analyzed_at, self.clock()
            ):
                return repository
            return None

    def ensure_repository(
        self,
        owner: str,
        repo_name: str,
        report: Optional[IngestionReport] = None,
    ) -> Optional[RepositoryFact]:
        """
        Return a fresh RepositoryFact, fetching detail, commits and
        contributors from GitHub if needed.

        Returns None only when there is no stored row and the repository (or
        its owner) could not be fetched.
        """
        report = report if report is not None else IngestionReport()
        full_name = f"{owner}/{repo_name}"

        repository = self._fresh_repository(owner, repo_name)
        if repository is not None:
            logger.debug(f"Repository {full_name} is fresh, serving stored facts")
            return repository

        # The owner's lock is taken before, never inside, the repository's.
        if self._ensure_owner(owner, report) is None:
            logger.warning(f"Owner {owner} of {full_name} could not be obtained")
            return self.store.find_repository(owner, repo_name)

        with self.locks.hold(EntityKind.REPOSITORY.value, full_name):
            self._reload()
            repository = self.store.find_repository(owner, repo_name)
            now = self.clock()

            if repository is not None and not self.policy.is_stale(
                EntityKind.REPOSITORY, repository.last_analyzed_at, now
            ):
                logger.debug(f"Repository {full_name} was refreshed while waiting")
                return repository

            result = self.client.get_repository(owner, repo_name)
            if not result.ok:
                report.record(f"repository:{full_name}", result.error)
                if repository is None:
                    logger.warning(f"Repository {full_name} unavailable and not stored: {result.error}")
                else:
                    logger.warning(f"Refetch of {full_name} failed, serving stored row: {result.error}")
                return repository

            repository = self.store.upsert_repository(
                owner, repo_name, repository_fields(result.data, now)
            )
            report.fetched = True
            logger.info(f"Refreshed repository {full_name} (id={repository.id})")

            self.ingest_commits(repository, report=report)
            self.ingest_contributors(repository, report=report)
            return repository

    def ingest_commits(
        self,
        repository: RepositoryFact,
        page_size: Optional[int] = None,
        max_pages: Optional[int] = None,
        detail_limit: Optional[int] = None,
        report: Optional[IngestionReport] = None,
    ) -> int:
        """
        Page through the commit listing and insert unseen SHAs.

        Stops at an empty page, a short page or after ``max_pages`` pages.
        The listing carries no line counts; up to ``detail_limit`` of the
        newly inserted commits (default: the coordinator's
        commit_detail_limit) are then fetched one by one to fill them in.
        Returns the number of commits inserted.
        """
        page_size = page_size or self.commit_page_size
        max_pages = min(max_pages or self.commit_max_pages, self.commit_max_pages)
        if detail_limit is None:
            detail_limit = self.commit_detail_limit
        owner, repo_name = repository.owner_username, repository.repo_name
        now = self.clock()

        inserted = 0
        missing_stats = []
        for page in range(1, max_pages + 1):
            result = self.client.get_repository_commits(owner, repo_name, page=page, per_page=page_size)
            if not result.ok:
                if report is not None:
                    report.record(f"commits:{owner}/{repo_name}", result.error)
                break

            items = result.data
            if not items:
                break

            for item in items:
                sha = item.get("sha") if isinstance(item, dict) else None
                if not sha:
                    continue
                fields = commit_fields(item, now)
                if self.store.insert_commit(repository.id, sha, fields):
                    inserted += 1
                    if fields["additions"] is None:
                        missing_stats.append(sha)

            if len(items) < page_size:
                break

        logger.info(f"Inserted {inserted} new commits for {owner}/{repo_name}")
        if detail_limit > 0 and missing_stats:
            self.ingest_commit_stats(repository, missing_stats[:detail_limit], report=report)
        return inserted

    def ingest_commit_stats(
        self,
        repository: RepositoryFact,
        shas: List[str],
        report: Optional[IngestionReport] = None,
    ) -> int:
        """Fetch each commit individually and store its line counts. Stops at the first failure."""
        owner, repo_name = repository.owner_username, repository.repo_name
        updated = 0
        for sha in shas:
            result = self.client.get_commit(owner, repo_name, sha)
            if not result.ok:
                if report is not None:
                    report.record(f"commit-stats:{owner}/{repo_name}", result.error)
                logger.warning(f"Stopped fetching commit stats for {owner}/{repo_name} at {sha}: {result.error}")
                break
            if self.store.update_commit_stats(sha, commit_stats_fields(result.data or {})):
                updated += 1

        logger.info(f"Filled line stats for {updated} of {len(shas)} commits in {owner}/{repo_name}")
        return updated

    def ingest_contributors(self, repository: RepositoryFact, report: Optional[IngestionReport] = None) -> int:
        """
        Insert contributors not yet stored for this repository.

        Existing rows are left untouched. First/last contribution dates come
        from the stored commits whose author login or name matches.
        """
        owner, repo_name = repository.owner_username, repository.repo_name
        result = self.client.get_repository_contributors(owner, repo_name)
        if not result.ok:
            if report is not None:
                report.record(f"contributors:{owner}/{repo_name}", result.error)
            return 0

        now = self.clock()
        commits = self.store.list_commits_by_repository(repository.id)

        inserted = 0
        for item in result.data:
            login = item.get("login") if isinstance(item, dict) else None
            if not login or self.store.contributor_exists(repository.id, login):
                continue

            dates = [
                c.author_date for c in commits
                if c.author_date is not None and login in (c.author_login, c.author_name)
            ]
            first_at = min(dates) if dates else None
            last_at = max(dates) if dates else None

            if self.store.insert_contributor(
                repository.id, login, contributor_fields(item, first_at, last_at, now)
            ):
                inserted += 1

        logger.info(f"Inserted {inserted} new contributors for {owner}/{repo_name}")
        return inserted

    # ------------------------------------------------------------------
    # Forced refresh
    # ------------------------------------------------------------------

    def force_refresh(
        self,
        kind: EntityKind,
        key: Union[str, RepositoryKey],
        report: Optional[IngestionReport] = None,
    ) -> Optional[Union[Account, RepositoryFact]]:
        """
        Mark the stored row as past its TTL, then run the normal ensure path.

        For accounts ``key`` is the username; for repositories it is
        "owner/repo" or (owner, repo).
        """
        stale_at = self.policy.stale_timestamp(kind, self.clock())

        if kind == EntityKind.ACCOUNT:
            with self.locks.hold(kind.value, key):
                if self.store.set_account_refreshed_at(key, stale_at):
                    logger.info(f"Forced account {key} stale")
            return self.ensure_account(key, report)

        owner, repo_name = split_repository_key(key)
        with self.locks.hold(kind.value, f"{owner}/{repo_name}"):
            if self.store.set_repository_analyzed_at(owner, repo_name, stale_at):
                logger.info(f"Forced repository {owner}/{repo_name} stale")
        return self.ensure_repository(owner, repo_name, report)
