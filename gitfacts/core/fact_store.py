"""
Fact store: keyed persistence for accounts, repositories, commits and
contributors.

Every write commits its own transaction. A multi-call refresh is not atomic;
the unique keys on each table keep it from creating duplicates.
"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from gitfacts.core.models import (
    Account,
    CommitFact,
    ContributorFact,
    RepositoryFact,
)

logger = logging.getLogger(__name__)


class FactStore:
    """
    Thin repository layer over a SQLAlchemy session.

    Lists are returned in insertion order (row id ascending); analytics rely
    on that as the tie-break order.
    """

    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def find_account(self, username: str) -> Optional[Account]:
        return self.db.query(Account).filter(Account.username == username).first()

    def upsert_account(self, username: str, fields: Dict[str, Any]) -> Account:
        """Insert or update by username; an existing row keeps its id."""
        account = self.find_account(username)
        if account is None:
            account = Account(username=username)
            self.db.add(account)
            logger.debug(f"Inserting account {username}")
        for key, value in fields.items():
            setattr(account, key, value)
        self.db.commit()
        self.db.refresh(account)
        return account

    def set_account_refreshed_at(self, username: str, moment: datetime) -> bool:
        account = self.find_account(username)
        if account is None:
            return False
        account.last_refreshed_at = moment
        self.db.commit()
        return True

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    def find_repository(self, owner: str, repo_name: str) -> Optional[RepositoryFact]:
        return (
            self.db.query(RepositoryFact)
            .filter(
                RepositoryFact.owner_username == owner,
                RepositoryFact.repo_name == repo_name,
            )
            .first()
        )

    def upsert_repository(self, owner: str, repo_name: str, fields: Dict[str, Any]) -> RepositoryFact:
        repository = self.find_repository(owner, repo_name)
        if repository is None:
            repository = RepositoryFact(
                owner_username=owner,
                repo_name=repo_name,
                full_name=f"{owner}/{repo_name}",
            )
            self.db.add(repository)
            logger.debug(f"Inserting repository {owner}/{repo_name}")
        for key, value in fields.items():
            setattr(repository, key, value)
        self.db.commit()
        self.db.refresh(repository)
        return repository

    def set_repository_analyzed_at(self, owner: str, repo_name: str, moment: datetime) -> bool:
        repository = self.find_repository(owner, repo_name)
        if repository is None:
            return False
        repository.last_analyzed_at = moment
        self.db.commit()
        return True

    def list_repositories_by_owner(self, owner: str) -> List[RepositoryFact]:
        return (
            self.db.query(RepositoryFact)
            .filter(RepositoryFact.owner_username == owner)
            .order_by(RepositoryFact.id)
            .all()
        )

    def page_repositories_by_owner(
        self,
        owner: str,
        sort_field: str,
        descending: bool,
        offset: int,
        limit: int,
    ) -> List[RepositoryFact]:
        """One page of an owner's repositories ordered by a RepositoryFact column, then id."""
        column = getattr(RepositoryFact, sort_field)
        return (
            self.db.query(RepositoryFact)
            .filter(RepositoryFact.owner_username == owner)
            .order_by(column.desc() if descending else column.asc(), RepositoryFact.id)
            .offset(offset)
            .limit(limit)
            .all()
        )

    def page_repositories_by_language(self, language: str, offset: int, limit: int) -> List[RepositoryFact]:
        """One page of repositories tagged with a language, most starred first."""
        return (
            self.db.query(RepositoryFact)
            .filter(RepositoryFact.language == language)
            .order_by(RepositoryFact.stars_count.desc(), RepositoryFact.id)
            .offset(offset)
            .limit(limit)
            .all()
        )

    # ------------------------------------------------------------------
    # Commits
    # ------------------------------------------------------------------

    def commit_exists(self, sha: str) -> bool:
        return (
            self.db.query(CommitFact.id).filter(CommitFact.sha == sha).first()
            is not None
        )

    def insert_commit(self, repository_id: int, sha: str, fields: Dict[str, Any]) -> bool:
        """
        Insert a commit unless its SHA is already stored anywhere.

        Returns True if a row was written. Existing rows are never touched.
        """
        if self.commit_exists(sha):
            return False
        self.db.add(CommitFact(sha=sha, repository_id=repository_id, **fields))
        self.db.commit()
        return True

    def update_commit_stats(self, sha: str, fields: Dict[str, Any]) -> bool:
        """Fill in line counts on a stored commit; None values are skipped."""
        commit = self.db.query(CommitFact).filter(CommitFact.sha == sha).first()
        if commit is None:
            return False
        for key, value in fields.items():
            if value is not None:
                setattr(commit, key, value)
        self.db.commit()
        return True

    def list_commits_by_repository(self, repository_id: int) -> List[CommitFact]:
        return (
            self.db.query(CommitFact)
            .filter(CommitFact.repository_id == repository_id)
            .order_by(CommitFact.id)
            .all()
        )

    def list_commits_by_repositories(self, repository_ids: Iterable[int]) -> List[CommitFact]:
        ids = list(repository_ids)
        if not ids:
            return []
        return (
            self.db.query(CommitFact)
            .filter(CommitFact.repository_id.in_(ids))
            .order_by(CommitFact.id)
            .all()
        )

    # ------------------------------------------------------------------
    # Contributors
    # ------------------------------------------------------------------

    def contributor_exists(self, repository_id: int, contributor_name: str) -> bool:
        return (
            self.db.query(ContributorFact.id)
            .filter(
                ContributorFact.repository_id == repository_id,
                ContributorFact.contributor_name == contributor_name,
            )
            .first()
            is not None
        )

    def insert_contributor(self, repository_id: int, contributor_name: str, fields: Dict[str, Any]) -> bool:
        """Insert unless (repository, name) exists. Existing rows are left as they are."""
        if self.contributor_exists(repository_id, contributor_name):
            return False
        self.db.add(
            ContributorFact(
                repository_id=repository_id,
                contributor_name=contributor_name,
                **fields,
            )
        )
        self.db.commit()
        return True

    def list_contributors_by_repository(self, repository_id: int) -> List[ContributorFact]:
        return (
            self.db.query(ContributorFact)
            .filter(ContributorFact.repository_id == repository_id)
            .order_by(ContributorFact.id)
            .all()
        )

    # ------------------------------------------------------------------
    # Counts and dashboard queries
    # ------------------------------------------------------------------

    def count(self, model) -> int:
        return self.db.query(func.count(model.id)).scalar() or 0

    def list_trending(self, created_after: datetime, min_stars: int, limit: int) -> List[RepositoryFact]:
        """Repositories created after a moment with more than min_stars stars, most starred first."""
        return (
            self.db.query(RepositoryFact)
            .filter(
                RepositoryFact.github_created_at > created_after,
                RepositoryFact.stars_count > min_stars,
            )
            .order_by(RepositoryFact.stars_count.desc(), RepositoryFact.id)
            .limit(limit)
            .all()
        )

    def count_repositories_by_language(self) -> List[Tuple[str, int]]:
        rows = (
            self.db.query(RepositoryFact.language, func.count(RepositoryFact.id))
            .filter(RepositoryFact.language.isnot(None))
            .group_by(RepositoryFact.language)
            .order_by(func.count(RepositoryFact.id).desc(), RepositoryFact.language)
            .all()
        )
        return [(language, count) for language, count in rows]

    def count_recently_pushed(self, pushed_after: datetime) -> int:
        return (
            self.db.query(func.count(RepositoryFact.id))
            .filter(RepositoryFact.last_push_at > pushed_after)
            .scalar()
            or 0
        )
