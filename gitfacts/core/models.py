"""
SQLAlchemy models for the GitHub fact store.

Parent links are soft: repositories point at their owner by username and
commits/contributors at their repository by row id. There are no ORM
relationships between the tables.
"""
from sqlalchemy import (
    Column, Integer, BigInteger, String, DateTime, Text, Boolean, UniqueConstraint, Index,
)
from sqlalchemy.orm import declarative_base

from gitfacts.utils.datetime import utc_now

Base = declarative_base()


class Account(Base):
    """
    A GitHub user profile.

    One row per username. last_refreshed_at changes only when a remote
    fetch is merged (or when a refresh is forced).
    """
    __tablename__ = "gh_accounts"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(100), nullable=False, unique=True, index=True)

    # Profile
    name = Column(String(255), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    bio = Column(Text, nullable=True)
    location = Column(String(255), nullable=True)
    company = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True)

    # Counters
    public_repos = Column(Integer, nullable=True)
    followers = Column(Integer, nullable=True)
    following = Column(Integer, nullable=True)

    # Remote timestamps
    github_created_at = Column(DateTime, nullable=True)
    github_updated_at = Column(DateTime, nullable=True)

    # Local freshness
    last_refreshed_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<Account(id={self.id}, username={self.username}, "
            f"last_refreshed_at={self.last_refreshed_at})>"
        )


class RepositoryFact(Base):
    """Cached metadata and counters for one GitHub repository."""
    __tablename__ = "gh_repositories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_username = Column(String(100), nullable=False, index=True)
    repo_name = Column(String(255), nullable=False)
    full_name = Column(String(500), nullable=False)

    description = Column(Text, nullable=True)
    language = Column(String(100), nullable=True, index=True)
    is_private = Column(Boolean, nullable=False, default=False)
    size_kb = Column(Integer, nullable=True)
    stars_count = Column(Integer, nullable=False, default=0)
    forks_count = Column(Integer, nullable=False, default=0)
    watchers_count = Column(Integer, nullable=False, default=0)
    default_branch = Column(String(100), nullable=True)

    github_created_at = Column(DateTime, nullable=True)
    github_updated_at = Column(DateTime, nullable=True)
    last_push_at = Column(DateTime, nullable=True)

    last_analyzed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint('owner_username', 'repo_name', name='uq_gh_repo_owner_name'),
        Index('idx_gh_repo_stars', 'stars_count'),
    )

    def __repr__(self) -> str:
        return (
            f"<RepositoryFact(id={self.id}, full_name={self.full_name}, "
            f"last_analyzed_at={self.last_analyzed_at})>"
        )


class CommitFact(Base):
    """
    One commit. The SHA is unique across the whole store and the row is
    never modified after insert.
    """
    __tablename__ = "gh_commits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sha = Column(String(40), nullable=False, unique=True, index=True)
    repository_id = Column(Integer, nullable=False, index=True)

    message = Column(Text, nullable=True)
    author_name = Column(String(255), nullable=True)
    author_email = Column(String(255), nullable=True)
    author_login = Column(String(100), nullable=True)
    author_date = Column(DateTime, nullable=True)
    committer_name = Column(String(255), nullable=True)
    committer_email = Column(String(255), nullable=True)
    committer_date = Column(DateTime, nullable=True)

    additions = Column(BigInteger, nullable=True)
    deletions = Column(BigInteger, nullable=True)
    changed_files = Column(Integer, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        Index('idx_gh_commit_repo_author_date', 'repository_id', 'author_date'),
    )

    def __repr__(self) -> str:
        return f"<CommitFact(sha={self.sha}, repository_id={self.repository_id})>"


class ContributorFact(Base):
    """A contributor as reported by the repository's contributors listing."""
    __tablename__ = "gh_contributors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    repository_id = Column(Integer, nullable=False, index=True)
    contributor_name = Column(String(100), nullable=False)
    avatar_url = Column(String(500), nullable=True)
    contribution_count = Column(Integer, nullable=False, default=0)
    first_contribution_at = Column(DateTime, nullable=True)
    last_contribution_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utc_now)

    __table_args__ = (
        UniqueConstraint('repository_id', 'contributor_name', name='uq_gh_contributor_repo_name'),
    )

    def __repr__(self) -> str:
        return (
            f"<ContributorFact(repository_id={self.repository_id}, "
            f"contributor_name={self.contributor_name})>"
        )


class UrlSearchLog(Base):
    """
    Audit trail of GitHub URLs submitted for analysis.
    """
    __tablename__ = "url_search_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    github_url = Column(String(1000), nullable=False)
    search_type = Column(String(20), nullable=False, index=True)  # USER_PROFILE, REPOSITORY, UNKNOWN
    extracted_username = Column(String(100), nullable=True, index=True)
    extracted_repo = Column(String(255), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    response_status = Column(String(20), nullable=False, default="PENDING")
    processing_time_ms = Column(Integer, nullable=True)
    searched_at = Column(DateTime, nullable=False, default=utc_now, index=True)

    def __repr__(self) -> str:
        return (
            f"<UrlSearchLog(id={self.id}, search_type={self.search_type}, "
            f"response_status={self.response_status})>"
        )
