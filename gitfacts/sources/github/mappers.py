"""
Translate GitHub REST payloads into fact store field dicts.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from gitfacts.utils.datetime import parse_datetime


def _nested(payload: Optional[Dict[str, Any]], *path: str) -> Any:
    node: Any = payload
    for key in path:
        if not isinstance(node, dict):
            return None
        node = node.get(key)
    return node


def account_fields(payload: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Fields of an Account row from a /users/{username} payload."""
    return {
        "name": payload.get("name"),
        "avatar_url": payload.get("avatar_url"),
        "bio": payload.get("bio"),
        "location": payload.get("location"),
        "company": payload.get("company"),
        "email": payload.get("email"),
        "public_repos": payload.get("public_repos"),
        "followers": payload.get("followers"),
        "following": payload.get("following"),
        "github_created_at": parse_datetime(payload.get("created_at")),
        "github_updated_at": parse_datetime(payload.get("updated_at")),
        "last_refreshed_at": now,
    }


def repository_fields(payload: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Fields of a RepositoryFact row from a repository payload (list item or detail)."""
    return {
        "full_name": payload.get("full_name"),
        "description": payload.get("description"),
        "language": payload.get("language"),
        "is_private": bool(payload.get("private", False)),
        "size_kb": payload.get("size"),
        "stars_count": payload.get("stargazers_count") or 0,
        "forks_count": payload.get("forks_count") or 0,
        "watchers_count": payload.get("watchers_count") or 0,
        "default_branch": payload.get("default_branch"),
        "github_created_at": parse_datetime(payload.get("created_at")),
        "github_updated_at": parse_datetime(payload.get("updated_at")),
        "last_push_at": parse_datetime(payload.get("pushed_at")),
        "last_analyzed_at": now,
    }


def commit_fields(payload: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """
    Fields of a CommitFact row from a commit listing item.

    The listing endpoint omits ``stats`` and ``files``; in that case the line
    counts stay NULL rather than zero.
    """
    return {
        "message": _nested(payload, "commit", "message"),
        "author_name": _nested(payload, "commit", "author", "name"),
        "author_email": _nested(payload, "commit", "author", "email"),
        "author_date": parse_datetime(_nested(payload, "commit", "author", "date")),
        "author_login": _nested(payload, "author", "login"),
        "committer_name": _nested(payload, "commit", "committer", "name"),
        "committer_email": _nested(payload, "commit", "committer", "email"),
        "committer_date": parse_datetime(_nested(payload, "commit", "committer", "date")),
        **commit_stats_fields(payload),
        "created_at": now,
    }


def commit_stats_fields(payload: Dict[str, Any]) -> Dict[str, Optional[int]]:
    """Line counts and changed-file count; None for whatever the payload lacks."""
    stats = payload.get("stats")
    files = payload.get("files")
    return {
        "additions": stats.get("additions") if isinstance(stats, dict) else None,
        "deletions": stats.get("deletions") if isinstance(stats, dict) else None,
        "changed_files": len(files) if isinstance(files, list) else None,
    }


def contributor_fields(
    payload: Dict[str, Any],
    first_contribution_at: Optional[datetime],
    last_contribution_at: Optional[datetime],
    now: datetime,
) -> Dict[str, Any]:
    """Fields of a ContributorFact row; the name itself is the row key."""
    return {
        "avatar_url": payload.get("avatar_url"),
        "contribution_count": payload.get("contributions") or 0,
        "first_contribution_at": first_contribution_at or now,
        "last_contribution_at": last_contribution_at or now,
        "created_at": now,
    }
