"""
GitHub payload builders and an in-memory GitHub client for tests.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from gitfacts.core.api_errors import NotFoundError, ServerError
from gitfacts.sources.github.client import FetchResult

NOW = datetime(2024, 6, 15, 12, 0, 0)


def user_payload(login: str, **overrides) -> Dict[str, Any]:
    payload = {
        "login": login,
        "name": login.title(),
        "avatar_url": f"https://avatars.example.com/{login}",
        "bio": None,
        "location": "Berlin",
        "company": None,
        "email": None,
        "public_repos": 2,
        "followers": 10,
        "following": 3,
        "created_at": "2015-01-01T00:00:00Z",
        "updated_at": "2024-01-01T00:00:00Z",
    }
    payload.update(overrides)
    return payload


def repo_payload(owner: str, name: str, **overrides) -> Dict[str, Any]:
    payload = {
        "name": name,
        "full_name": f"{owner}/{name}",
        "description": f"{name} description",
        "language": "Python",
        "private": False,
        "size": 100,
        "stargazers_count": 0,
        "forks_count": 0,
        "watchers_count": 0,
        "default_branch": "main",
        "created_at": "2020-01-01T00:00:00Z",
        "updated_at": "2024-06-01T00:00:00Z",
        "pushed_at": "2024-06-10T00:00:00Z",
    }
    payload.update(overrides)
    return payload


def commit_payload(
    sha: str,
    date: str = "2024-06-10T10:00:00Z",
    author: str = "alice",
    additions: Optional[int] = None,
    deletions: Optional[int] = None,
) -> Dict[str, Any]:
    payload = {
        "sha": sha,
        "commit": {
            "message": f"commit {sha}",
            "author": {"name": author, "email": f"{author}@example.com", "date": date},
            "committer": {"name": author, "email": f"{author}@example.com", "date": date},
        },
        "author": {"login": author},
    }
    if additions is not None or deletions is not None:
        payload["stats"] = {"additions": additions, "deletions": deletions}
    return payload


class FakeGitHubClient:
    """
    In-memory stand-in for GitHubClient.

    Unknown users/repositories produce a 404 FetchResult; entries listed in
    ``failing`` produce a 500.
    """

    api_key = "test-token"

    def __init__(self):
        self.users: Dict[str, Dict[str, Any]] = {}
        self.repos: Dict[str, Dict[str, Any]] = {}
        self.user_repos: Dict[str, List[Dict[str, Any]]] = {}
        self.commits: Dict[str, List[Dict[str, Any]]] = {}
        self.contributors: Dict[str, List[Dict[str, Any]]] = {}
        self.commit_details: Dict[str, Dict[str, Any]] = {}
        self.failing: set = set()
        self.calls: List[tuple] = []

    def add_user(self, login: str, **overrides) -> None:
        self.users[login] = user_payload(login, **overrides)
        self.user_repos.setdefault(login, [])

    def add_repo(self, owner: str, name: str, commits=None, contributors=None, **overrides) -> None:
        payload = repo_payload(owner, name, **overrides)
        key = f"{owner}/{name}"
        self.repos[key] = payload
        self.user_repos.setdefault(owner, []).append(payload)
        self.commits[key] = list(commits or [])
        self.contributors[key] = list(contributors or [])

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    def _missing(self, what: str) -> FetchResult:
        return FetchResult(error=NotFoundError(source="github", resource_id=what))

    def _failed(self, what: str) -> FetchResult:
        return FetchResult(error=ServerError(f"Server error for {what}", source="github", status_code=500))

    def get_user(self, username):
        self.calls.append(("get_user", username))
        if ("user", username) in self.failing:
            return self._failed(username)
        if username not in self.users:
            return self._missing(username)
        return FetchResult(data=dict(self.users[username]))

    def get_user_repos(self, username):
        self.calls.append(("get_user_repos", username))
        if ("user_repos", username) in self.failing:
            return FetchResult(data=[], error=ServerError("boom", source="github", status_code=500))
        return FetchResult(data=list(self.user_repos.get(username, [])))

    def get_repository(self, owner, repo):
        key = f"{owner}/{repo}"
        self.calls.append(("get_repository", key))
        if ("repo", key) in self.failing:
            return self._failed(key)
        if key not in self.repos:
            return self._missing(key)
        return FetchResult(data=dict(self.repos[key]))

    def get_repository_commits(self, owner, repo, page=1, per_page=100):
        key = f"{owner}/{repo}"
        self.calls.append(("get_repository_commits", key, page, per_page))
        if ("commits", key) in self.failing:
            return FetchResult(data=[], error=ServerError("boom", source="github", status_code=500))
        items = self.commits.get(key, [])
        start = (page - 1) * per_page
        return FetchResult(data=items[start:start + per_page])

    def get_commit(self, owner, repo, sha):
        self.calls.append(("get_commit", f"{owner}/{repo}", sha))
        if ("commit", sha) in self.failing:
            return self._failed(sha)
        if sha not in self.commit_details:
            return self._missing(sha)
        return FetchResult(data=dict(self.commit_details[sha]))

    def get_repository_contributors(self, owner, repo):
        key = f"{owner}/{repo}"
        self.calls.append(("get_repository_contributors", key))
        if ("contributors", key) in self.failing:
            return FetchResult(data=[], error=ServerError("boom", source="github", status_code=500))
        return FetchResult(data=list(self.contributors.get(key, [])))

    def get_rate_limit(self):
        self.calls.append(("get_rate_limit",))
        return FetchResult(data={"rate": {"limit": 5000, "remaining": 4999, "reset": 1718452800, "used": 1}})

    def observed_rate_limit(self):
        return {"remaining": 4998, "reset_at": datetime(2024, 6, 15, 12, 0, 0)}

    def close(self):
        pass

