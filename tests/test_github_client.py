"""
Unit tests for the GitHub client.

All HTTP traffic goes through httpx.MockTransport; nothing leaves the process.
"""
from datetime import datetime

import httpx
import pytest

from gitfacts.core.api_errors import (
    ClientError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ServerError,
)
from gitfacts.sources.github.client import GitHubClient


def make_client(handler, token="ghp_test", max_retries=3):
    return GitHubClient(
        token=token,
        transport=httpx.MockTransport(handler),
        max_retries=max_retries,
        sleep=lambda seconds: None,
    )


class Recorder:
    """Handler that answers every request with the same response and keeps the requests."""

    def __init__(self, status=200, json=None, headers=None, exc=None):
        self.status = status
        self.json = json if json is not None else {}
        self.headers = headers or {}
        self.exc = exc
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.exc is not None:
            raise self.exc
        return httpx.Response(self.status, json=self.json, headers=self.headers)


@pytest.mark.unit
class TestRequests:

    def test_headers_carry_token_and_user_agent(self):
        handler = Recorder(json={"login": "alice"})
        client = make_client(handler)

        result = client.get_user("alice")

        assert result.ok
        assert result.data == {"login": "alice"}
        sent = handler.requests[0]
        assert sent.url.path == "/users/alice"
        assert sent.headers["Authorization"] == "Bearer ghp_test"
        assert sent.headers["Accept"] == "application/vnd.github.v3+json"
        assert sent.headers["User-Agent"] == "gitfacts-analytics/0.1"

    def test_no_authorization_without_token(self):
        handler = Recorder(json={"login": "alice"})
        client = make_client(handler, token=None)

        client.get_user("alice")

        assert "Authorization" not in handler.requests[0].headers

    def test_commit_pagination_params(self):
        handler = Recorder(json=[])
        client = make_client(handler)

        client.get_repository_commits("alice", "proj", page=3, per_page=30)

        sent = handler.requests[0]
        assert sent.url.path == "/repos/alice/proj/commits"
        assert sent.url.params["page"] == "3"
        assert sent.url.params["per_page"] == "30"

    def test_single_commit_path(self):
        handler = Recorder(json={"sha": "abc", "stats": {"additions": 3, "deletions": 1}})
        client = make_client(handler)

        result = client.get_commit("alice", "proj", "abc")

        assert result.ok
        assert result.data["stats"]["additions"] == 3
        assert handler.requests[0].url.path == "/repos/alice/proj/commits/abc"

    def test_user_repos_requests_one_full_page(self):
        handler = Recorder(json=[{"name": "proj"}])
        client = make_client(handler)

        result = client.get_user_repos("alice")

        assert result.data == [{"name": "proj"}]
        assert handler.requests[0].url.params["per_page"] == "100"
        assert handler.requests[0].url.params["sort"] == "updated"

    def test_non_list_body_is_normalised_to_empty_list(self):
        client = make_client(Recorder(json={"message": "unexpected"}))

        result = client.get_repository_contributors("alice", "proj")

        assert result.ok
        assert result.data == []


@pytest.mark.unit
class TestErrorHandling:

    def test_not_found_is_not_retried(self):
        handler = Recorder(status=404, json={"message": "Not Found"})
        client = make_client(handler)

        result = client.get_user("ghost")

        assert not result.ok
        assert result.not_found
        assert isinstance(result.error, NotFoundError)
        assert len(handler.requests) == 1

    def test_server_error_retried_up_to_max(self):
        handler = Recorder(status=502, json={"message": "Bad Gateway"})
        client = make_client(handler, max_retries=3)

        result = client.get_repository("alice", "proj")

        assert isinstance(result.error, ServerError)
        assert len(handler.requests) == 3

    def test_server_error_then_success(self):
        responses = [httpx.Response(500), httpx.Response(200, json={"name": "proj"})]
        client = make_client(lambda request: responses.pop(0))

        result = client.get_repository("alice", "proj")

        assert result.ok
        assert result.data == {"name": "proj"}

    def test_network_error_retried_then_reported(self):
        handler = Recorder(exc=httpx.ConnectError("connection refused"))
        client = make_client(handler, max_retries=2)

        result = client.get_user("alice")

        assert isinstance(result.error, NetworkError)
        assert len(handler.requests) == 2

    def test_429_is_rate_limit_and_not_retried(self):
        handler = Recorder(status=429, json={"message": "slow down"})
        client = make_client(handler)

        result = client.get_user("alice")

        assert isinstance(result.error, RateLimitError)
        assert isinstance(result.error, ClientError)
        assert len(handler.requests) == 1

    def test_403_with_exhausted_quota_is_rate_limit(self):
        handler = Recorder(
            status=403,
            json={"message": "API rate limit exceeded"},
            headers={"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1718452800"},
        )
        client = make_client(handler)

        result = client.get_user("alice")

        assert isinstance(result.error, RateLimitError)
        assert result.error.reset_at == 1718452800
        assert len(handler.requests) == 1

    def test_plain_403_is_client_error(self):
        handler = Recorder(status=403, json={"message": "forbidden"}, headers={"X-RateLimit-Remaining": "10"})
        client = make_client(handler)

        result = client.get_user("alice")

        assert isinstance(result.error, ClientError)
        assert not isinstance(result.error, RateLimitError)

    def test_failed_list_call_has_empty_data(self):
        client = make_client(Recorder(status=500), max_retries=1)

        result = client.get_repository_commits("alice", "proj")

        assert not result.ok
        assert result.data == []


@pytest.mark.unit
def test_rate_limit_headers_are_tracked():
    handler = Recorder(
        json={"login": "alice"},
        headers={"X-RateLimit-Remaining": "4999", "X-RateLimit-Reset": "1718452800"},
    )
    client = make_client(handler)

    assert client.observed_rate_limit() == {"remaining": None, "reset_at": None}

    client.get_user("alice")
    status = client.observed_rate_limit()

    assert status["remaining"] == 4999
    assert status["reset_at"] == datetime(2024, 6, 15, 12, 0, 0)


@pytest.mark.unit
def test_from_settings_uses_configured_values(settings):
    settings.github_token = "ghp_from_settings"
    settings.max_retries = 5

    client = GitHubClient.from_settings(settings)

    assert client.api_key == "ghp_from_settings"
    assert client.max_retries == 5
    assert client.base_url == "https://api.github.com"
