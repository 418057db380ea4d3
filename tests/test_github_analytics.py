"""
Unit tests for GitHubAnalyticsService, the public operation surface.
"""
from datetime import datetime

import pytest

from gitfacts.core.keyed_lock import KeyedLock
from gitfacts.services.github_analytics import GitHubAnalyticsService
from gitfacts.services.results import ErrorKind
from github_fakes import commit_payload


@pytest.fixture
def service(test_db, fake_github, settings, clock):
    return GitHubAnalyticsService(
        test_db, client=fake_github, settings=settings, clock=clock, locks=KeyedLock()
    )


@pytest.fixture
def alice(fake_github):
    fake_github.add_user("alice")
    fake_github.add_repo(
        "alice", "proj",
        commits=[commit_payload("a1", additions=10, deletions=2), commit_payload("a2")],
        contributors=[{"login": "alice", "contributions": 2}],
        stargazers_count=30,
        language="Python",
    )
    fake_github.add_repo("alice", "tools", stargazers_count=3, language="Go")
    return fake_github


@pytest.mark.unit
class TestAccountOperations:

    def test_account_analytics(self, service, alice):
        result = service.get_account_analytics("alice")

        assert result.ok
        assert result.value.username == "alice"
        assert result.value.repository_stats.total_stars == 33
        assert result.value.contribution_stats.total_commits == 2
        assert result.value.degraded_sections == {}

    def test_unknown_account(self, service):
        result = service.get_account_analytics("ghost")

        assert not result.ok
        assert result.value is None
        assert result.error == ErrorKind.REMOTE_NOT_FOUND

    def test_remote_failure_without_stored_row(self, service, fake_github):
        fake_github.add_user("alice")
        fake_github.failing.add(("user", "alice"))

        result = service.get_account_analytics("alice")

        assert result.error == ErrorKind.REMOTE_SERVER_ERROR

    def test_partial_ingestion_is_reported(self, service, alice):
        alice.failing.add(("user_repos", "alice"))

        result = service.get_account_analytics("alice")

        assert result.ok
        assert result.value.degraded_sections == {"repositories:alice": "remote_server_error"}

    def test_refresh_refetches_fresh_account(self, service, alice):
        service.get_account_analytics("alice")
        result = service.refresh_account_analytics("alice")

        assert result.ok
        assert alice.count("get_user") == 2

    def test_unexpected_failure_is_internal_error(self, service, alice, monkeypatch):
        def explode(account):
            raise RuntimeError("boom")

        monkeypatch.setattr(service.aggregator, "build_account_analytics", explode)

        result = service.get_account_analytics("alice")

        assert result.error == ErrorKind.INTERNAL_AGGREGATION_ERROR
        assert "boom" in result.message


@pytest.mark.unit
class TestRepositoryOperations:

    def test_repository_analytics(self, service, alice):
        result = service.get_repository_analytics("alice", "proj")

        assert result.ok
        assert result.value.full_name == "alice/proj"
        assert result.value.commit_analytics.total_commits == 2
        assert result.value.contributor_analytics.total_contributors == 1
        assert result.value.owner.username == "alice"

    def test_unknown_repository(self, service, alice):
        result = service.get_repository_analytics("alice", "nope")
        assert result.error == ErrorKind.REMOTE_NOT_FOUND

    def test_unknown_owner(self, service):
        result = service.get_repository_analytics("ghost", "proj")
        assert result.error == ErrorKind.REMOTE_NOT_FOUND

    def test_refresh_repository(self, service, alice):
        service.get_repository_analytics("alice", "proj")
        result = service.refresh_repository_analytics("alice", "proj")

        assert result.ok
        assert alice.count("get_repository") == 2


@pytest.mark.unit
class TestComparisons:

    def test_compare_accounts_omits_unknown(self, service, fake_github):
        for name in ("alice", "bob", "carol"):
            fake_github.add_user(name)

        result = service.compare_accounts(["alice", "bob", "carol", "ghost"])

        assert result.ok
        assert sorted(result.value) == ["alice", "bob", "carol"]

    def test_compare_too_many_accounts(self, service, fake_github):
        result = service.compare_accounts([f"user{i}" for i in range(11)])

        assert result.error == ErrorKind.VALIDATION_ERROR
        assert fake_github.calls == []

    def test_compare_empty(self, service):
        assert service.compare_accounts([]).error == ErrorKind.VALIDATION_ERROR

    def test_compare_repositories(self, service, alice):
        result = service.compare_repositories(["alice/proj", "alice/tools", "alice/nope"])

        assert result.ok
        assert sorted(result.value) == ["alice/proj", "alice/tools"]

    def test_compare_malformed_repository(self, service):
        assert service.compare_repositories(["alice"]).error == ErrorKind.VALIDATION_ERROR


@pytest.mark.unit
class TestStoreWideViews:

    def test_trending(self, service, fake_github):
        fake_github.add_user("alice")
        fake_github.add_repo("alice", "hot", stargazers_count=50, created_at="2024-06-12T00:00:00Z")
        fake_github.add_repo("alice", "warm", stargazers_count=20, created_at="2024-06-14T00:00:00Z")
        fake_github.add_repo("alice", "quiet", stargazers_count=5, created_at="2024-06-14T00:00:00Z")
        fake_github.add_repo("alice", "classic", stargazers_count=900)
        service.get_account_analytics("alice")

        result = service.list_trending_repositories(since_days=7, min_stars=10, limit=10)

        assert result.ok
        assert [r.full_name for r in result.value] == ["alice/hot", "alice/warm"]

    def test_trending_limit(self, service, fake_github):
        fake_github.add_user("alice")
        fake_github.add_repo("alice", "hot", stargazers_count=50, created_at="2024-06-12T00:00:00Z")
        fake_github.add_repo("alice", "warm", stargazers_count=20, created_at="2024-06-14T00:00:00Z")
        service.get_account_analytics("alice")

        result = service.list_trending_repositories(since_days=7, min_stars=0, limit=1)

        assert [r.repo_name for r in result.value] == ["hot"]

    def test_trending_rejects_bad_arguments(self, service):
        assert service.list_trending_repositories(limit=0).error == ErrorKind.VALIDATION_ERROR
        assert service.list_trending_repositories(since_days=-1).error == ErrorKind.VALIDATION_ERROR

    def test_dashboard(self, service, alice):
        service.get_account_analytics("alice")
        service.refresh_repository_analytics("alice", "proj")

        result = service.get_dashboard_summary()

        assert result.ok
        summary = result.value
        assert summary.total_accounts == 1
        assert summary.total_repositories == 2
        assert summary.total_commits == 2
        assert summary.total_contributors == 1
        assert [(l.language, l.repository_count) for l in summary.top_languages] == [("Go", 1), ("Python", 1)]
        assert summary.recently_active_repositories == 2

    def test_dashboard_on_empty_store(self, service):
        summary = service.get_dashboard_summary().value

        assert summary.total_accounts == 0
        assert summary.top_languages == []

    def test_rate_limit_status(self, service):
        result = service.get_rate_limit_status()

        assert result.ok
        assert result.value.limit == 5000
        assert result.value.remaining == 4999
        assert result.value.reset_at == datetime(2024, 6, 15, 12, 0, 0)
        assert result.value.authenticated is True
        assert result.value.observed_remaining == 4998
        assert result.value.observed_reset_at == datetime(2024, 6, 15, 12, 0, 0)


@pytest.mark.unit
class TestRepositoryListings:

    @pytest.fixture
    def stored(self, service, fake_github):
        fake_github.add_user("alice")
        fake_github.add_repo("alice", "beta", stargazers_count=5, forks_count=9, language="Python")
        fake_github.add_repo("alice", "alpha", stargazers_count=40, forks_count=1, language="Go")
        fake_github.add_repo("alice", "gamma", stargazers_count=12, forks_count=4, language="Python")
        fake_github.add_user("bob")
        fake_github.add_repo("bob", "tool", stargazers_count=99, language="Python")
        service.get_account_analytics("alice")
        service.get_account_analytics("bob")
        return service

    def test_account_repositories_default_most_starred_first(self, stored):
        result = stored.list_account_repositories("alice")

        assert result.ok
        assert [r.repo_name for r in result.value] == ["alpha", "gamma", "beta"]
        assert result.value[0].full_name == "alice/alpha"

    def test_account_repositories_sort_field_and_direction(self, stored):
        by_forks = stored.list_account_repositories("alice", sort_by="forks_count", sort_dir="ASC")
        by_name = stored.list_account_repositories("alice", sort_by="repo_name", sort_dir="desc")

        assert [r.repo_name for r in by_forks.value] == ["alpha", "gamma", "beta"]
        assert [r.repo_name for r in by_name.value] == ["gamma", "beta", "alpha"]

    def test_account_repositories_paging(self, stored):
        first = stored.list_account_repositories("alice", page=0, size=2)
        second = stored.list_account_repositories("alice", page=1, size=2)
        past_end = stored.list_account_repositories("alice", page=5, size=2)

        assert [r.repo_name for r in first.value] == ["alpha", "gamma"]
        assert [r.repo_name for r in second.value] == ["beta"]
        assert past_end.value == []

    def test_account_repositories_reads_store_only(self, stored, fake_github):
        calls_before = len(fake_github.calls)

        result = stored.list_account_repositories("carol")

        assert result.ok
        assert result.value == []
        assert len(fake_github.calls) == calls_before

    def test_account_repositories_rejects_bad_arguments(self, stored):
        assert stored.list_account_repositories("alice", sort_by="owner_secret").error == ErrorKind.VALIDATION_ERROR
        assert stored.list_account_repositories("alice", sort_dir="sideways").error == ErrorKind.VALIDATION_ERROR
        assert stored.list_account_repositories("alice", page=-1).error == ErrorKind.VALIDATION_ERROR
        assert stored.list_account_repositories("alice", size=0).error == ErrorKind.VALIDATION_ERROR

    def test_repositories_by_language(self, stored):
        result = stored.list_repositories_by_language("Python")

        assert [r.full_name for r in result.value] == ["bob/tool", "alice/gamma", "alice/beta"]

    def test_repositories_by_language_paging(self, stored):
        result = stored.list_repositories_by_language("Python", page=1, size=2)

        assert [r.full_name for r in result.value] == ["alice/beta"]
        assert stored.list_repositories_by_language("Python", size=101).error == ErrorKind.VALIDATION_ERROR

    def test_language_statistics(self, stored):
        result = stored.get_language_statistics()

        assert result.ok
        assert [(l.language, l.repository_count) for l in result.value.language_breakdown] == [
            ("Python", 3),
            ("Go", 1),
        ]
        assert result.value.total_languages == 2

    def test_language_statistics_on_empty_store(self, service):
        result = service.get_language_statistics()

        assert result.value.language_breakdown == []
        assert result.value.total_languages == 0
