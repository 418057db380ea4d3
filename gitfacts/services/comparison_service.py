"""
Side-by-side comparison of several accounts or repositories.
"""
import logging
from typing import Callable, Dict, List, Optional, Sequence, TypeVar

from gitfacts.services.exceptions import ValidationError
from gitfacts.services.schemas import AccountAnalytics, RepositoryAnalytics
from gitfacts.sources.github.ingest import RepositoryKey, split_repository_key

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")

MAX_COMPARISON_KEYS = 10


class ComparisonService:
    """
    Runs ensure + aggregate for up to ``max_keys`` keys.

    Input is validated before any remote work. A key that cannot be
    resolved is left out of the result; the call itself still succeeds.
    """

    def __init__(
        self,
        account_analytics: Callable[[str], Optional[AccountAnalytics]],
        repository_analytics: Callable[[str, str], Optional[RepositoryAnalytics]],
        max_keys: int = MAX_COMPARISON_KEYS,
    ):
        self.account_analytics = account_analytics
        self.repository_analytics = repository_analytics
        self.max_keys = max_keys

    def _validate_size(self, keys: Sequence, what: str) -> None:
        if keys is None or len(keys) == 0:
            raise ValidationError(f"At least one {what} is required for comparison")
        if len(keys) > self.max_keys:
            raise ValidationError(
                f"Maximum {self.max_keys} {what}s can be compared at once (got {len(keys)})"
            )

    def _collect(self, keys: List[K], build: Callable[[K], Optional[V]], label: Callable[[K], str]) -> Dict[str, V]:
        results: Dict[str, V] = {}
        for key in keys:
            name = label(key)
            if name in results:
                continue
            try:
                value = build(key)
            except Exception as e:
                logger.warning(f"Comparison entry {name} failed: {e}")
                continue
            if value is None:
                logger.info(f"Comparison entry {name} not found, omitting")
                continue
            results[name] = value
        return results

    def compare_accounts(self, usernames: Sequence[str]) -> Dict[str, AccountAnalytics]:
        """
        Analytics for each username, keyed by username in input order.

        Raises:
            ValidationError: empty list, more than max_keys entries, or a blank name
        """
        self._validate_size(usernames, "username")
        cleaned = [u.strip() if isinstance(u, str) else "" for u in usernames]
        if not all(cleaned):
            raise ValidationError("Usernames must be non-empty strings")

        logger.info(f"Comparing {len(cleaned)} accounts")
        return self._collect(cleaned, self.account_analytics, lambda u: u)

    def compare_repositories(self, keys: Sequence[RepositoryKey]) -> Dict[str, RepositoryAnalytics]:
        """
        Analytics for each repository, keyed by "owner/repo".

        Keys may be "owner/repo" strings or (owner, repo) pairs.

        Raises:
            ValidationError: empty list, more than max_keys entries, or a malformed key
        """
        self._validate_size(keys, "repository")
        pairs = []
        for key in keys:
            try:
                pairs.append(split_repository_key(key))
            except (ValueError, TypeError) as e:
                raise ValidationError(str(e)) from e

        logger.info(f"Comparing {len(pairs)} repositories")
        return self._collect(
            pairs,
            lambda pair: self.repository_analytics(pair[0], pair[1]),
            lambda pair: f"{pair[0]}/{pair[1]}",
        )
