"""
GitHub source: REST client and ingestion into the fact store.
"""

from gitfacts.sources.github.client import FetchResult, GitHubClient
from gitfacts.sources.github.ingest import IngestionCoordinator

__all__ = ["FetchResult", "GitHubClient", "IngestionCoordinator"]
