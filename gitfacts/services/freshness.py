"""
Freshness policy: decide whether a stored fact must be refetched.
"""
from datetime import datetime, timedelta
from enum import Enum
from typing import Dict, Optional

from gitfacts.core.config import Settings


class EntityKind(str, Enum):
    """Kinds of stored entities that carry a freshness timestamp."""

    ACCOUNT = "account"
    REPOSITORY = "repository"


DEFAULT_TTLS: Dict[EntityKind, timedelta] = {
    EntityKind.ACCOUNT: timedelta(hours=24),
    EntityKind.REPOSITORY: timedelta(hours=6),
}


def is_stale(
    kind: EntityKind,
    last_timestamp: Optional[datetime],
    now: datetime,
    ttls: Optional[Dict[EntityKind, timedelta]] = None,
) -> bool:
    """
    True iff the entity must be refetched.

    A missing timestamp is always stale; otherwise stale once the age
    reaches the kind's TTL (the boundary itself counts as stale).
    """
    if last_timestamp is None:
        return True
    ttl = (ttls or DEFAULT_TTLS)[kind]
    return now - last_timestamp >= ttl


class FreshnessPolicy:
    """TTL table plus the helpers built on it."""

    def __init__(self, ttls: Optional[Dict[EntityKind, timedelta]] = None):
        self.ttls = dict(DEFAULT_TTLS)
        if ttls:
            self.ttls.update(ttls)

    @classmethod
    def from_settings(cls, settings: Settings) -> "FreshnessPolicy":
        return cls({
            EntityKind.ACCOUNT: timedelta(hours=settings.account_ttl_hours),
            EntityKind.REPOSITORY: timedelta(hours=settings.repository_ttl_hours),
        })

    def ttl(self, kind: EntityKind) -> timedelta:
        return self.ttls[kind]

    def is_stale(self, kind: EntityKind, last_timestamp: Optional[datetime], now: datetime) -> bool:
        return is_stale(kind, last_timestamp, now, self.ttls)

    def stale_timestamp(self, kind: EntityKind, now: datetime) -> datetime:
        """A timestamp guaranteed to be past the TTL: now - 2 * ttl."""
        return now - 2 * self.ttls[kind]
