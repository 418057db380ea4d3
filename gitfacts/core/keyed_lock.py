"""
Per-key mutual exclusion for refresh work.

Two requests that refresh the same (kind, key) run one after the other;
requests for different keys never block each other.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, Tuple

logger = logging.getLogger(__name__)


class KeyedLock:
    """
    A registry of reentrant locks keyed by (kind, key).

    Entries are reference counted and dropped once no caller holds or waits
    on them, so the registry does not grow with every username seen.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Tuple[str, Hashable], threading.RLock] = {}
        self._waiters: Dict[Tuple[str, Hashable], int] = {}

    @contextmanager
    def hold(self, kind: str, key: Hashable) -> Iterator[None]:
        """Block until the lock for (kind, key) is ours, then yield."""
        slot = (kind, key)
        with self._guard:
            lock = self._locks.get(slot)
            if lock is None:
                lock = threading.RLock()
                self._locks[slot] = lock
            self._waiters[slot] = self._waiters.get(slot, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._waiters[slot] -= 1
                if self._waiters[slot] == 0:
                    del self._waiters[slot]
                    del self._locks[slot]

    def active_keys(self) -> int:
        """Number of keys currently held or waited on."""
        with self._guard:
            return len(self._locks)
