"""
Unit tests for per-key refresh locks.
"""
import threading
import time

import pytest

from gitfacts.core.keyed_lock import KeyedLock


@pytest.mark.unit
class TestKeyedLock:

    def test_same_key_is_serialised(self):
        locks = KeyedLock()
        order = []

        def worker(name):
            with locks.hold("account", "alice"):
                order.append(f"{name}-in")
                time.sleep(0.05)
                order.append(f"{name}-out")

        threads = [threading.Thread(target=worker, args=(n,)) for n in ("a", "b")]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert order in (
            ["a-in", "a-out", "b-in", "b-out"],
            ["b-in", "b-out", "a-in", "a-out"],
        )

    def test_different_keys_do_not_block(self):
        locks = KeyedLock()
        entered = threading.Event()

        with locks.hold("account", "alice"):
            def other():
                with locks.hold("account", "bob"):
                    entered.set()

            t = threading.Thread(target=other)
            t.start()
            assert entered.wait(timeout=2)
            t.join()

    def test_reentrant_for_the_same_thread(self):
        locks = KeyedLock()
        with locks.hold("repository", "alice/proj"):
            with locks.hold("repository", "alice/proj"):
                assert locks.active_keys() == 1

    def test_entries_released_after_use(self):
        locks = KeyedLock()
        with locks.hold("account", "alice"):
            with locks.hold("repository", "alice/proj"):
                assert locks.active_keys() == 2
        assert locks.active_keys() == 0

    def test_released_on_exception(self):
        locks = KeyedLock()
        with pytest.raises(RuntimeError):
            with locks.hold("account", "alice"):
                raise RuntimeError("boom")
        assert locks.active_keys() == 0
