"""
Unit tests for the per-key lock map.
"""

import threading
import time

import pytest

from promosync.utils.locks import KeyedLock


def _run_all(targets):
    threads = [threading.Thread(target=target) for target in targets]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=10)
    assert not any(thread.is_alive() for thread in threads)


class TestKeyedLock:
    """Tests for KeyedLock."""

    def setup_method(self):
        self.locks = KeyedLock()
        self.guard = threading.Lock()
        self.running = {}
        self.peak = {}

    def _work(self, key, *hold_keys):
        def target():
            with self.locks.hold_all(*(hold_keys or (key,))):
                with self.guard:
                    self.running[key] = self.running.get(key, 0) + 1
                    self.peak[key] = max(self.peak.get(key, 0), self.running[key])
                time.sleep(0.02)
                with self.guard:
                    self.running[key] -= 1
        return target

    def test_same_key_is_serialized(self):
        _run_all([self._work("w-1") for _ in range(4)])

        assert self.peak["w-1"] == 1

    def test_different_keys_run_concurrently(self):
        barrier = threading.Barrier(2, timeout=5)
        passed = []

        def worker(key):
            def target():
                with self.locks.hold(key):
                    barrier.wait()
                    passed.append(key)
            return target

        _run_all([worker("w-1"), worker("w-2")])

        assert sorted(passed) == ["w-1", "w-2"]

    def test_idle_keys_are_discarded(self):
        with self.locks.hold("w-1"):
            with self.locks.hold("w-2"):
                assert len(self.locks) == 2

        assert len(self.locks) == 0

    def test_lock_released_when_body_raises(self):
        with pytest.raises(RuntimeError):
            with self.locks.hold("w-1"):
                raise RuntimeError("boom")

        assert len(self.locks) == 0
        with self.locks.hold("w-1"):
            assert len(self.locks) == 1

    def test_none_key_holds_nothing(self):
        with self.locks.hold(None):
            assert len(self.locks) == 0

        with self.locks.hold_all(None, None):
            assert len(self.locks) == 0

    def test_hold_all_skips_none_and_repeats(self):
        with self.locks.hold_all(("external_id", "w-1"), None, ("external_id", "w-1"), ("name", "Ace")):
            assert len(self.locks) == 2

        assert len(self.locks) == 0

    def test_hold_all_serializes_on_a_shared_natural_key(self):
        _run_all([
            self._work("ace", ("external_id", "w-1"), ("name", "Ace")),
            self._work("ace", ("external_id", "w-2"), ("name", "Ace")),
            self._work("ace", ("external_id", "w-3"), ("name", "Ace")),
        ])

        assert self.peak["ace"] == 1
