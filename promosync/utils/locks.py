"""
Per-key locking.

Serializes work that shares a key (for example the external id of a record)
while letting work on different keys run concurrently.
"""

import threading
from contextlib import contextmanager
from typing import Dict, Hashable, Iterator, List, Optional


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class KeyedLock:
    """Reference-counted map of per-key locks; idle keys are discarded."""

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[Hashable, _Entry] = {}

    @contextmanager
    def hold(self, key: Optional[Hashable]) -> Iterator[None]:
        """Hold the lock for ``key``; a ``None`` key holds nothing."""
        if key is None:
            yield
            return

        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.users += 1

        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.users -= 1
                if entry.users == 0:
                    del self._entries[key]

    @contextmanager
    def hold_all(self, *keys: Optional[Hashable]) -> Iterator[None]:
        """Hold several keys in the order given, skipping ``None`` and repeats."""
        ordered: List[Hashable] = []
        for key in keys:
            if key is not None and key not in ordered:
                ordered.append(key)

        if not ordered:
            yield
            return

        with self.hold(ordered[0]):
            with self.hold_all(*ordered[1:]):
                yield

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


__all__ = ["KeyedLock"]
