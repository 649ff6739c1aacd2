"""
Per-key locking.

Mutations that touch one voter (case decisions, verification outcomes,
liveness reports) are serialised on that voter's lock; different voters
proceed in parallel.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class KeyedLock:
    """
    A re-entrant lock per key, created on first use.

    A key's lock is dropped once no thread holds or waits for it.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}
        self._users: dict[str, int] = {}

    def _acquire_ref(self, key: str) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            self._users[key] = self._users.get(key, 0) + 1
            return lock

    def _release_ref(self, key: str) -> None:
        with self._guard:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        key = str(key)
        lock = self._acquire_ref(key)
        try:
            with lock:
                yield
        finally:
            self._release_ref(key)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
