"""
Per-key mutual exclusion for the two places where concurrent requests race:
room creation for a participant pair and message insertion into a room.

Locks are created on demand and dropped once nobody holds or waits on them.
They only serialize requests inside one process; across processes the
database constraints and conditional updates in ``chat_api.crud.rooms`` keep
the same guarantees.
"""
from collections import defaultdict
from contextlib import contextmanager
from threading import Lock
from typing import Hashable, Iterator


class KeyedLock:

    def __init__(self):
        self._locks: dict[Hashable, Lock] = {}
        self._users: dict[Hashable, int] = defaultdict(int)
        self._guard = Lock()

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = Lock()
            self._users[key] += 1

        try:
            with lock:
                yield
        finally:
            with self._guard:
                self._users[key] -= 1
                if self._users[key] == 0:
                    del self._users[key]
                    del self._locks[key]

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


# Global instances
room_pair_locks = KeyedLock()
room_write_locks = KeyedLock()
