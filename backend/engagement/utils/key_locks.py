from __future__ import annotations

import threading
from contextlib import contextmanager


class KeyedLocks:
    """Process-local lock per key, dropped once nobody holds or waits on it."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict = {}

    @contextmanager
    def hold(self, key):
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._locks[key] = entry
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)

    def __len__(self):
        with self._guard:
            return len(self._locks)


_LOCKS = KeyedLocks()


@contextmanager
def key_lock(user_id: str, creator_id: str):
    """Serialize every write for one (user, creator) pair inside this process.

    Cross-process exclusion comes from the row lock taken in `lock_account`.
    """
    with _LOCKS.hold((str(user_id), str(creator_id))):
        yield
