"""Per-key exclusive regions.

Each key (account id, instrument symbol) gets its own re-entrant lock, so
work on different keys runs in parallel. The registry lock only guards lock
creation and is never held while a caller is inside a keyed region.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Generic, Hashable, Iterator, TypeVar

K = TypeVar("K", bound=Hashable)


class KeyedLocks(Generic[K]):
    """Lazily created lock per key.

    Locks are never evicted: the map keeps one entry per key ever used
    (every account id the engine has seen, every symbol written).
    Removing an entry while another thread holds or awaits its lock would
    let two threads into the same region.
    """

    def __init__(self) -> None:
        self._locks: dict[K, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def lock_for(self, key: K) -> threading.RLock:
        lock = self._locks.get(key)
        if lock is not None:
            return lock
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: K) -> Iterator[None]:
        """Hold the exclusive region for `key`."""
        lock = self.lock_for(key)
        with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)
