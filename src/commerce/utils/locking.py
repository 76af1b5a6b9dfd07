"""Process-wide keyed locks.

Each component owns one lock family (products, cart owners, orders). Holding
a key's lock serializes the read-validate-mutate-commit sequence for that key
within this process. Multi-key acquisition always happens in sorted order.
"""

import threading
from collections.abc import Iterable
from contextlib import contextmanager


class _LockEntry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.RLock()
        self.users = 0


class KeyedLocks:
    """Locks created on demand per key and dropped once nobody holds or waits on them."""

    def __init__(self, name: str):
        self.name = name
        self._guard = threading.Lock()
        self._locks: dict[str, _LockEntry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, key: str) -> threading.RLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = _LockEntry()
            entry.users += 1
            return entry.lock

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._locks[key]
            entry.users -= 1
            if entry.users == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, *keys: str):
        """Hold the locks for ``keys`` for the duration of the block."""
        with self.hold_all(keys):
            yield

    @contextmanager
    def hold_all(self, keys: Iterable[str]):
        ordered = sorted({str(key) for key in keys if key is not None})
        acquired = []
        try:
            for key in ordered:
                lock = self._checkout(key)
                lock.acquire()
                acquired.append((key, lock))
            yield
        finally:
            for key, lock in reversed(acquired):
                lock.release()
                self._checkin(key)


product_locks = KeyedLocks("product")
cart_locks = KeyedLocks("cart")
order_locks = KeyedLocks("order")
