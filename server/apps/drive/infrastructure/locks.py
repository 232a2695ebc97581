"""In-process mutual exclusion for hierarchy mutations.

Physical and logical steps of one mutation are not covered by a common
transaction, so two requests touching the same item must not interleave.
Locks are keyed by (user_id, item_type, item_id) and dropped from the
registry once nobody holds or waits for them.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Final, final

logger = logging.getLogger(__name__)

LockKey = tuple[int, str, int]


@final
class _KeyedLockRegistry:
    """Reference counted registry of per-key locks."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[LockKey, threading.RLock] = {}
        self._users: dict[LockKey, int] = {}

    @contextmanager
    def hold(self, key: LockKey) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(key, threading.RLock())
            self._users[key] = self._users.get(key, 0) + 1

        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                self._users[key] -= 1
                if not self._users[key]:
                    del self._users[key]
                    del self._locks[key]

    def active_keys(self) -> int:
        with self._guard:
            return len(self._locks)


_registry: Final = _KeyedLockRegistry()


@contextmanager
def item_lock(user_id: int, item_type: str, item_id: int) -> Iterator[None]:
    """Serialize mutations of one file or folder.

    Re-entrant for the holding thread, so an operation may call another
    one on the same item.

    Args:
        user_id: Owner of the item.
        item_type: 'file' or 'folder'.
        item_id: Primary key of the item.

    Yields:
        None while the lock is held.
    """
    key = (user_id, item_type, item_id)
    logger.debug('Acquiring item lock: %s', key)
    with _registry.hold(key):
        yield


def active_lock_count() -> int:
    """Get the number of keys currently locked or awaited.

    Returns:
        Size of the lock registry.
    """
    return _registry.active_keys()
