# =======================================================================================
# campus_access/utils/locks.py - Per-Identity Mutual Exclusion
# =======================================================================================
import threading
import weakref
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from sqlalchemy.exc import DBAPIError

from ..database import is_lock_conflict
from ..logging_config import get_logger
from .exceptions import ConcurrentConflictError, LockContentionError

logger = get_logger(__name__)

T = TypeVar("T")


class IdentityLockRegistry:
    """One in-process lock per identity id.

    Serializes read-decide-write on the same identity inside this process;
    the identity row lock (SELECT ... FOR UPDATE) covers other processes.
    Entries are weak: a lock nobody holds or waits on drops out of the map.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()

    def __len__(self) -> int:
        return len(self._locks)

    def _lock_for(self, identity_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(identity_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[identity_id] = lock
            return lock

    @contextmanager
    def hold(self, identity_id: int, timeout: float) -> Iterator[None]:
        lock = self._lock_for(identity_id)
        if not lock.acquire(timeout=timeout):
            raise LockContentionError(f"Lock busy for identity {identity_id}")
        try:
            yield
        finally:
            lock.release()


def run_with_identity_lock(
    registry: IdentityLockRegistry,
    identity_id: int,
    work: Callable[[], T],
    timeout: float,
    attempts: int = 2,
) -> T:
    """Run `work` holding the identity's lock; contention is retried once."""
    for attempt in range(1, attempts + 1):
        try:
            with registry.hold(identity_id, timeout):
                return work()
        except LockContentionError:
            logger.warning(
                "Identity lock contention (attempt %d/%d)", attempt, attempts,
                extra={"identity_id": identity_id},
            )
        except DBAPIError as exc:
            if not is_lock_conflict(exc):
                raise
            logger.warning(
                "Database lock conflict (attempt %d/%d): %s", attempt, attempts, exc.orig,
                extra={"identity_id": identity_id},
            )
    raise ConcurrentConflictError(identity_id)


# shared by every service instance in the process
identity_locks = IdentityLockRegistry()
