"""
Table/scope locks used by the uniqueness guard.

A lock is exclusive per scope (usually an entity type). Stores implement the
actual mutual exclusion; TableLock wraps a store lock as a scope guard that
is released on every exit path and tolerates a second release.

    with TableLock(store, "User", timeout=5.0):
        existing = ...  # uniqueness check
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from crmcore.orm.storage import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 10.0


@dataclass
class LockHandle:
    """Token for a held lock. released flips once the store lets it go."""
    scope: str
    token: str = field(default_factory=lambda: uuid.uuid4().hex)
    released: bool = False


class TableLock:
    """
    Guard around one store lock.

    Args:
        store: RecordStore providing lock/unlock
        scope: Lock scope (entity type / table name)
        timeout: Seconds to wait before LockTimeout
    """

    def __init__(self, store: "RecordStore", scope: str, timeout: float = DEFAULT_LOCK_TIMEOUT):
        self.store = store
        self.scope = scope
        self.timeout = timeout
        self._handle: Optional[LockHandle] = None

    def acquire(self) -> LockHandle:
        """
        Acquire the lock, blocking up to timeout.

        Raises:
            LockTimeout: If the lock was not acquired in time
            RuntimeError: If this guard already holds the lock
        """
        if self.is_locked():
            raise RuntimeError(f"Lock on '{self.scope}' is already held by this guard")
        self._handle = self.store.lock(self.scope, self.timeout)
        logger.debug("Locked %s", self.scope)
        return self._handle

    def release(self) -> None:
        """Release the lock. Releasing a guard that holds nothing is a no-op."""
        if not self.is_locked():
            return
        handle = self._handle
        self._handle = None
        self.store.unlock(handle)
        logger.debug("Unlocked %s", self.scope)

    def is_locked(self) -> bool:
        """True if this guard currently holds the lock."""
        return self._handle is not None and not self._handle.released

    def __enter__(self) -> "TableLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
