"""
RecordStore - persistence and locking boundary for records.

The RecordStore manages:
- Record attribute maps keyed by (entity_type, id)
- Condition queries used by Select and uniqueness checks
- Exclusive scope locks used by the uniqueness guard

Storage backends:
- In-memory (for testing and single-process use)
- SQLite (attributes stored as JSON, lock = write transaction)
"""

import copy
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

from crmcore.errors import LockTimeout
from crmcore.orm.lock import LockHandle
from crmcore.orm.query import Condition, build_where_sql


def _project(data: dict[str, Any], fields: Optional[list[str]]) -> dict[str, Any]:
    if fields is None:
        return data
    wanted = set(fields) | {"id"}
    return {k: v for k, v in data.items() if k in wanted}


class RecordStore(ABC):
    """
    Abstract base class for record storage.

    Implementations must provide methods to:
    - Load, persist and delete attribute maps
    - Find attribute maps matching conditions
    - Lock and unlock a scope, with a bounded wait
    """

    @abstractmethod
    def load(self, entity_type: str, id: str) -> Optional[dict[str, Any]]:
        """
        Load a record's attributes.

        Returns:
            The attribute map if found, None otherwise
        """
        pass

    @abstractmethod
    def persist(self, entity_type: str, id: str, attributes: dict[str, Any]) -> None:
        """Insert or replace a record's attributes."""
        pass

    @abstractmethod
    def delete(self, entity_type: str, id: str) -> None:
        """Delete a record. Deleting a missing record is a no-op."""
        pass

    @abstractmethod
    def find(
        self,
        entity_type: str,
        conditions: list[Condition],
        fields: Optional[list[str]] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        """
        Find records matching every condition, in insertion order.

        Args:
            entity_type: Entity type to search
            conditions: Conditions ANDed together
            fields: Attributes to return ("id" is always included); None for all
            limit: Maximum rows to return
        """
        pass

    @abstractmethod
    def lock(self, scope: str, timeout: float) -> LockHandle:
        """
        Acquire the exclusive lock for a scope.

        Raises:
            LockTimeout: If the lock is not acquired within timeout seconds
        """
        pass

    @abstractmethod
    def unlock(self, handle: LockHandle) -> None:
        """Release a held lock. Releasing an already released handle is a no-op."""
        pass

    @abstractmethod
    def is_locked(self, scope: str) -> bool:
        """True if anyone currently holds the scope's lock."""
        pass

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class InMemoryRecordStore(RecordStore):
    """
    In-memory implementation of RecordStore.

    Locks are per-scope threading.Locks, so threads sharing one store
    contend for them. All data is lost when the instance is garbage collected.
    """

    def __init__(self):
        self._data: dict[str, dict[str, dict[str, Any]]] = {}
        self._data_guard = threading.RLock()
        self._locks: dict[str, threading.Lock] = {}
        self._holders: dict[str, str] = {}  # scope -> token
        self._locks_guard = threading.Lock()

    def load(self, entity_type: str, id: str) -> Optional[dict[str, Any]]:
        with self._data_guard:
            data = self._data.get(entity_type, {}).get(id)
            return copy.deepcopy(data) if data is not None else None

    def persist(self, entity_type: str, id: str, attributes: dict[str, Any]) -> None:
        with self._data_guard:
            self._data.setdefault(entity_type, {})[id] = copy.deepcopy(attributes)

    def delete(self, entity_type: str, id: str) -> None:
        with self._data_guard:
            self._data.get(entity_type, {}).pop(id, None)

    def find(
        self,
        entity_type: str,
        conditions: list[Condition],
        fields: Optional[list[str]] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        results = []
        with self._data_guard:
            for data in self._data.get(entity_type, {}).values():
                if all(cond.matches(data) for cond in conditions):
                    results.append(_project(copy.deepcopy(data), fields))
                    if limit is not None and len(results) >= limit:
                        break
        return results

    def _scope_lock(self, scope: str) -> threading.Lock:
        with self._locks_guard:
            if scope not in self._locks:
                self._locks[scope] = threading.Lock()
            return self._locks[scope]

    def lock(self, scope: str, timeout: float) -> LockHandle:
        scope_lock = self._scope_lock(scope)
        if timeout <= 0:
            acquired = scope_lock.acquire(blocking=False)
        else:
            acquired = scope_lock.acquire(timeout=timeout)
        if not acquired:
            raise LockTimeout(scope, timeout)
        handle = LockHandle(scope=scope)
        self._holders[scope] = handle.token
        return handle

    def unlock(self, handle: LockHandle) -> None:
        if handle.released:
            return
        if self._holders.get(handle.scope) != handle.token:
            raise RuntimeError(f"Lock on '{handle.scope}' is not held by this handle")
        del self._holders[handle.scope]
        handle.released = True
        self._scope_lock(handle.scope).release()

    def is_locked(self, scope: str) -> bool:
        return self._scope_lock(scope).locked()


class SqliteRecordStore(RecordStore):
    """
    SQLite implementation of RecordStore.

    Attributes are stored as a JSON document per record. A lock is a write
    transaction (BEGIN IMMEDIATE) on this store's connection, so it excludes
    other processes and other store instances on the same file. SQLite has
    no finer granularity: every scope shares the database-wide lock.

    Writes made while a lock is held join its transaction and become
    visible to others when the lock is released.
    """

    BUSY_TIMEOUT_MS = 5000

    def __init__(self, path: Path | str):
        self.path = Path(path).expanduser()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(
            str(self.path),
            isolation_level=None,  # explicit transactions only
            check_same_thread=False,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn_guard = threading.Lock()
        self._held: Optional[LockHandle] = None
        self._conn.execute(f"PRAGMA busy_timeout = {self.BUSY_TIMEOUT_MS}")
        self._conn.execute(
            "CREATE TABLE IF NOT EXISTS records ("
            " entity_type TEXT NOT NULL,"
            " id TEXT NOT NULL,"
            " data TEXT NOT NULL,"
            " PRIMARY KEY (entity_type, id))"
        )

    def load(self, entity_type: str, id: str) -> Optional[dict[str, Any]]:
        row = self._conn.execute(
            "SELECT data FROM records WHERE entity_type = ? AND id = ?",
            (entity_type, id),
        ).fetchone()
        return json.loads(row["data"]) if row else None

    def persist(self, entity_type: str, id: str, attributes: dict[str, Any]) -> None:
        self._conn.execute(
            "INSERT OR REPLACE INTO records (entity_type, id, data) VALUES (?, ?, ?)",
            (entity_type, id, json.dumps(attributes)),
        )

    def delete(self, entity_type: str, id: str) -> None:
        self._conn.execute(
            "DELETE FROM records WHERE entity_type = ? AND id = ?",
            (entity_type, id),
        )

    def find(
        self,
        entity_type: str,
        conditions: list[Condition],
        fields: Optional[list[str]] = None,
        limit: Optional[int] = None,
    ) -> list[dict[str, Any]]:
        where_sql, params = build_where_sql(conditions)
        sql = f"SELECT data FROM records WHERE entity_type = ? AND {where_sql} ORDER BY rowid"
        all_params: list[Any] = [entity_type, *params]
        if limit is not None:
            sql += " LIMIT ?"
            all_params.append(int(limit))
        rows = self._conn.execute(sql, all_params).fetchall()
        return [_project(json.loads(row["data"]), fields) for row in rows]

    def lock(self, scope: str, timeout: float) -> LockHandle:
        if timeout <= 0:
            acquired = self._conn_guard.acquire(blocking=False)
        else:
            acquired = self._conn_guard.acquire(timeout=timeout)
        if not acquired:
            raise LockTimeout(scope, timeout)

        try:
            self._conn.execute(f"PRAGMA busy_timeout = {max(int(timeout * 1000), 0)}")
            self._conn.execute("BEGIN IMMEDIATE")
        except sqlite3.OperationalError as e:
            self._conn_guard.release()
            if "locked" in str(e) or "busy" in str(e):
                raise LockTimeout(scope, timeout) from e
            raise
        finally:
            self._conn.execute(f"PRAGMA busy_timeout = {self.BUSY_TIMEOUT_MS}")

        self._held = LockHandle(scope=scope)
        return self._held

    def unlock(self, handle: LockHandle) -> None:
        if handle.released:
            return
        if self._held is None or self._held.token != handle.token:
            raise RuntimeError(f"Lock on '{handle.scope}' is not held by this handle")
        try:
            self._conn.execute("COMMIT")
        except sqlite3.Error:
            # Leave no open transaction behind for the next lock()
            if self._conn.in_transaction:
                self._conn.execute("ROLLBACK")
            raise
        finally:
            self._held = None
            handle.released = True
            self._conn_guard.release()

    def is_locked(self, scope: str) -> bool:
        if self._held is not None:
            return True
        # Another connection holding a write transaction makes ours fail fast
        try:
            self._conn.execute("PRAGMA busy_timeout = 0")
            self._conn.execute("BEGIN IMMEDIATE")
            self._conn.execute("ROLLBACK")
            return False
        except sqlite3.OperationalError:
            return True
        finally:
            self._conn.execute(f"PRAGMA busy_timeout = {self.BUSY_TIMEOUT_MS}")

    def close(self) -> None:
        if self._held is not None:
            self.unlock(self._held)
        self._conn.close()
