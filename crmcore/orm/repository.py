"""
Repository - save/remove pipeline with lifecycle hooks.

save() runs a small state machine:

    VALIDATING -> [LOCKING] -> PERSISTING -> POST_PROCESSING -> DONE
         \\            \\
          +------------+--> ABORTED

- VALIDATING: before_save normalizes and validates the record
- LOCKING: entered when before_save takes the table lock for a
  uniqueness check
- PERSISTING: the attribute map is written to the store
- POST_PROCESSING: after_save runs side effects that depend on which
  attributes changed in this save
- DONE: the record is no longer new and its values become the new
  fetched baseline

Errors raised by hooks propagate unchanged. Whatever happens, a table lock
still held when save() exits is released.
"""

import logging
import uuid
from enum import Enum
from typing import Any, Optional, TYPE_CHECKING

from crmcore.orm.lock import DEFAULT_LOCK_TIMEOUT, TableLock
from crmcore.orm.query import Select
from crmcore.record import Record

if TYPE_CHECKING:
    from crmcore.entity_manager import EntityManager
    from crmcore.orm.storage import RecordStore


class SaveState(str, Enum):
    """States of the save pipeline."""
    VALIDATING = "validating"
    LOCKING = "locking"
    PERSISTING = "persisting"
    POST_PROCESSING = "post_processing"
    DONE = "done"
    ABORTED = "aborted"


def generate_id() -> str:
    """New record id: 17 lowercase hex characters."""
    return uuid.uuid4().hex[:17]


class Repository:
    """
    Base repository for one entity type.

    Subclasses set entity_type/entity_class and override the hooks.

    Args:
        entity_manager: Owning EntityManager (store, config, collaborators)
        logger: Diagnostic sink; defaults to this module's logger
    """

    entity_type: str = ""
    entity_class: type[Record] = Record

    # Attributes kept on the record in memory but never written to the store
    not_storable_attributes: frozenset = frozenset()

    def __init__(self, entity_manager: "EntityManager", logger: Optional[logging.Logger] = None):
        self.entity_manager = entity_manager
        self.logger = logger or logging.getLogger(__name__)
        self._table_lock = TableLock(
            entity_manager.store,
            self.entity_type,
            timeout=self.lock_timeout,
        )
        self.last_save_states: list[SaveState] = []

    @property
    def store(self) -> "RecordStore":
        return self.entity_manager.store

    @property
    def lock_timeout(self) -> float:
        config = self.entity_manager.config
        if config is None:
            return DEFAULT_LOCK_TIMEOUT
        return config.lock_timeout_s

    # -------------------------------------------------------------------------
    # Reading
    # -------------------------------------------------------------------------

    def get(self, id: str) -> Optional[Record]:
        """Load a record by id, or None if it does not exist."""
        data = self.store.load(self.entity_type, id)
        if data is None:
            return None
        return self.entity_class.from_storage(data)

    def get_new(self) -> Record:
        return self.entity_class()

    def select(self, fields: Optional[list[str]] = None) -> Select:
        return Select(self, fields)

    def storable_attributes(self, record: Record) -> dict[str, Any]:
        data = record.to_dict()
        for name in self.not_storable_attributes:
            data.pop(name, None)
        return data

    def handle_select_params(self, params: dict[str, Any]) -> None:
        """Adjust select params ({"select", "where", "limit"}) in place before querying."""
        pass

    # -------------------------------------------------------------------------
    # Locking
    # -------------------------------------------------------------------------

    def lock_table(self) -> None:
        """
        Take the table lock for this entity type.

        Raises:
            LockTimeout: If the lock is not acquired within lock_timeout
        """
        self._set_state(SaveState.LOCKING)
        self._table_lock.acquire()

    def unlock_table(self) -> None:
        self._table_lock.release()

    def is_table_locked(self) -> bool:
        """True if this repository currently holds the table lock."""
        return self._table_lock.is_locked()

    # -------------------------------------------------------------------------
    # Save / remove pipeline
    # -------------------------------------------------------------------------

    def _set_state(self, state: SaveState) -> None:
        self.last_save_states.append(state)
        self.logger.debug("%s save state: %s", self.entity_type, state.value)

    def save(self, record: Record, options: Optional[dict[str, Any]] = None) -> Record:
        """
        Save a record through the hook pipeline.

        Raises:
            ValidationError, ConflictError: From before_save; nothing is persisted
            LockTimeout: If the table lock could not be acquired
        """
        options = options or {}
        self.last_save_states = []
        self._set_state(SaveState.VALIDATING)

        try:
            try:
                self.before_save(record, options)
            except Exception:
                self._set_state(SaveState.ABORTED)
                raise

            self._set_state(SaveState.PERSISTING)
            if record.is_new() and not record.id:
                record.id = generate_id()
            self.store.persist(self.entity_type, record.id, self.storable_attributes(record))

            self._set_state(SaveState.POST_PROCESSING)
            self.after_save(record, options)

            record.set_is_new(False)
            record.set_as_fetched()
            self._set_state(SaveState.DONE)
        finally:
            if self.is_table_locked():
                self.unlock_table()

        self.logger.info(
            "Saved %s %s",
            self.entity_type,
            record.id,
            extra={"entity_type": self.entity_type, "record_id": record.id},
        )
        return record

    def remove(self, record: Record, options: Optional[dict[str, Any]] = None) -> None:
        options = options or {}
        try:
            self.before_remove(record, options)
            self.store.delete(self.entity_type, record.id)
            self.after_remove(record, options)
        finally:
            if self.is_table_locked():
                self.unlock_table()

        self.logger.info(
            "Removed %s %s",
            self.entity_type,
            record.id,
            extra={"entity_type": self.entity_type, "record_id": record.id},
        )

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    def before_save(self, record: Record, options: dict[str, Any]) -> None:
        pass

    def after_save(self, record: Record, options: dict[str, Any]) -> None:
        pass

    def before_remove(self, record: Record, options: dict[str, Any]) -> None:
        pass

    def after_remove(self, record: Record, options: dict[str, Any]) -> None:
        pass
