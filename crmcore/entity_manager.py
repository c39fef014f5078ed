"""
EntityManager - entry point for record persistence.

Holds the record store, the credential store and the configuration, and
maps entity types to Repository classes. Repositories are created lazily
and cached, so each entity type has one repository (and one table lock
guard) per manager.

Usage:
    em = EntityManager(InMemoryRecordStore(), InMemoryCredentialStore())
    user = em.get_new_entity("User")
    user.set({"userName": "alice"})
    em.save_entity(user)

    # Or from configuration
    em = EntityManager.create_default(load_config())
"""

import logging
from typing import Any, Optional

from crmcore.config import CrmConfig
from crmcore.credentials import CredentialStore, FileCredentialStore, InMemoryCredentialStore
from crmcore.errors import NotFoundError
from crmcore.orm.repository import Repository
from crmcore.orm.storage import InMemoryRecordStore, RecordStore, SqliteRecordStore
from crmcore.record import Record
from crmcore.utils import retry_with_backoff


class EntityManager:
    """
    Registry of repositories over one record store.

    Args:
        store: Record store
        credential_store: Secret key store used by the User repository
        config: Runtime configuration (lock timeout and friends)
        logger: Diagnostic sink handed to every repository
    """

    def __init__(
        self,
        store: RecordStore,
        credential_store: Optional[CredentialStore] = None,
        config: Optional[CrmConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.store = store
        self.credential_store = credential_store if credential_store is not None else InMemoryCredentialStore()
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self._repository_classes: dict[str, type[Repository]] = {}
        self._repositories: dict[str, Repository] = {}

    def register_repository(self, entity_type: str, repository_class: type[Repository]) -> None:
        """Register (or replace) the repository class for an entity type."""
        self._repository_classes[entity_type] = repository_class
        self._repositories.pop(entity_type, None)

    def has_repository(self, entity_type: str) -> bool:
        return entity_type in self._repository_classes

    def list_entity_types(self) -> list[str]:
        return sorted(self._repository_classes)

    def get_repository(self, entity_type: str) -> Repository:
        """
        Get the repository for an entity type.

        Raises:
            NotFoundError: If no repository is registered for entity_type
        """
        if entity_type not in self._repositories:
            repository_class = self._repository_classes.get(entity_type)
            if repository_class is None:
                raise NotFoundError(
                    f"No repository registered for entity type: {entity_type}. "
                    f"Registered: {self.list_entity_types()}"
                )
            self._repositories[entity_type] = repository_class(self, logger=self.logger)
        return self._repositories[entity_type]

    def get_entity(self, entity_type: str, id: str) -> Optional[Record]:
        return self.get_repository(entity_type).get(id)

    def get_new_entity(self, entity_type: str) -> Record:
        return self.get_repository(entity_type).get_new()

    def save_entity(self, record: Record, options: Optional[dict[str, Any]] = None) -> Record:
        return self.get_repository(record.entity_type).save(record, options)

    def remove_entity(self, record: Record, options: Optional[dict[str, Any]] = None) -> None:
        self.get_repository(record.entity_type).remove(record, options)

    def save_entity_with_retry(
        self,
        record: Record,
        options: Optional[dict[str, Any]] = None,
        max_attempts: int = 3,
        backoff_seconds: float = 0.5,
    ) -> Record:
        """
        Save, retrying transient failures (lock timeouts) with backoff.

        Permanent errors (validation, conflicts) are raised on the first attempt.
        """
        return retry_with_backoff(
            lambda: self.save_entity(record, options),
            max_attempts=max_attempts,
            backoff_seconds=backoff_seconds,
            logger=self.logger,
        )

    def close(self) -> None:
        self.store.close()

    @classmethod
    def create_default(
        cls,
        config: Optional[CrmConfig] = None,
        logger: Optional[logging.Logger] = None,
    ) -> "EntityManager":
        """
        Build an EntityManager from configuration with the built-in repositories.

        With no config, everything is in memory.
        """
        from crmcore.repositories import DEFAULT_REPOSITORIES

        if config is None:
            store: RecordStore = InMemoryRecordStore()
            credential_store: CredentialStore = InMemoryCredentialStore()
        else:
            if config.store == "sqlite":
                store = SqliteRecordStore(config.sqlite_file)
            else:
                store = InMemoryRecordStore()
            credential_store = FileCredentialStore(config.secrets_file)

        manager = cls(store, credential_store, config=config, logger=logger)
        for entity_type, repository_class in DEFAULT_REPOSITORIES.items():
            manager.register_repository(entity_type, repository_class)
        return manager
