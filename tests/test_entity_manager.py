"""Tests for EntityManager wiring."""

import pytest

from crmcore.config import CrmConfig
from crmcore.credentials import FileCredentialStore, InMemoryCredentialStore
from crmcore.entity_manager import EntityManager
from crmcore.errors import NotFoundError
from crmcore.orm.storage import InMemoryRecordStore, SqliteRecordStore
from crmcore.repositories import UserRepository


class TestRepositories:

    def test_unknown_entity_type(self, em):
        with pytest.raises(NotFoundError, match="No repository registered for entity type: Account"):
            em.get_repository("Account")

    def test_repository_cached(self, em):
        assert em.get_repository("User") is em.get_repository("User")
        assert isinstance(em.get_repository("User"), UserRepository)

    def test_list_entity_types(self, em):
        assert em.list_entity_types() == ["User", "UserData"]

    def test_register_replaces_cached_repository(self, em):
        first = em.get_repository("User")
        em.register_repository("User", UserRepository)
        assert em.get_repository("User") is not first

    def test_repositories_share_logger(self, em):
        assert em.get_repository("User").logger is em.logger


class TestCreateDefault:

    def test_in_memory_without_config(self):
        manager = EntityManager.create_default()
        assert isinstance(manager.store, InMemoryRecordStore)
        assert isinstance(manager.credential_store, InMemoryCredentialStore)
        assert manager.has_repository("User")

    def test_sqlite_from_config(self, tmp_path):
        config = CrmConfig(
            sqlite_path=str(tmp_path / "crm.db"),
            secrets_path=str(tmp_path / "secrets.yaml"),
            lock_timeout_s=1.0,
        )
        manager = EntityManager.create_default(config)
        try:
            assert isinstance(manager.store, SqliteRecordStore)
            assert isinstance(manager.credential_store, FileCredentialStore)
            assert manager.get_repository("User").lock_timeout == 1.0

            user = manager.get_new_entity("User")
            user.set("userName", "alice")
            manager.save_entity(user)
            assert manager.get_entity("User", user.id).get("userName") == "alice"
        finally:
            manager.close()
