import logging

import pytest

from crmcore.config import CrmConfig
from crmcore.credentials import InMemoryCredentialStore
from crmcore.entity_manager import EntityManager
from crmcore.formula import Evaluator
from crmcore.orm.storage import InMemoryRecordStore
from crmcore.repositories import DEFAULT_REPOSITORIES


class CountingStore(InMemoryRecordStore):
    """In-memory store that records every lock attempt."""

    def __init__(self):
        super().__init__()
        self.lock_calls = []

    def lock(self, scope, timeout):
        self.lock_calls.append(scope)
        return super().lock(scope, timeout)


@pytest.fixture
def store():
    return CountingStore()


@pytest.fixture
def credential_store():
    return InMemoryCredentialStore()


@pytest.fixture
def fast_config():
    """Config with a short lock wait so contention tests finish quickly."""
    return CrmConfig(store="memory", lock_timeout_s=0.05)


def _build_entity_manager(store, credential_store, config=None):
    manager = EntityManager(store, credential_store, config=config)
    for entity_type, repository_class in DEFAULT_REPOSITORIES.items():
        manager.register_repository(entity_type, repository_class)
    return manager


@pytest.fixture
def make_em():
    """Factory for extra actors sharing a store."""
    return _build_entity_manager


@pytest.fixture
def em(store, credential_store, fast_config):
    return _build_entity_manager(store, credential_store, fast_config)


@pytest.fixture
def evaluator():
    return Evaluator()


@pytest.fixture(autouse=True)
def reset_crmcore_logger():
    # CLI tests attach handlers bound to CliRunner streams
    yield
    crm_logger = logging.getLogger("crmcore")
    crm_logger.handlers = []
    crm_logger.setLevel(logging.NOTSET)
