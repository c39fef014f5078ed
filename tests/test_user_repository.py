"""Tests for the User repository.

Tests cover:
- userName uniqueness under the table lock (ConflictError userNameExists)
- ValidationError for an empty userName before any lock is taken
- API user secret keys kept in the credential store
- Type-dependent attribute resets
- Removal side effects (UserData, secrets)
"""

import pytest

from crmcore.entities import User, UserData
from crmcore.errors import ConflictError, LockTimeout, ValidationError
from crmcore.orm.repository import SaveState
from crmcore.orm.storage import SqliteRecordStore


def new_user(em, **attributes):
    user = em.get_new_entity("User")
    user.set(attributes)
    return user


class TestUniqueness:
    """Tests for the userName uniqueness guard."""

    def test_insert_alice(self, em, store):
        """Insert with a free userName succeeds and the record is no longer new."""
        user = new_user(em, userName="alice")

        em.save_entity(user)

        assert not user.is_new()
        assert user.id
        assert store.load("User", user.id)["userName"] == "alice"
        assert em.get_repository("User").last_save_states == [
            SaveState.VALIDATING,
            SaveState.LOCKING,
            SaveState.PERSISTING,
            SaveState.POST_PROCESSING,
            SaveState.DONE,
        ]
        assert not store.is_locked("User")

    def test_second_alice_conflicts(self, em):
        em.save_entity(new_user(em, userName="alice"))

        with pytest.raises(ConflictError) as exc_info:
            em.save_entity(new_user(em, userName="alice"))

        assert exc_info.value.reason == "userNameExists"
        assert exc_info.value.payload == {"reason": "userNameExists"}
        assert em.get_repository("User").last_save_states[-1] == SaveState.ABORTED

    def test_conflict_releases_lock(self, em, store):
        """Another actor can lock the table right after a conflict."""
        em.save_entity(new_user(em, userName="alice"))
        with pytest.raises(ConflictError):
            em.save_entity(new_user(em, userName="alice"))

        handle = store.lock("User", timeout=0)
        store.unlock(handle)

    def test_conflict_persists_nothing(self, em, store):
        em.save_entity(new_user(em, userName="alice"))
        duplicate = new_user(em, userName="alice")
        with pytest.raises(ConflictError):
            em.save_entity(duplicate)
        assert duplicate.is_new()
        assert len(store.find("User", [])) == 1

    @pytest.mark.parametrize("user_name", [None, ""])
    def test_empty_user_name_fails_before_lock(self, em, store, user_name):
        user = new_user(em, userName=user_name)

        with pytest.raises(ValidationError, match="Username can't be empty."):
            em.save_entity(user)

        assert store.lock_calls == []
        assert SaveState.LOCKING not in em.get_repository("User").last_save_states

    def test_missing_user_name_fails_before_lock(self, em, store):
        with pytest.raises(ValidationError):
            em.save_entity(new_user(em, type="regular"))
        assert store.lock_calls == []

    def test_update_without_rename_skips_uniqueness_check(self, em, store):
        user = em.save_entity(new_user(em, userName="alice"))
        store.lock_calls.clear()

        user.set("firstName", "Alice")
        em.save_entity(user)

        assert store.lock_calls == []

    def test_rename_to_taken_name(self, em):
        em.save_entity(new_user(em, userName="alice"))
        bob = em.save_entity(new_user(em, userName="bob"))

        bob.set("userName", "alice")
        with pytest.raises(ConflictError):
            em.save_entity(bob)

    def test_rename_to_free_name(self, em, store):
        user = em.save_entity(new_user(em, userName="alice"))
        user.set("userName", "alicia")
        em.save_entity(user)
        assert store.load("User", user.id)["userName"] == "alicia"

    def test_rename_to_empty(self, em):
        user = em.save_entity(new_user(em, userName="alice"))
        user.set("userName", "")
        with pytest.raises(ValidationError):
            em.save_entity(user)

    def test_lock_held_by_other_actor(self, em, store):
        handle = store.lock("User", timeout=0)
        try:
            with pytest.raises(LockTimeout):
                em.save_entity(new_user(em, userName="alice"))
        finally:
            store.unlock(handle)
        assert store.find("User", []) == []

    def test_two_actors_share_store(self, store, credential_store, fast_config, make_em):
        first = make_em(store, credential_store, fast_config)
        second = make_em(store, credential_store, fast_config)

        first.save_entity(new_user(first, userName="alice"))
        with pytest.raises(ConflictError):
            second.save_entity(new_user(second, userName="alice"))


class TestSqliteUniqueness:
    """Uniqueness and lock release against the sqlite store."""

    def test_conflict_and_release(self, tmp_path, credential_store, fast_config, make_em):
        store = SqliteRecordStore(tmp_path / "crm.db")
        other = SqliteRecordStore(tmp_path / "crm.db")
        em = make_em(store, credential_store, fast_config)
        try:
            em.save_entity(new_user(em, userName="alice"))
            with pytest.raises(ConflictError):
                em.save_entity(new_user(em, userName="alice"))

            other.unlock(other.lock("User", timeout=0.1))
            assert len(other.find("User", [])) == 1
        finally:
            store.close()
            other.close()


class TestRetry:
    """Tests for save_entity_with_retry."""

    def test_lock_timeout_retried(self, em, store):
        handle = store.lock("User", timeout=0)
        try:
            with pytest.raises(LockTimeout):
                em.save_entity_with_retry(new_user(em, userName="alice"), backoff_seconds=0)
        finally:
            store.unlock(handle)
        assert store.lock_calls == ["User"] * 4  # 1 held + 3 attempts

    def test_conflict_not_retried(self, em, store):
        em.save_entity(new_user(em, userName="alice"))
        store.lock_calls.clear()
        with pytest.raises(ConflictError):
            em.save_entity_with_retry(new_user(em, userName="alice"), backoff_seconds=0)
        assert store.lock_calls == ["User"]


class TestApiUsers:
    """Tests for API users and secret keys."""

    def _api_user(self, em, **extra):
        attributes = {
            "userName": "integration",
            "type": "api",
            "authMethod": "Hmac",
            "apiKey": "key-1",
            "secretKey": "s3cret",
        }
        attributes.update(extra)
        return em.save_entity(new_user(em, **attributes))

    def test_secret_stored_outside_records(self, em, store, credential_store):
        user = self._api_user(em)
        assert credential_store.get_secret(user.id) == "s3cret"
        assert "secretKey" not in store.load("User", user.id)

    def test_get_fills_secret(self, em):
        user = self._api_user(em)
        loaded = em.get_entity("User", user.id)
        assert loaded.get("secretKey") == "s3cret"
        assert not loaded.is_attribute_changed("secretKey")

    def test_last_name_mirrors_user_name(self, em):
        user = self._api_user(em)
        assert user.get("lastName") == "integration"

    def test_hmac_to_basic_removes_secret(self, em, credential_store):
        """Switching an API user from Hmac to Basic removes its stored secret."""
        user = self._api_user(em)
        loaded = em.get_entity("User", user.id)

        loaded.set("authMethod", "Basic")
        em.save_entity(loaded)

        assert credential_store.get_secret(user.id) is None
        assert not loaded.has("secretKey")

    def test_non_hmac_secret_dropped(self, em, credential_store):
        user = self._api_user(em, authMethod="ApiKey")
        assert not user.has("secretKey")
        assert credential_store.get_secret(user.id) is None

    def test_new_api_key_rotates_secret(self, em, credential_store):
        user = self._api_user(em)
        loaded = em.get_entity("User", user.id)
        loaded.set({"apiKey": "key-2", "secretKey": "n3w"})
        em.save_entity(loaded)
        assert credential_store.get_secret(user.id) == "n3w"

    def test_unchanged_key_does_not_rewrite(self, em, credential_store):
        user = self._api_user(em)
        credential_store.store_secret(user.id, "rotated-elsewhere")
        loaded = em.get_entity("User", user.id)
        loaded.set("firstName", "Bot")
        em.save_entity(loaded)
        assert credential_store.get_secret(user.id) == "rotated-elsewhere"

    def test_remove_hmac_user_removes_secret(self, em, credential_store):
        user = self._api_user(em)
        em.remove_entity(user)
        assert credential_store.get_secret(user.id) is None


class TestTypeRules:
    """Tests for type-dependent normalization."""

    def test_empty_type_defaults_to_regular(self, em):
        user = em.save_entity(new_user(em, userName="alice", type=""))
        assert user.get("type") == "regular"

    def test_type_change_clears_auth_method(self, em):
        user = em.save_entity(new_user(em, userName="alice", type="regular", authMethod="Basic"))
        assert user.get("authMethod") is None

    def test_portal_user_loses_team_links(self, em):
        user = em.save_entity(new_user(
            em,
            userName="client",
            type="portal",
            teamsIds=["t1"],
            defaultTeamId="t1",
            portalsIds=["p1"],
        ))
        assert user.get("teamsIds") == []
        assert user.get("rolesNames") == {}
        assert user.get("defaultTeamId") is None
        assert user.get("portalsIds") == ["p1"]

    def test_regular_user_loses_portal_links(self, em):
        user = em.save_entity(new_user(em, userName="alice", type="regular", portalsIds=["p1"], teamsIds=["t1"]))
        assert user.get("portalsIds") == []
        assert user.get("portalsNames") == {}
        assert user.get("teamsIds") == ["t1"]

    def test_reset_values_not_shared(self, em):
        first = em.save_entity(new_user(em, userName="a", type="regular"))
        first.get("portalsIds").append("x")
        second = em.save_entity(new_user(em, userName="b", type="regular"))
        assert second.get("portalsIds") == []
        assert User.PORTAL_ATTRIBUTES["portalsIds"] == []


class TestRemove:

    def test_remove_deletes_user_data(self, em, store):
        user = em.save_entity(new_user(em, userName="alice"))
        data = em.get_new_entity("UserData")
        data.set("userId", user.id)
        em.save_entity(data)
        assert isinstance(em.get_repository("UserData").get_by_user_id(user.id), UserData)

        em.remove_entity(user)

        assert store.load("User", user.id) is None
        assert store.find("UserData", []) == []

    def test_remove_without_user_data(self, em, store):
        user = em.save_entity(new_user(em, userName="alice"))
        em.remove_entity(user)
        assert store.find("User", []) == []


class TestQueries:

    def test_check_belongs_to_any_of_teams(self, em):
        user = em.save_entity(new_user(em, userName="alice", type="regular", teamsIds=["t1", "t2"]))
        repo = em.get_repository("User")
        assert repo.check_belongs_to_any_of_teams(user.id, ["t2", "t9"])
        assert not repo.check_belongs_to_any_of_teams(user.id, ["t9"])
        assert not repo.check_belongs_to_any_of_teams(user.id, [])
        assert not repo.check_belongs_to_any_of_teams("missing", ["t1"])

    def test_name_select_adds_user_name(self, em):
        params = {"select": ["id", "name"], "where": {}}
        em.get_repository("User").handle_select_params(params)
        assert params["select"] == ["id", "name", "userName"]

    def test_select_name_returns_user_name(self, em):
        em.save_entity(new_user(em, userName="alice"))
        row = em.get_repository("User").select(["name"]).find_one()
        assert row.get("userName") == "alice"
