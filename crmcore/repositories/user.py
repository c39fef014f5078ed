"""
User repository.

Save rules:
- type defaults to "regular"
- API users mirror userName into lastName and drop secretKey unless they
  authenticate with Hmac; other users lose authMethod when their type changes
- portal users never carry team/role links, other users never carry
  portal links
- userName is required and unique: the table is locked while probing for a
  duplicate, and a duplicate raises ConflictError(reason="userNameExists")

Secret keys are not stored in the records table. After a save they are
written to (or removed from) the credential store, depending on which
attributes changed.
"""

import copy
from typing import Any, Optional

from crmcore.entities import User
from crmcore.errors import ConflictError, ValidationError
from crmcore.orm.repository import Repository


class UserRepository(Repository):

    entity_type = "User"
    entity_class = User
    not_storable_attributes = frozenset({"secretKey"})

    @property
    def credential_store(self):
        return self.entity_manager.credential_store

    def get(self, id: str) -> Optional[User]:
        """Load a user; API users get their secretKey from the credential store."""
        user = super().get(id)
        if user is None or not user.is_api():
            return user
        secret = self.credential_store.get_secret(user.id)
        if secret is not None:
            user.set("secretKey", secret)
            user.set_as_fetched()
        return user

    def before_save(self, record: User, options: dict[str, Any]) -> None:
        if record.has("type") and not record.get("type"):
            record.set("type", User.TYPE_REGULAR)

        if record.is_api():
            if record.is_attribute_changed("userName"):
                record.set("lastName", record.get("userName"))
            if record.has("authMethod") and record.get("authMethod") != User.AUTH_METHOD_HMAC:
                record.clear("secretKey")
        else:
            if record.is_attribute_changed("type"):
                record.set("authMethod", None)

        super().before_save(record, options)

        if record.has("type") and not record.is_portal():
            record.set(copy.deepcopy(User.PORTAL_ATTRIBUTES))

        if record.has("type") and record.is_portal():
            record.set(copy.deepcopy(User.TEAM_ATTRIBUTES))

        if record.is_new():
            self._check_user_name_unique(record, exclude_id=None)
        elif record.is_attribute_changed("userName"):
            self._check_user_name_unique(record, exclude_id=record.id)

    def _check_user_name_unique(self, record: User, exclude_id: Optional[str]) -> None:
        user_name = record.get("userName")
        if not user_name:
            raise ValidationError("Username can't be empty.")

        self.lock_table()

        where: dict[str, Any] = {"userName": user_name}
        if exclude_id is not None:
            where["id!="] = exclude_id

        existing = self.select(["id"]).where(where).find_one()

        if existing:
            self.unlock_table()
            raise ConflictError("userNameExists")

    def after_save(self, record: User, options: dict[str, Any]) -> None:
        if self.is_table_locked():
            self.unlock_table()

        super().after_save(record, options)

        if not record.is_api():
            return

        if (
            record.get("apiKey") and record.get("secretKey") and
            (
                record.is_attribute_changed("apiKey") or
                record.is_attribute_changed("authMethod")
            )
        ):
            self.credential_store.store_secret(record.id, record.get("secretKey"))

        if (
            record.is_attribute_changed("authMethod") and
            record.get("authMethod") != User.AUTH_METHOD_HMAC
        ):
            self.credential_store.remove_secret(record.id)

    def after_remove(self, record: User, options: dict[str, Any]) -> None:
        super().after_remove(record, options)

        if record.is_api() and record.get("authMethod") == User.AUTH_METHOD_HMAC:
            self.credential_store.remove_secret(record.id)

        user_data = self.entity_manager.get_repository("UserData").get_by_user_id(record.id)
        if user_data:
            self.entity_manager.remove_entity(user_data)

    def check_belongs_to_any_of_teams(self, user_id: str, team_ids: list[str]) -> bool:
        if not team_ids:
            return False

        user = self.select(["teamsIds"]).where({"id": user_id}).find_one()
        if user is None:
            return False

        return bool(set(user.get("teamsIds") or []) & set(team_ids))

    def handle_select_params(self, params: dict[str, Any]) -> None:
        super().handle_select_params(params)

        if "select" in params and "name" in params["select"]:
            for attribute in ("userName",):
                if attribute not in params["select"]:
                    params["select"].append(attribute)
