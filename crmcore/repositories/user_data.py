"""UserData repository: one side record per user."""

from typing import Optional

from crmcore.entities import UserData
from crmcore.orm.repository import Repository


class UserDataRepository(Repository):

    entity_type = "UserData"
    entity_class = UserData

    def get_by_user_id(self, user_id: str) -> Optional[UserData]:
        return self.select().where({"userId": user_id}).find_one()
