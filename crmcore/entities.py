"""Entity record types."""

from crmcore.record import Record


class User(Record):
    """
    A user account.

    The type attribute is a discriminator: portal users carry portal
    attributes only, every other type carries team attributes only.
    """

    entity_type = "User"

    TYPE_REGULAR = "regular"
    TYPE_ADMIN = "admin"
    TYPE_PORTAL = "portal"
    TYPE_API = "api"
    TYPE_SYSTEM = "system"

    AUTH_METHOD_HMAC = "Hmac"
    AUTH_METHOD_BASIC = "Basic"
    AUTH_METHOD_API_KEY = "ApiKey"

    # attribute -> reset value applied when the record is not of that shape
    PORTAL_ATTRIBUTES = {
        "portalRolesIds": [],
        "portalRolesNames": {},
        "portalsIds": [],
        "portalsNames": {},
    }
    TEAM_ATTRIBUTES = {
        "rolesIds": [],
        "rolesNames": {},
        "teamsIds": [],
        "teamsNames": {},
        "defaultTeamId": None,
        "defaultTeamName": None,
    }

    def is_api(self) -> bool:
        return self.get("type") == self.TYPE_API

    def is_portal(self) -> bool:
        return self.get("type") == self.TYPE_PORTAL

    def is_admin(self) -> bool:
        return self.get("type") == self.TYPE_ADMIN

    def is_system(self) -> bool:
        return self.get("type") == self.TYPE_SYSTEM

    def is_regular(self) -> bool:
        return self.get("type") == self.TYPE_REGULAR


class UserData(Record):
    """Per-user side record, one per user, keyed by userId."""

    entity_type = "UserData"
