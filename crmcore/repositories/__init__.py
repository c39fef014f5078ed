"""Repositories for the built-in entity types."""

from crmcore.repositories.user import UserRepository
from crmcore.repositories.user_data import UserDataRepository

DEFAULT_REPOSITORIES = {
    "User": UserRepository,
    "UserData": UserDataRepository,
}

__all__ = ["DEFAULT_REPOSITORIES", "UserRepository", "UserDataRepository"]
