"""
crmcore - CRM record core

Records with dirty tracking, a repository save pipeline with lifecycle hooks
and uniqueness locking, and the Formula expression language.
"""

__version__ = "0.1.0"


__all__ = ["CrmConfig", "load_config", "get_crmcore_home", "EntityManager"]

from .config import CrmConfig, load_config, get_crmcore_home
from .entity_manager import EntityManager
