"""
crmcore.orm - record persistence.

RecordStore (storage + locks) -> Repository (hook pipeline) -> Select (queries)
"""

from crmcore.orm.lock import LockHandle, TableLock
from crmcore.orm.query import Condition, Select, parse_where
from crmcore.orm.repository import Repository, SaveState
from crmcore.orm.storage import InMemoryRecordStore, RecordStore, SqliteRecordStore

__all__ = [
    "Condition",
    "InMemoryRecordStore",
    "LockHandle",
    "RecordStore",
    "Repository",
    "SaveState",
    "Select",
    "SqliteRecordStore",
    "TableLock",
    "parse_where",
]
