"""Storage adapters for record collections."""

from stashbase.infrastructure.persistence.base import StorageAdapter
from stashbase.infrastructure.persistence.database import DatabaseManager
from stashbase.infrastructure.persistence.mongo_adapter import MongoStorageAdapter
from stashbase.infrastructure.persistence.sqlite_adapter import SQLiteStorageAdapter

__all__ = [
    "DatabaseManager",
    "MongoStorageAdapter",
    "SQLiteStorageAdapter",
    "StorageAdapter",
]
