"""Storage collaborators for worktracker.

Public API:
    StorageBackend -- Abstract storage contract
    StorageError -- Raised on any storage failure
    InMemoryStorage -- Dictionary-backed backend
    SQLiteStorage -- SQLite file backend
    LocalImageStore -- One image file per sample on local disk
"""

from worktracker.storage.base import StorageBackend, StorageError
from worktracker.storage.images import LocalImageStore
from worktracker.storage.memory import InMemoryStorage
from worktracker.storage.sqlite import SQLiteStorage

__all__ = [
    "InMemoryStorage",
    "LocalImageStore",
    "SQLiteStorage",
    "StorageBackend",
    "StorageError",
]
