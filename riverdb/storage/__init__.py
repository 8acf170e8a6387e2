"""
Storage adapters for RiverDB.

The engine needs nothing more than a string-keyed get/set store:
- StorageAdapter: the protocol every backend implements
- InMemoryStorage: dict-backed, for tests and ephemeral use
- SqliteStorage: single-file durable store
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import EnumerableStorage, StorageAdapter
from .memory import InMemoryStorage
from .sqlite import SqliteStorage

if TYPE_CHECKING:
    from ..config import Settings


def create_storage(settings: Settings) -> StorageAdapter:
    """Create the storage adapter selected by configuration.

    Args:
        settings: RiverDB settings

    Returns:
        Configured StorageAdapter
    """
    if settings.storage_backend == "sqlite":
        return SqliteStorage(settings.sqlite_path, wal_mode=settings.sqlite_wal_mode)
    return InMemoryStorage()


__all__ = [
    "StorageAdapter",
    "EnumerableStorage",
    "InMemoryStorage",
    "SqliteStorage",
    "create_storage",
]
