"""
Base protocol for storage adapters.

RiverDB persists each collection as one JSON-encoded object under the
collection's name. The adapter only has to store strings by string key.

Invariants:
    - get_item returns None for a key that was never written
    - set_item either stores the whole value or raises
    - Adapters never interpret the values they hold

How to change safely:
    - Protocol changes require updating all implementations
    - Add new methods as optional, the engine only needs get_item/set_item
"""

from __future__ import annotations

from typing import Iterator, Optional, Protocol, runtime_checkable


@runtime_checkable
class StorageAdapter(Protocol):
    """String-keyed get/set store.

    Example:
        >>> storage = InMemoryStorage()
        >>> storage.set_item("owners", "{}")
        >>> storage.get_item("owners")
        '{}'
    """

    def get_item(self, key: str) -> Optional[str]:
        """Return the value stored under ``key``, or None if absent."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""
        ...


@runtime_checkable
class EnumerableStorage(StorageAdapter, Protocol):
    """Adapter that can also list and remove keys."""

    def remove_item(self, key: str) -> None:
        """Remove ``key`` if present."""
        ...

    def keys(self) -> Iterator[str]:
        """Iterate over stored keys."""
        ...
