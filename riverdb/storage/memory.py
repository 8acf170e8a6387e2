"""
In-memory storage adapter.

This module provides a dict-backed adapter for:
- Unit tests
- Short-lived processes that do not need durability
- Local development without a database file

Invariants:
    - All data is lost on process exit
    - Thread-safe for concurrent access

How to change safely:
    - Keep the interface compatible with StorageAdapter
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, Iterator, Optional

logger = logging.getLogger(__name__)


class InMemoryStorage:
    """Dict-backed implementation of StorageAdapter.

    Attributes:
        fail_writes: When True, set_item raises OSError (testing helper)

    Example:
        >>> storage = InMemoryStorage()
        >>> storage.set_item("pets", '{"rdbClientId1": {"name": "Rex"}}')
        >>> storage.get_item("pets")
        '{"rdbClientId1": {"name": "Rex"}}'
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        """Initialize storage.

        Args:
            initial: Optional key/value pairs to start with
        """
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.Lock()
        self.fail_writes = False
        self.write_count = 0

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"value must be str, got {type(value).__name__}")
        with self._lock:
            if self.fail_writes:
                raise OSError(f"Simulated write failure for key '{key}'")
            self._data[key] = value
            self.write_count += 1

    def remove_item(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> Iterator[str]:
        with self._lock:
            keys = list(self._data)
        yield from keys

    # =========================================================================
    # Testing helpers
    # =========================================================================

    def raw(self) -> Dict[str, str]:
        """Copy of everything stored."""
        with self._lock:
            return dict(self._data)

    def clear(self) -> None:
        """Drop all keys."""
        with self._lock:
            self._data.clear()
        logger.debug("InMemoryStorage cleared")
