"""
Collections: one logical table per model.

A Collection owns one key of the storage adapter. Its value is a JSON object
mapping client id to attribute snapshot:

    {"rdbClientId8c1f...": {"id": 7, "name": "Ada"}, ...}

Invariants:
    - The cached mapping is loaded from storage on first access (read-through)
    - Every mutation is persisted before the cache changes (write-through)
    - A failed write leaves the cache exactly as it was
    - A missing storage entry is an empty mapping; a malformed one is an error
    - Stored snapshots never alias record attributes

Thread safety:
    load -> copy -> mutate -> write -> swap runs under a per-collection lock,
    so concurrent writers in one process cannot lose updates.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from .errors import StorageCorruptError, StorageError, StorageWriteError
from .events import ChangeBus, ChangeEvent, CollectionListener, EventKind
from .storage.base import StorageAdapter

if TYPE_CHECKING:
    from .record import Record

logger = logging.getLogger(__name__)

Snapshot = Dict[str, Any]


class Collection:
    """Persisted records of one model.

    Attributes:
        name: Collection name, also the storage key
        model_name: Model stored here, used in event names
        storage: Backing storage adapter
        bus: Listener sets for this collection

    Example:
        >>> owners = Collection("owners", "owner", InMemoryStorage())
        >>> owners.set_item(record)
        >>> owners.get_item(record.client_id)
        {'id': 7, 'name': 'Ada'}
    """

    def __init__(
        self,
        name: str,
        model_name: str,
        storage: StorageAdapter,
        bus: Optional[ChangeBus] = None,
    ) -> None:
        self.name = name
        self.model_name = model_name
        self.storage = storage
        self.bus = bus or ChangeBus(name)
        self._cache: Optional[Dict[str, Snapshot]] = None
        self._lock = threading.RLock()

    # =========================================================================
    # Reads
    # =========================================================================

    def _data(self) -> Dict[str, Snapshot]:
        """Cached mapping, loaded on first access. Callers must not mutate it."""
        with self._lock:
            if self._cache is None:
                self._cache = self._load()
            return self._cache

    def _load(self) -> Dict[str, Snapshot]:
        try:
            payload = self.storage.get_item(self.name)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read collection '{self.name}': {e}", key=self.name) from e

        if payload is None:
            logger.debug(f"Collection '{self.name}' has no stored data, starting empty")
            return {}

        try:
            data = json.loads(payload)
        except (TypeError, ValueError) as e:
            raise StorageCorruptError(
                f"Collection '{self.name}' is not valid JSON: {e}", key=self.name
            ) from e

        if not isinstance(data, dict):
            raise StorageCorruptError(
                f"Collection '{self.name}' must be a JSON object, got {type(data).__name__}",
                key=self.name,
            )
        for client_id, attributes in data.items():
            if not isinstance(attributes, dict):
                raise StorageCorruptError(
                    f"Collection '{self.name}' entry '{client_id}' must be an object, "
                    f"got {type(attributes).__name__}",
                    key=self.name,
                )

        logger.debug(f"Loaded {len(data)} record(s) from collection '{self.name}'")
        return data

    def get_all(self) -> Dict[str, Snapshot]:
        """All stored snapshots keyed by client id (a deep copy)."""
        return copy.deepcopy(self._data())

    def get_item(self, client_id: str) -> Optional[Snapshot]:
        """Stored snapshot for ``client_id`` (a deep copy), or None."""
        snapshot = self._data().get(client_id)
        return copy.deepcopy(snapshot) if snapshot is not None else None

    def items(self) -> List[Tuple[str, Snapshot]]:
        """(client id, snapshot) pairs in storage order.

        Snapshots are shared with the cache; Record deep-copies on construction.
        """
        with self._lock:
            return list(self._data().items())

    def client_ids(self) -> List[str]:
        with self._lock:
            return list(self._data())

    def count(self) -> int:
        return len(self._data())

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._data()

    def invalidate(self) -> None:
        """Drop the cache; the next read goes back to storage."""
        with self._lock:
            self._cache = None

    # =========================================================================
    # Writes
    # =========================================================================

    def _persist(self, data: Dict[str, Snapshot]) -> Dict[str, Snapshot]:
        """Write ``data`` through the adapter.

        Returns:
            The mapping as decoded from the payload written, which is what the
            cache must hold (tuples become lists, non-string keys become strings)
        """
        try:
            payload = json.dumps(data)
        except (TypeError, ValueError) as e:
            raise StorageWriteError(
                f"Collection '{self.name}' holds a value that is not JSON-serializable: {e}",
                key=self.name,
            ) from e

        try:
            self.storage.set_item(self.name, payload)
        except StorageWriteError:
            raise
        except Exception as e:
            raise StorageWriteError(
                f"Failed to write collection '{self.name}': {e}", key=self.name
            ) from e

        return json.loads(payload)

    def set_item(self, record: Record, merge: bool = False) -> Snapshot:
        """Store ``record``'s attributes under its client id.

        Args:
            record: Record to store
            merge: Merge the attributes over the stored snapshot instead of
                replacing it

        Returns:
            Copy of the snapshot now stored

        Raises:
            StorageWriteError: If persisting fails; nothing changes in that case
        """
        client_id = record.client_id
        with self._lock:
            data = self._data()
            did_exist = client_id in data

            snapshot = record.attributes
            if merge and did_exist:
                merged = copy.deepcopy(data[client_id])
                merged.update(snapshot)
                snapshot = merged

            updated = dict(data)
            updated[client_id] = snapshot
            self._cache = self._persist(updated)
            stored = self._cache[client_id]

        kind = EventKind.UPDATED if did_exist else EventKind.ADDED
        logger.debug(f"{'Updated' if did_exist else 'Added'} {self.name}/{client_id}")
        self.bus.publish(ChangeEvent(kind, self.model_name, self.name, record), client_id)
        return copy.deepcopy(stored)

    def clear_item(self, record: Record) -> bool:
        """Remove ``record``'s snapshot.

        Returns:
            True if a snapshot was removed, False if none was stored

        Raises:
            StorageWriteError: If persisting fails; nothing changes in that case
        """
        client_id = record.client_id
        with self._lock:
            data = self._data()
            if client_id not in data:
                return False

            updated = dict(data)
            del updated[client_id]
            self._cache = self._persist(updated)

        logger.debug(f"Deleted {self.name}/{client_id}")
        self.bus.publish(
            ChangeEvent(EventKind.DELETED, self.model_name, self.name, record), client_id
        )
        return True

    def clear_all(self) -> None:
        """Remove every snapshot, emitting a single CLEARED event.

        Raises:
            StorageWriteError: If persisting fails; nothing changes in that case
        """
        with self._lock:
            self._cache = self._persist({})

        logger.debug(f"Cleared collection '{self.name}'")
        self.bus.publish(ChangeEvent(EventKind.CLEARED, self.model_name, self.name))

    # =========================================================================
    # Listeners
    # =========================================================================

    def listen(self, listener: CollectionListener) -> None:
        self.bus.listen(listener)

    def stop_listening(self, listener: CollectionListener) -> None:
        self.bus.stop_listening(listener)
