"""
Change notification for RiverDB collections.

Every Collection owns a ChangeBus with two listener sets:
- Collection listeners: receive one ChangeEvent per committed write
- Record watchers: records observing one client id; they reload and forward
  the change to their own RecordListeners

Invariants:
    - Events are delivered synchronously, after the write has committed
    - A write that fails to persist emits nothing
    - Listener sets are identity-keyed: no duplicates, delivery order unspecified
    - clearAll emits one CLEARED event and no per-record events

Event names:
    <model>WasAdded, <model>WasUpdated, <model>WasDeleted, <collection>WereCleared
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Dict, List, Optional, Protocol

if TYPE_CHECKING:
    from .record import Record

logger = logging.getLogger(__name__)


class EventKind(Enum):
    """Kinds of collection change."""

    ADDED = "WasAdded"
    UPDATED = "WasUpdated"
    DELETED = "WasDeleted"
    CLEARED = "WereCleared"


@dataclass(frozen=True)
class ChangeEvent:
    """A committed change to a collection.

    Attributes:
        kind: What happened
        model_name: Model stored in the collection
        collection_name: Collection that changed
        record: The record written or deleted (None for CLEARED)
    """

    kind: EventKind
    model_name: str
    collection_name: str
    record: Optional[Record] = None

    @property
    def name(self) -> str:
        """Taxonomy name, e.g. ``ownerWasAdded`` or ``ownersWereCleared``."""
        if self.kind == EventKind.CLEARED:
            return f"{self.collection_name}{self.kind.value}"
        return f"{self.model_name}{self.kind.value}"


class CollectionListener:
    """Receives collection-level changes.

    Subclasses override only the callbacks they care about; the others are
    no-ops.
    """

    def record_was_added(self, event: ChangeEvent) -> None:
        pass

    def record_was_updated(self, event: ChangeEvent) -> None:
        pass

    def record_was_deleted(self, event: ChangeEvent) -> None:
        pass

    def collection_was_cleared(self, event: ChangeEvent) -> None:
        pass


class RecordListener:
    """Receives changes to one record, via Record.listen()."""

    def record_was_updated(self, record: Record) -> None:
        pass

    def record_was_deleted(self, record: Record) -> None:
        pass


class SnapshotWatcher(Protocol):
    """Something observing the stored snapshot of one client id."""

    def snapshot_was_updated(self) -> None:
        ...

    def snapshot_was_deleted(self) -> None:
        ...


_DISPATCH: Dict[EventKind, Callable[[CollectionListener, ChangeEvent], None]] = {
    EventKind.ADDED: lambda listener, event: listener.record_was_added(event),
    EventKind.UPDATED: lambda listener, event: listener.record_was_updated(event),
    EventKind.DELETED: lambda listener, event: listener.record_was_deleted(event),
    EventKind.CLEARED: lambda listener, event: listener.collection_was_cleared(event),
}


class ChangeBus:
    """Listener sets of one collection.

    Example:
        >>> bus = ChangeBus("owners")
        >>> bus.listen(my_listener)
        >>> bus.publish(ChangeEvent(EventKind.ADDED, "owner", "owners", record))
    """

    def __init__(self, collection_name: str) -> None:
        self.collection_name = collection_name
        self._listeners: Dict[int, CollectionListener] = {}
        self._watchers: Dict[str, Dict[int, SnapshotWatcher]] = {}
        self._lock = threading.Lock()

    # =========================================================================
    # Collection listeners
    # =========================================================================

    def listen(self, listener: CollectionListener) -> None:
        with self._lock:
            self._listeners[id(listener)] = listener

    def stop_listening(self, listener: CollectionListener) -> None:
        with self._lock:
            self._listeners.pop(id(listener), None)

    def listeners(self) -> List[CollectionListener]:
        with self._lock:
            return list(self._listeners.values())

    # =========================================================================
    # Record watchers
    # =========================================================================

    def watch(self, client_id: str, watcher: SnapshotWatcher) -> None:
        """Start delivering changes of ``client_id`` to ``watcher``."""
        with self._lock:
            self._watchers.setdefault(client_id, {})[id(watcher)] = watcher
        logger.debug(f"Watching {self.collection_name}/{client_id}")

    def unwatch(self, client_id: str, watcher: SnapshotWatcher) -> None:
        with self._lock:
            watchers = self._watchers.get(client_id)
            if watchers is None:
                return
            watchers.pop(id(watcher), None)
            if not watchers:
                del self._watchers[client_id]
        logger.debug(f"Stopped watching {self.collection_name}/{client_id}")

    def is_watched(self, client_id: str) -> bool:
        with self._lock:
            return client_id in self._watchers

    def watchers(self, client_id: str) -> List[SnapshotWatcher]:
        with self._lock:
            return list(self._watchers.get(client_id, {}).values())

    # =========================================================================
    # Delivery
    # =========================================================================

    def publish(self, event: ChangeEvent, client_id: Optional[str] = None) -> None:
        """Deliver a committed change.

        Args:
            event: The change
            client_id: Client id of the affected record, for record watchers
        """
        listeners = self.listeners()
        logger.debug(f"Dispatching {event.name} to {len(listeners)} listener(s)")
        dispatch = _DISPATCH[event.kind]
        for listener in listeners:
            dispatch(listener, event)

        if client_id is None or event.kind == EventKind.CLEARED:
            return

        for watcher in self.watchers(client_id):
            if event.kind == EventKind.DELETED:
                watcher.snapshot_was_deleted()
            else:
                watcher.snapshot_was_updated()
