"""
Records: the unit applications manipulate.

A Record is a mutable bag of attributes with two identities, a client id
generated at construction and an optional durable ``id`` attribute. Records
are not singletons: every query materializes new instances, so two records
for the same stored snapshot are equal but not identical.

Declared properties read and write through ``record.<name>``; declared
relationships are called as ``record.<name>()`` or ``record.related(name)``.
Both dispatch through the model's accessor tables.

Invariants:
    - Attributes are deep-copied on construction, on save and on reload
    - The client id never changes for the lifetime of the instance
    - Relationship calls always re-query storage
"""

from __future__ import annotations

import copy
import functools
import logging
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional, Union

from .errors import RecordNotFoundError, UnknownRelationshipError
from .events import RecordListener
from .identity import ClientId, DurableId, Identity, generate_client_id

if TYPE_CHECKING:
    from .model import Model

logger = logging.getLogger(__name__)

_MISSING = object()


class Record:
    """One record of a model.

    Example:
        >>> owner = db.model("owner").new({"id": 7, "name": "Ada"})
        >>> owner.save()
        >>> owner.pets()
        [<Record pet rdbClientId... id=None>]
    """

    def __init__(
        self,
        model: Model,
        attributes: Optional[Mapping[str, Any]] = None,
        client_id: Optional[str] = None,
    ) -> None:
        self._model = model
        self._attributes: Dict[str, Any] = copy.deepcopy(dict(attributes or {}))
        if client_id is None:
            client_id = generate_client_id(model.name, model.settings.client_id_prefix).value
        self._client_id = client_id
        self._listeners: Dict[int, RecordListener] = {}

    # =========================================================================
    # Identity
    # =========================================================================

    @property
    def model(self) -> Model:
        return self._model

    @property
    def model_name(self) -> str:
        return self._model.name

    @property
    def collection_name(self) -> str:
        return self._model.collection_name

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def id(self) -> Any:
        """Durable id, or None until one is assigned."""
        return self._attributes.get("id")

    @property
    def identity(self) -> Identity:
        """DurableId when an id is assigned, the ClientId otherwise."""
        if self.id:
            return DurableId(self.id)
        return ClientId(self._client_id)

    def matches(self, identity: Identity) -> bool:
        """Whether ``identity`` refers to this record.

        Client ids compare with the client id, durable ids with ``id``.
        """
        if isinstance(identity, ClientId):
            return identity.value == self._client_id
        current = self.id
        return current is not None and identity.value == current

    @property
    def is_persisted(self) -> bool:
        return self._client_id in self._model.collection

    # =========================================================================
    # Attributes
    # =========================================================================

    @property
    def attributes(self) -> Dict[str, Any]:
        """Copy of the attributes."""
        return copy.deepcopy(self._attributes)

    def get(self, attr: str, default: Any = None) -> Any:
        return self._attributes.get(attr, default)

    def set(self, attr: Union[str, Mapping[str, Any]], value: Any = _MISSING) -> Record:
        """Set one attribute, or several from a mapping.

        Example:
            >>> pet.set("name", "Rex").set({"ownerId": 7, "age": 3})
        """
        if isinstance(attr, Mapping):
            if value is not _MISSING:
                raise TypeError("set() takes a mapping or an attribute and a value, not both")
            for key, item in attr.items():
                self._attributes[key] = item
            return self

        if value is _MISSING:
            raise TypeError(f"set() missing value for attribute '{attr}'")
        self._attributes[attr] = value
        return self

    def unset(self, attr: str) -> Record:
        self._attributes.pop(attr, None)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "model": self.model_name,
            "clientId": self._client_id,
            "attributes": self.attributes,
        }

    # =========================================================================
    # Persistence
    # =========================================================================

    def save(self, merge: Optional[bool] = None) -> Record:
        """Persist this record to its collection.

        After a successful save the attributes are the stored snapshot as
        read back from storage, so they equal what a later query returns.

        Args:
            merge: Merge attributes over the stored snapshot instead of
                replacing it; None uses the configured save mode

        Raises:
            StorageWriteError: If the write fails; the record is unchanged
        """
        if merge is None:
            merge = self._model.settings.save_mode == "merge"
        self._attributes = self._model.collection.set_item(self, merge=merge)
        return self

    def delete(self) -> bool:
        """Remove this record from its collection.

        Returns:
            True if a stored snapshot was removed
        """
        return self._model.collection.clear_item(self)

    def reload(self) -> Record:
        """Replace the attributes with the stored snapshot.

        Raises:
            RecordNotFoundError: If nothing is stored for this client id
        """
        snapshot = self._model.collection.get_item(self._client_id)
        if snapshot is None:
            raise RecordNotFoundError(self.collection_name, self._client_id)
        self._attributes = snapshot
        return self

    # =========================================================================
    # Relationships and properties
    # =========================================================================

    def related(self, name: str) -> Any:
        """Resolve relationship ``name`` against current storage."""
        return self._model.resolve(self, name)

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails
        if name.startswith("_"):
            raise AttributeError(name)
        model = self._model
        if model.has_relation(name):
            return functools.partial(self.related, name)
        if model.has_property(name):
            return model.get_property(self, name)
        raise UnknownRelationshipError(name, model.name, model.definition.declared_names())

    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_") or hasattr(type(self), name):
            object.__setattr__(self, name, value)
            return
        model = self._model
        if model.has_property(name):
            model.set_property(self, name, value)
            return
        if model.has_relation(name):
            raise AttributeError(f"Relationship '{self.model_name}.{name}' cannot be assigned")
        raise UnknownRelationshipError(name, model.name, model.definition.declared_names())

    # =========================================================================
    # Listening
    # =========================================================================

    def listen(self, listener: RecordListener) -> None:
        """Notify ``listener`` whenever this record's stored snapshot changes."""
        self._listeners[id(listener)] = listener
        self._model.collection.bus.watch(self._client_id, self)

    def stop_listening(self, listener: RecordListener) -> None:
        """Stop notifying ``listener``; the last removal stops watching storage."""
        if self._listeners.pop(id(listener), None) is None:
            return
        if not self._listeners:
            self._model.collection.bus.unwatch(self._client_id, self)

    def snapshot_was_updated(self) -> None:
        self.reload()
        for listener in list(self._listeners.values()):
            listener.record_was_updated(self)

    def snapshot_was_deleted(self) -> None:
        for listener in list(self._listeners.values()):
            listener.record_was_deleted(self)

    # =========================================================================
    # Comparison
    # =========================================================================

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Record):
            return NotImplemented
        return (
            self.model_name == other.model_name
            and self._client_id == other._client_id
            and self._attributes == other._attributes
        )

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        return f"<Record {self.model_name} {self._client_id} id={self.id!r}>"
