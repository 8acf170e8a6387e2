"""
Finalized models.

A Model is what a ModelDef becomes once a Database finalizes it: the
definition plus its collection, its property accessors and one resolver per
relationship. Models create records and answer ``select``/``where`` queries
by rehydrating fresh Records from the collection on every call.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

from .errors import UnknownRelationshipError
from .events import CollectionListener
from .identity import ClientId, DurableId
from .record import Record

if TYPE_CHECKING:
    from .collection import Collection
    from .config import Settings
    from .resolver import Resolver
    from .schema.types import ModelDef, PropertyDef

logger = logging.getLogger(__name__)

Test = Union[Callable[[Record], bool], ClientId, DurableId, int, str, None]


def _as_predicate(test: Test) -> Callable[[Record], bool]:
    """Turn a select/where argument into a predicate.

    Callables are used as is; identities match structurally; any other value
    matches a record whose ``id`` or client id equals it.
    """
    if test is None:
        return lambda record: True
    if isinstance(test, (ClientId, DurableId)):
        return lambda record: record.matches(test)
    if callable(test):
        return test
    return lambda record: record.id == test or record.client_id == test


class Model:
    """A finalized model bound to its collection.

    Attributes:
        definition: The ModelDef this model was built from
        collection: Collection holding its records
        settings: Settings of the owning database

    Example:
        >>> owners = db.model("owner")
        >>> ada = owners.create({"id": 7, "name": "Ada"})
        >>> owners.select(7).get("name")
        'Ada'
    """

    def __init__(
        self,
        definition: ModelDef,
        collection: Collection,
        settings: Settings,
        resolvers: Dict[str, Resolver],
    ) -> None:
        self.definition = definition
        self.collection = collection
        self.settings = settings
        self._resolvers = dict(resolvers)
        self._properties: Dict[str, PropertyDef] = {p.name: p for p in definition.properties}

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def collection_name(self) -> str:
        return self.collection.name

    def __repr__(self) -> str:
        return f"<Model {self.name} collection={self.collection_name}>"

    # =========================================================================
    # Records
    # =========================================================================

    def new(self, attributes: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Record:
        """Construct an unsaved record.

        Declared property defaults are filled in for missing attributes.
        """
        values: Dict[str, Any] = dict(attributes or {})
        values.update(kwargs)
        for name, definition in self._properties.items():
            if definition.default is not None and name not in values:
                values[name] = definition.default
        return Record(self, values)

    def create(self, attributes: Optional[Mapping[str, Any]] = None, **kwargs: Any) -> Record:
        """Construct and save a record."""
        record = self.new(attributes, **kwargs)
        record.save()
        return record

    def records(self) -> Iterator[Record]:
        """Fresh records for every stored snapshot, in storage order."""
        for client_id, snapshot in self.collection.items():
            yield Record(self, snapshot, client_id=client_id)

    def select(self, test: Test = None) -> Optional[Record]:
        """First record matching ``test``, or None.

        Args:
            test: Predicate over records, an Identity, or a raw id/client id
        """
        predicate = _as_predicate(test)
        for record in self.records():
            if predicate(record):
                return record
        return None

    def where(self, test: Test = None) -> List[Record]:
        """All records matching ``test``, in storage order."""
        predicate = _as_predicate(test)
        return [record for record in self.records() if predicate(record)]

    def all(self) -> List[Record]:
        return list(self.records())

    def count(self) -> int:
        return self.collection.count()

    def clear_all(self) -> None:
        self.collection.clear_all()

    def listen(self, listener: CollectionListener) -> None:
        self.collection.listen(listener)

    def stop_listening(self, listener: CollectionListener) -> None:
        self.collection.stop_listening(listener)

    # =========================================================================
    # Accessor dispatch
    # =========================================================================

    def has_relation(self, name: str) -> bool:
        return name in self._resolvers

    def has_property(self, name: str) -> bool:
        return name in self._properties

    def relation_names(self) -> List[str]:
        return list(self._resolvers)

    def resolve(self, record: Record, name: str) -> Any:
        """Resolve relationship ``name`` for ``record``."""
        resolver = self._resolvers.get(name)
        if resolver is None:
            raise UnknownRelationshipError(name, self.name, self.definition.declared_names())
        return resolver(record)

    def get_property(self, record: Record, name: str) -> Any:
        definition = self._properties[name]
        if definition.getter is not None:
            return definition.getter(record)
        return record.get(name, definition.default)

    def set_property(self, record: Record, name: str, value: Any) -> None:
        definition = self._properties[name]
        if definition.read_only:
            logger.debug(f"Ignoring write to read-only property {self.name}.{name}")
            return
        if definition.setter is not None:
            definition.setter(record, value)
            return
        record.set(name, value)
