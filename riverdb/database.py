"""
The RiverDB database: registry, storage and collections in one object.

A Database owns everything that would otherwise be ambient global state:
- The SchemaRegistry models are registered in
- The storage adapter collections persist to
- One Collection per registered model
- The finalized Model for every model that has been used

Lifecycle:
    1. define() every ModelDef
    2. Use db.model(name); the model is finalized on first use
       (or finalize_all() to finalize everything and freeze the registry)
    3. Create, query and save records

Invariants:
    - A model is finalized at most once
    - Finalization validates every relationship target and fails with
      InvalidModelDefinition, it is never retried implicitly
    - Two Database objects never share collections or listeners
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Union

from .collection import Collection
from .config import Settings
from .errors import InvalidModelDefinition, UnknownModelError
from .model import Model, Test
from .record import Record
from .resolver import RelationshipResolver
from .schema.registry import SchemaRegistry
from .schema.types import ModelDef
from .storage import StorageAdapter, create_storage

logger = logging.getLogger(__name__)


class Database:
    """Entry point for declaring models and working with records.

    Example:
        >>> db = Database(InMemoryStorage())
        >>> db.define(Owner)
        >>> db.define(Pet)
        >>> ada = db.model("owner").create({"id": 7, "name": "Ada"})
        >>> db.model("pet").create({"name": "Rex", "ownerId": 7})
        >>> [pet.get("name") for pet in ada.pets()]
        ['Rex']
    """

    def __init__(
        self,
        storage: Optional[StorageAdapter] = None,
        settings: Optional[Settings] = None,
        registry: Optional[SchemaRegistry] = None,
    ) -> None:
        """Initialize the database.

        Args:
            storage: Storage adapter; defaults to the one selected by settings
            settings: Configuration; defaults to Settings() from the environment
            registry: Schema registry; defaults to a new empty registry
        """
        self.settings = settings or Settings()
        self.storage = storage if storage is not None else create_storage(self.settings)
        self.registry = registry if registry is not None else SchemaRegistry()
        self._resolver = RelationshipResolver(self)
        self._models: Dict[str, Model] = {}
        self._collections: Dict[str, Collection] = {}
        self._lock = threading.RLock()

    def define(self, *definitions: ModelDef) -> None:
        """Register model definitions.

        Raises:
            DuplicateRegistrationError: If a model or collection name is taken
            RegistryFrozenError: If the registry is frozen
        """
        for definition in definitions:
            self.registry.register(definition)

    def finalize(self, model: Union[str, ModelDef]) -> Model:
        """Finalize a model, once.

        Builds the property accessor table and a resolver per relationship.
        Later calls return the same Model.

        Args:
            model: Model name, or a ModelDef (registered first if needed)

        Raises:
            UnknownModelError: If no such model is registered
            InvalidModelDefinition: If a relationship cannot be resolved
        """
        with self._lock:
            if isinstance(model, ModelDef):
                if self.registry.get(model.name) is None:
                    self.registry.register(model)
                elif self.registry.get(model.name) != model:
                    raise InvalidModelDefinition(
                        f"A different definition of model '{model.name}' is already registered",
                        model_name=model.name,
                    )
                name = model.name
            else:
                name = model

            finalized = self._models.get(name)
            if finalized is not None:
                return finalized

            definition = self.registry.get(name)
            if definition is None:
                raise UnknownModelError(name)

            resolvers = {
                relation.name: self._resolver.build(definition, relation)
                for relation in definition.relationships
            }
            finalized = Model(definition, self.collection(name), self.settings, resolvers)
            self._models[name] = finalized
            logger.debug(
                f"Finalized model {name}: {len(definition.properties)} properties, "
                f"{len(resolvers)} relationships"
            )
            return finalized

    def finalize_all(self) -> str:
        """Finalize every registered model and freeze the registry.

        Returns:
            Schema fingerprint
        """
        with self._lock:
            for definition in list(self.registry.models()):
                self.finalize(definition.name)
            if self.registry.frozen:
                return self.registry.fingerprint
            return self.registry.freeze()

    def is_finalized(self, model_name: str) -> bool:
        return model_name in self._models

    def model(self, name: str) -> Model:
        """The finalized model named ``name``, finalizing it if needed."""
        finalized = self._models.get(name)
        if finalized is not None:
            return finalized
        return self.finalize(name)

    def collection(self, model_name: str) -> Collection:
        """The collection of ``model_name``, created on first use."""
        with self._lock:
            collection = self._collections.get(model_name)
            if collection is None:
                definition = self.registry.get(model_name)
                if definition is None:
                    raise UnknownModelError(model_name)
                collection = Collection(definition.collection, definition.name, self.storage)
                self._collections[model_name] = collection
            return collection

    # =========================================================================
    # Convenience queries
    # =========================================================================

    def new(self, model_name: str, attributes: Optional[Dict[str, Any]] = None) -> Record:
        return self.model(model_name).new(attributes)

    def select(self, model_name: str, test: Test = None) -> Optional[Record]:
        return self.model(model_name).select(test)

    def where(self, model_name: str, test: Test = None) -> List[Record]:
        return self.model(model_name).where(test)
