"""
Schema Registry for RiverDB.

The SchemaRegistry is the authority for model definitions within one
Database. It provides:
- Registration of models
- Lookup by model name or collection name
- Resolution of relationship targets, including polymorphic ones
- Schema fingerprinting and a freeze mechanism

Invariants:
    - Model names and collection names are unique
    - Once frozen, no new models can be registered
    - The registry is an explicit object; there is no process-wide instance

How to change safely:
    - Register all models before calling freeze()
    - Check validate_all() before serving records
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from typing import Dict, Iterator, Optional, Protocol

from ..errors import DuplicateRegistrationError, RegistryFrozenError
from .types import ModelDef, PolymorphicTarget, RelationshipDef, StaticTarget

logger = logging.getLogger(__name__)


class ModelResolver(Protocol):
    """Resolves a model name to its definition."""

    def resolve(self, model_name: str) -> Optional[ModelDef]:
        ...


class SchemaRegistry:
    """Registry of model definitions.

    Thread-safety:
        - Registration is thread-safe (uses internal lock)
        - Lookups are lock-free
        - Freeze is atomic and irreversible

    Attributes:
        frozen: Whether the registry is frozen (immutable)
        fingerprint: SHA-256 hash of the schema (computed on freeze)

    Example:
        >>> registry = SchemaRegistry()
        >>> registry.register(Owner)
        >>> registry.register(Pet)
        >>> registry.freeze()
        'sha256:...'
    """

    def __init__(self) -> None:
        """Initialize an empty, mutable registry."""
        self._models: Dict[str, ModelDef] = {}
        self._models_by_collection: Dict[str, ModelDef] = {}
        self._frozen = False
        self._fingerprint: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        """Whether the registry is frozen."""
        return self._frozen

    @property
    def fingerprint(self) -> Optional[str]:
        """Schema fingerprint (available after freeze)."""
        return self._fingerprint

    def __contains__(self, model_name: object) -> bool:
        return model_name in self._models

    def __len__(self) -> int:
        return len(self._models)

    def register(self, model: ModelDef) -> None:
        """Register a model definition.

        Args:
            model: The model to register

        Raises:
            RegistryFrozenError: If registry is frozen
            DuplicateRegistrationError: If the model or collection name is taken
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError(
                    f"Cannot register model '{model.name}': registry is frozen"
                )

            if model.name in self._models:
                raise DuplicateRegistrationError(
                    f"Model name '{model.name}' already registered"
                )

            if model.collection in self._models_by_collection:
                existing = self._models_by_collection[model.collection]
                raise DuplicateRegistrationError(
                    f"Collection '{model.collection}' already registered by model '{existing.name}'"
                )

            self._models[model.name] = model
            self._models_by_collection[model.collection] = model
            logger.debug(f"Registered model: {model.name} (collection={model.collection})")

    def get(self, model_name: str) -> Optional[ModelDef]:
        """Get a model by name."""
        return self._models.get(model_name)

    def get_by_collection(self, collection_name: str) -> Optional[ModelDef]:
        """Get a model by the name of its collection."""
        return self._models_by_collection.get(collection_name)

    def resolve(self, model_name: str) -> Optional[ModelDef]:
        """ModelResolver implementation: lookup by model name."""
        return self._models.get(model_name)

    def resolve_target(self, relation: RelationshipDef) -> Optional[ModelDef]:
        """Resolve the static target of a relationship.

        An implicit hasMany target names a collection first and a model
        second; an explicit model name is only ever looked up as a model.

        Returns:
            Target ModelDef, or None if it is polymorphic or unknown
        """
        if not isinstance(relation.target, StaticTarget):
            return None
        name = relation.target.model_name
        if relation.target.by_collection:
            return self._models_by_collection.get(name) or self._models.get(name)
        return self._models.get(name)

    def models(self) -> Iterator[ModelDef]:
        """Iterate over all registered models."""
        yield from self._models.values()

    def freeze(self) -> str:
        """Freeze the registry and compute fingerprint.

        Returns:
            Schema fingerprint string

        Raises:
            RegistryFrozenError: If already frozen
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Registry is already frozen")

            self._fingerprint = self._compute_fingerprint()
            self._frozen = True
            logger.info(
                f"Schema registry frozen with {len(self._models)} models, "
                f"fingerprint={self._fingerprint}"
            )
            return self._fingerprint

    def _compute_fingerprint(self) -> str:
        """Compute SHA-256 fingerprint of the canonical schema JSON."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(',', ':'))
        hash_bytes = hashlib.sha256(canonical.encode('utf-8')).hexdigest()
        return f"sha256:{hash_bytes}"

    def to_dict(self) -> dict:
        """Convert registry to dictionary representation, sorted by model name."""
        return {
            "models": [self._models[name].to_dict() for name in sorted(self._models)],
        }

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    def validate_all(self) -> list[str]:
        """Validate all registered models for consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        for model in self._models.values():
            for relation in model.relationships:
                errors.extend(self.validate_relationship(model, relation))

        return errors

    def validate_relationship(self, model: ModelDef, relation: RelationshipDef) -> list[str]:
        """Validate one relationship of ``model`` against the registered models."""
        if relation.through is not None:
            # Checked on the source relationship of each intermediate model
            return []

        if isinstance(relation.target, PolymorphicTarget):
            if relation.target.allowed is None:
                return []
            return [
                f"Relationship '{model.name}.{relation.name}' allows unknown model '{name}'"
                for name in sorted(relation.target.allowed)
                if name not in self._models
            ]

        if self.resolve_target(relation) is None:
            return [
                f"Relationship '{model.name}.{relation.name}' references unknown model "
                f"'{relation.target.model_name}'"
            ]
        return []
