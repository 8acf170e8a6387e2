"""
Schema module for RiverDB.

This module provides the declaration surface for models:
- Type definitions (ModelDef, PropertyDef, RelationshipDef)
- Schema registry for model lookup and polymorphic resolution

Invariants:
    - Model and collection names are unique within a registry
    - Declarations are immutable once constructed
    - All models must be registered before they are finalized
"""

from .registry import ModelResolver, SchemaRegistry
from .types import (
    ModelDef,
    PolymorphicTarget,
    PropertyDef,
    RelationKind,
    RelationshipDef,
    StaticTarget,
    belongs_to,
    has_many,
    has_one,
    prop,
)

__all__ = [
    # Types
    "ModelDef",
    "PropertyDef",
    "RelationshipDef",
    "RelationKind",
    "StaticTarget",
    "PolymorphicTarget",
    "prop",
    "has_one",
    "has_many",
    "belongs_to",
    # Registry
    "SchemaRegistry",
    "ModelResolver",
]
