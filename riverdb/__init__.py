"""
RiverDB - an in-process object-relationship mapper over a key-value store.

This package lets applications declare models and the relationships between
them, and resolves those relationships on demand against any string-keyed
store:
- Schema declarations (ModelDef, prop, has_one, has_many, belongs_to)
- Database: registry, storage and collections for one application
- Records with client ids before a durable id exists
- Change notification for collections and individual records

Example:
    >>> from riverdb import Database, ModelDef, belongs_to, has_many
    >>>
    >>> db = Database()
    >>> db.define(
    ...     ModelDef("owner", "owners", relationships=(has_many("pets", inverse="owner"),)),
    ...     ModelDef("pet", "pets", relationships=(belongs_to("owner"),)),
    ... )
    >>> owner = db.model("owner").create({"id": 7})
    >>> pet = db.model("pet").create({"ownerId": 7})
    >>> owner.pets() == [pet]
    True

Invariants:
    - Relationship accessors re-query storage on every call
    - Each collection is one JSON object under one storage key
    - Listeners are notified only after a write has committed
"""

__version__ = "1.0.0"

from .collection import Collection
from .config import Settings, setup_logging
from .database import Database
from .errors import (
    DuplicateRegistrationError,
    InvalidModelDefinition,
    RecordNotFoundError,
    RegistryFrozenError,
    RiverDbError,
    StorageCorruptError,
    StorageError,
    StorageWriteError,
    UnknownModelError,
    UnknownRelationshipError,
)
from .events import ChangeEvent, CollectionListener, EventKind, RecordListener
from .identity import ClientId, DurableId, Identity, generate_client_id, parse_identity
from .model import Model
from .record import Record
from .schema import (
    ModelDef,
    PolymorphicTarget,
    PropertyDef,
    RelationKind,
    RelationshipDef,
    SchemaRegistry,
    StaticTarget,
    belongs_to,
    has_many,
    has_one,
    prop,
)
from .storage import InMemoryStorage, SqliteStorage, StorageAdapter

__all__ = [
    # Version
    "__version__",
    # Schema
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
    "SchemaRegistry",
    # Runtime
    "Database",
    "Model",
    "Record",
    "Collection",
    # Identity
    "ClientId",
    "DurableId",
    "Identity",
    "generate_client_id",
    "parse_identity",
    # Events
    "ChangeEvent",
    "EventKind",
    "CollectionListener",
    "RecordListener",
    # Storage
    "StorageAdapter",
    "InMemoryStorage",
    "SqliteStorage",
    # Configuration
    "Settings",
    "setup_logging",
    # Errors
    "RiverDbError",
    "InvalidModelDefinition",
    "UnknownModelError",
    "UnknownRelationshipError",
    "StorageError",
    "StorageCorruptError",
    "StorageWriteError",
    "RecordNotFoundError",
    "RegistryFrozenError",
    "DuplicateRegistrationError",
]
