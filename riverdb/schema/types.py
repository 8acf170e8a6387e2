"""
Core type definitions for the RiverDB schema system.

This module defines the declarations applications use to describe models:
- PropertyDef: A typed accessor over one attribute
- RelationshipDef: hasOne / hasMany / belongsTo, optionally polymorphic or "through"
- ModelDef: A model name, its collection, its properties and relationships

Invariants:
    - Model and collection names are non-empty
    - Property and relationship names are unique within a model and never collide
    - Declarations are immutable once constructed
    - A polymorphic relationship stores ``<name>Type`` alongside ``<name>Id``

Example:
    >>> Owner = ModelDef(
    ...     name="owner",
    ...     collection="owners",
    ...     properties=(prop("name"),),
    ...     relationships=(has_many("pets", model="pet", inverse="owner"),),
    ... )
    >>> Pet = ModelDef(
    ...     name="pet",
    ...     collection="pets",
    ...     relationships=(belongs_to("owner"),),
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, FrozenSet, Optional, Union

from ..errors import InvalidModelDefinition

if TYPE_CHECKING:
    from ..record import Record

# Names a relationship or property may not take because Record uses them.
RESERVED_NAMES = frozenset(
    {
        "id",
        "client_id",
        "identity",
        "attributes",
        "model",
        "model_name",
        "collection_name",
        "get",
        "set",
        "unset",
        "save",
        "delete",
        "reload",
        "related",
        "listen",
        "stop_listening",
        "matches",
        "to_dict",
        "is_persisted",
        "snapshot_was_updated",
        "snapshot_was_deleted",
    }
)


class RelationKind(Enum):
    """Supported relationship kinds."""

    HAS_ONE = "hasOne"
    HAS_MANY = "hasMany"
    BELONGS_TO = "belongsTo"

    @classmethod
    def from_str(cls, value: str) -> RelationKind:
        """Convert string representation to RelationKind.

        Raises:
            ValueError: If value is not a valid kind
        """
        for kind in cls:
            if kind.value == value:
                return kind
        valid = [k.value for k in cls]
        raise ValueError(f"Invalid relationship kind '{value}'. Valid kinds: {valid}")


@dataclass(frozen=True)
class StaticTarget:
    """Relationship target fixed in the schema.

    Attributes:
        model_name: Name of the target model, or of its collection when
            by_collection is set
        by_collection: ``model_name`` is the implicit hasMany default and names
            a collection first, a model second
    """

    model_name: str
    by_collection: bool = False


@dataclass(frozen=True)
class PolymorphicTarget:
    """Relationship target chosen per record by the ``<name>Type`` attribute.

    Attributes:
        allowed: Model names the discriminator may take; None accepts any
            registered model
    """

    allowed: Optional[FrozenSet[str]] = None

    def permits(self, model_name: Any) -> bool:
        """Whether ``model_name`` is an acceptable discriminator value."""
        if not isinstance(model_name, str) or not model_name:
            return False
        return self.allowed is None or model_name in self.allowed


Target = Union[StaticTarget, PolymorphicTarget]


@dataclass(frozen=True)
class PropertyDef:
    """Declared property of a model.

    Attributes:
        name: Attribute name
        getter: Custom getter ``(record) -> value``; default reads the attribute
        setter: Custom setter ``(record, value) -> None``; default writes the attribute
        read_only: Silently ignore set attempts
        default: Value returned when the attribute is absent
        description: Human-readable description
    """

    name: str
    getter: Optional[Callable[[Record], Any]] = None
    setter: Optional[Callable[[Record, Any], None]] = None
    read_only: bool = False
    default: Any = None
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise InvalidModelDefinition("Property name cannot be empty")
        if self.read_only and self.setter is not None:
            raise InvalidModelDefinition(
                f"Property '{self.name}' is read-only and cannot have a setter"
            )

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {"name": self.name}
        if self.getter is not None:
            result["custom_getter"] = True
        if self.setter is not None:
            result["custom_setter"] = True
        if self.read_only:
            result["read_only"] = True
        if self.default is not None:
            result["default"] = self.default
        return result


@dataclass(frozen=True)
class RelationshipDef:
    """Declared relationship of a model.

    Attributes:
        kind: hasOne, hasMany or belongsTo
        name: Accessor name on the declaring model
        target: Static target model, or polymorphic marker (belongsTo only)
        inverse: Name the other side uses for this model; the foreign key on
            the target is ``<inverse>Id``. Defaults to the declaring model's
            name.
        where: Optional scoping predicate over candidate records
        through: Name of another relationship of the declaring model to
            resolve first
        source: Relationship resolved on each intermediate record of a
            "through" association; defaults to ``name``

    Invariants:
        - Only belongsTo may be polymorphic
        - A "through" relationship is hasOne or hasMany; its ``where`` filters
          the final records and its ``inverse`` is unused
    """

    kind: RelationKind
    name: str
    target: Target
    inverse: Optional[str] = None
    where: Optional[Callable[[Record], bool]] = None
    through: Optional[str] = None
    source: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.name:
            raise InvalidModelDefinition("Relationship name cannot be empty")
        if self.polymorphic and self.kind != RelationKind.BELONGS_TO:
            raise InvalidModelDefinition(
                f"Relationship '{self.name}': only belongsTo can be polymorphic"
            )
        if self.through is not None:
            if self.kind == RelationKind.BELONGS_TO:
                raise InvalidModelDefinition(
                    f"Relationship '{self.name}': belongsTo cannot go through another relationship"
                )
            if self.through == self.name:
                raise InvalidModelDefinition(
                    f"Relationship '{self.name}' cannot go through itself"
                )

    @property
    def polymorphic(self) -> bool:
        return isinstance(self.target, PolymorphicTarget)

    @property
    def id_attribute(self) -> str:
        """Foreign key attribute read off the declaring record (belongsTo)."""
        return f"{self.name}Id"

    @property
    def type_attribute(self) -> str:
        """Discriminator attribute read off the declaring record (polymorphic belongsTo)."""
        return f"{self.name}Type"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {"kind": self.kind.value, "name": self.name}
        if isinstance(self.target, StaticTarget):
            result["model"] = self.target.model_name
            if self.target.by_collection:
                result["by_collection"] = True
        else:
            result["polymorphic"] = True
            if self.target.allowed is not None:
                result["allowed"] = sorted(self.target.allowed)
        if self.inverse:
            result["inverse"] = self.inverse
        if self.where is not None:
            result["scoped"] = True
        if self.through:
            result["through"] = self.through
            result["source"] = self.source or self.name
        return result


def prop(
    name: str,
    *,
    getter: Optional[Callable[[Record], Any]] = None,
    setter: Optional[Callable[[Record, Any], None]] = None,
    read_only: bool = False,
    default: Any = None,
    description: str = "",
) -> PropertyDef:
    """Convenience function to create a PropertyDef.

    Example:
        >>> name = prop("name")
        >>> created = prop("createdAt", read_only=True)
    """
    return PropertyDef(
        name=name,
        getter=getter,
        setter=setter,
        read_only=read_only,
        default=default,
        description=description,
    )


def has_one(
    name: str,
    *,
    model: Optional[str] = None,
    inverse: Optional[str] = None,
    where: Optional[Callable[[Record], bool]] = None,
    through: Optional[str] = None,
    source: Optional[str] = None,
) -> RelationshipDef:
    """Declare a hasOne relationship.

    The target model defaults to ``name``.

    Example:
        >>> has_one("layoutPosition", inverse="target")
    """
    return RelationshipDef(
        kind=RelationKind.HAS_ONE,
        name=name,
        target=StaticTarget(model or name),
        inverse=inverse,
        where=where,
        through=through,
        source=source,
    )


def has_many(
    name: str,
    *,
    model: Optional[str] = None,
    inverse: Optional[str] = None,
    where: Optional[Callable[[Record], bool]] = None,
    through: Optional[str] = None,
    source: Optional[str] = None,
) -> RelationshipDef:
    """Declare a hasMany relationship.

    Without ``model`` the target is the model whose collection is named
    ``name`` (``has_many("floors")`` on a store targets the model stored in
    ``floors``), falling back to a model named ``name``.

    Example:
        >>> has_many("pets", model="pet", inverse="owner")
        >>> has_many("fixtures", through="areas")
    """
    return RelationshipDef(
        kind=RelationKind.HAS_MANY,
        name=name,
        target=StaticTarget(model or name, by_collection=model is None),
        inverse=inverse,
        where=where,
        through=through,
        source=source,
    )


def belongs_to(
    name: str,
    *,
    model: Optional[str] = None,
    polymorphic: bool = False,
    types: Optional[tuple[str, ...]] = None,
) -> RelationshipDef:
    """Declare a belongsTo relationship.

    Args:
        name: Accessor name; the foreign key is ``<name>Id``
        model: Target model, defaults to ``name``
        polymorphic: Resolve the target from ``<name>Type`` instead
        types: Closed set of model names a polymorphic discriminator may take

    Example:
        >>> belongs_to("owner")
        >>> belongs_to("commentable", polymorphic=True, types=("post", "photo"))
    """
    if types is not None and not polymorphic:
        raise InvalidModelDefinition(
            f"Relationship '{name}': types only apply to polymorphic relationships"
        )
    if polymorphic:
        if model is not None:
            raise InvalidModelDefinition(
                f"Relationship '{name}': a polymorphic relationship has no fixed model"
            )
        target: Target = PolymorphicTarget(frozenset(types) if types is not None else None)
    else:
        target = StaticTarget(model or name)
    return RelationshipDef(kind=RelationKind.BELONGS_TO, name=name, target=target)


@dataclass(frozen=True)
class ModelDef:
    """Definition of a model.

    Attributes:
        name: Unique model name (also the polymorphic discriminator value)
        collection: Unique collection name, the storage key of its records
        properties: Declared property accessors
        relationships: Declared relationships
        description: Human-readable description

    Invariants:
        - name and collection are non-empty
        - property and relationship names are unique and do not collide
        - no declared name shadows the Record API

    Example:
        >>> Comment = ModelDef(
        ...     name="comment",
        ...     collection="comments",
        ...     relationships=(belongs_to("commentable", polymorphic=True),),
        ... )
    """

    name: str
    collection: str
    properties: tuple[PropertyDef, ...] = dataclass_field(default_factory=tuple)
    relationships: tuple[RelationshipDef, ...] = dataclass_field(default_factory=tuple)
    description: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            raise InvalidModelDefinition("Model name cannot be empty")
        if not self.collection:
            raise InvalidModelDefinition(
                f"Model '{self.name}' needs a collection name", model_name=self.name
            )

        property_names = [p.name for p in self.properties]
        if len(property_names) != len(set(property_names)):
            raise InvalidModelDefinition(
                f"Duplicate property name in model '{self.name}'", model_name=self.name
            )

        relation_names = [r.name for r in self.relationships]
        if len(relation_names) != len(set(relation_names)):
            raise InvalidModelDefinition(
                f"Duplicate relationship name in model '{self.name}'", model_name=self.name
            )

        clash = set(property_names) & set(relation_names)
        if clash:
            raise InvalidModelDefinition(
                f"Model '{self.name}' declares {sorted(clash)} as both property and relationship",
                model_name=self.name,
            )

        reserved = (set(property_names) | set(relation_names)) & RESERVED_NAMES
        if reserved:
            raise InvalidModelDefinition(
                f"Model '{self.name}' uses reserved names {sorted(reserved)}",
                model_name=self.name,
            )

        for relation in self.relationships:
            if relation.through is not None and relation.through not in relation_names:
                raise InvalidModelDefinition(
                    f"Relationship '{relation.name}' goes through unknown relationship "
                    f"'{relation.through}'",
                    model_name=self.name,
                )

    def get_property(self, name: str) -> PropertyDef | None:
        for p in self.properties:
            if p.name == name:
                return p
        return None

    def get_relationship(self, name: str) -> RelationshipDef | None:
        for r in self.relationships:
            if r.name == name:
                return r
        return None

    def declared_names(self) -> list[str]:
        """All property and relationship names, in declaration order."""
        return [p.name for p in self.properties] + [r.name for r in self.relationships]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation for serialization."""
        result: dict[str, Any] = {
            "name": self.name,
            "collection": self.collection,
            "properties": [p.to_dict() for p in self.properties],
            "relationships": [r.to_dict() for r in self.relationships],
        }
        if self.description:
            result["description"] = self.description
        return result
