"""
Relationship resolution for RiverDB.

For every declared relationship the resolver builds a closure
``(record) -> Record | list[Record] | None`` that scans the target collection
on each call. Nothing is cached: records are rehydrated from storage every
time, so results always reflect the latest committed writes.

Matching rules (hasOne / hasMany):
    1. The foreign key on candidates is ``<inverse>Id``, inverse defaulting to
       the declaring model's name.
    2. If the target declares ``<inverse>`` as a polymorphic belongsTo,
       candidates must also carry ``<inverse>Type == <declaring model>``.
    3. Unset foreign keys never match.
    4. Client ids are compared with the owner's client id, durable ids with
       the owner's ``id``.
    5. A scoping predicate, when declared, must hold.
    6. hasOne returns the first match in storage order, hasMany all matches.

belongsTo reads ``<name>Id`` (and ``<name>Type`` when polymorphic) off the
calling record and looks the target up by identity.

"through" relationships resolve the intermediate relationship, then the
source relationship on every intermediate record, and union the results
without duplicates.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, List, Optional

from .errors import InvalidModelDefinition
from .identity import parse_identity
from .schema.types import ModelDef, PolymorphicTarget, RelationKind, RelationshipDef

if TYPE_CHECKING:
    from .database import Database
    from .record import Record

logger = logging.getLogger(__name__)

Resolver = Callable[["Record"], Any]


def as_list(value: Any) -> List[Record]:
    """Normalize a relationship result to a list."""
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


class RelationshipResolver:
    """Builds resolver closures for the relationships of a model.

    Example:
        >>> resolver = RelationshipResolver(db)
        >>> pets = resolver.build(Owner, Owner.get_relationship("pets"))
        >>> pets(owner)
        [<Record pet ...>]
    """

    def __init__(self, database: Database) -> None:
        self._db = database

    def build(self, model: ModelDef, relation: RelationshipDef) -> Resolver:
        """Build the resolver for ``model.<relation>``.

        Raises:
            InvalidModelDefinition: If the relationship cannot be resolved
                against the registered models
        """
        if relation.through is not None:
            return self._build_through(model, relation)
        if relation.kind == RelationKind.BELONGS_TO:
            return self._build_belongs_to(model, relation)
        return self._build_has(model, relation)

    # =========================================================================
    # hasOne / hasMany
    # =========================================================================

    def _build_has(self, model: ModelDef, relation: RelationshipDef) -> Resolver:
        registry = self._db.registry
        target = registry.resolve_target(relation)
        if target is None:
            raise InvalidModelDefinition(
                f"Relationship '{model.name}.{relation.name}' references unknown model "
                f"'{relation.target.model_name}'",
                model_name=model.name,
            )

        inverse = relation.inverse or model.name
        foreign_key = f"{inverse}Id"
        type_key = f"{inverse}Type"
        inverse_relation = target.get_relationship(inverse)
        inverse_polymorphic = inverse_relation is not None and inverse_relation.polymorphic
        scope = relation.where
        prefix = self._db.settings.client_id_prefix
        target_name = target.name
        single = relation.kind == RelationKind.HAS_ONE

        logger.debug(
            f"Resolver {model.name}.{relation.name}: {relation.kind.value} {target_name} "
            f"via {foreign_key}{' (polymorphic inverse)' if inverse_polymorphic else ''}"
        )

        def resolve(owner: Record) -> Any:
            def matches(candidate: Record) -> bool:
                if inverse_polymorphic and candidate.get(type_key) != owner.model_name:
                    return False
                identity = parse_identity(candidate.get(foreign_key), prefix)
                if identity is None or not owner.matches(identity):
                    return False
                return scope is None or bool(scope(candidate))

            target_model = self._db.model(target_name)
            if single:
                return target_model.select(matches)
            return target_model.where(matches)

        return resolve

    # =========================================================================
    # belongsTo
    # =========================================================================

    def _build_belongs_to(self, model: ModelDef, relation: RelationshipDef) -> Resolver:
        registry = self._db.registry
        prefix = self._db.settings.client_id_prefix
        id_attribute = relation.id_attribute
        type_attribute = relation.type_attribute

        if isinstance(relation.target, PolymorphicTarget):
            allowed = relation.target
            for name in sorted(allowed.allowed or ()):
                if registry.resolve(name) is None:
                    raise InvalidModelDefinition(
                        f"Relationship '{model.name}.{relation.name}' allows unknown model '{name}'",
                        model_name=model.name,
                    )

            def resolve_polymorphic(record: Record) -> Optional[Record]:
                identity = parse_identity(record.get(id_attribute), prefix)
                if identity is None:
                    return None
                type_name = record.get(type_attribute)
                if not allowed.permits(type_name):
                    logger.debug(
                        f"{model.name}.{relation.name}: discriminator {type_name!r} not permitted"
                    )
                    return None
                if registry.resolve(type_name) is None:
                    logger.debug(f"{model.name}.{relation.name}: unknown model {type_name!r}")
                    return None
                return self._db.model(type_name).select(identity)

            return resolve_polymorphic

        target = registry.resolve_target(relation)
        if target is None:
            raise InvalidModelDefinition(
                f"Relationship '{model.name}.{relation.name}' references unknown model "
                f"'{relation.target.model_name}'",
                model_name=model.name,
            )
        target_name = target.name

        def resolve(record: Record) -> Optional[Record]:
            identity = parse_identity(record.get(id_attribute), prefix)
            if identity is None:
                return None
            return self._db.model(target_name).select(identity)

        return resolve

    # =========================================================================
    # through
    # =========================================================================

    def _build_through(self, model: ModelDef, relation: RelationshipDef) -> Resolver:
        registry = self._db.registry
        intermediate = model.get_relationship(relation.through)
        if intermediate is None:
            raise InvalidModelDefinition(
                f"Relationship '{model.name}.{relation.name}' goes through unknown "
                f"relationship '{relation.through}'",
                model_name=model.name,
            )
        source = relation.source or relation.name

        # A polymorphic intermediate can only be checked per record
        intermediate_target = registry.resolve_target(intermediate)
        if intermediate_target is not None and intermediate_target.get_relationship(source) is None:
            raise InvalidModelDefinition(
                f"Relationship '{model.name}.{relation.name}': model '{intermediate_target.name}' "
                f"has no relationship '{source}'",
                model_name=model.name,
            )

        scope = relation.where
        single = relation.kind == RelationKind.HAS_ONE
        through = relation.through

        def resolve(owner: Record) -> Any:
            results: List[Record] = []
            seen = set()
            for middle in as_list(owner.related(through)):
                for candidate in as_list(middle.related(source)):
                    key = (candidate.model_name, candidate.client_id)
                    if key in seen:
                        continue
                    if scope is not None and not scope(candidate):
                        continue
                    seen.add(key)
                    results.append(candidate)
                    if single:
                        return candidate
            return None if single else results

        return resolve
