"""
Unit tests for schema declarations and the schema registry.

Tests cover:
- Declaration helpers and their defaults
- ModelDef validation
- Registration, lookup, freezing and fingerprints
- Cross-model validation
"""

import json

import pytest

from riverdb.errors import (
    DuplicateRegistrationError,
    InvalidModelDefinition,
    RegistryFrozenError,
)
from riverdb.schema import (
    ModelDef,
    PolymorphicTarget,
    RelationKind,
    SchemaRegistry,
    StaticTarget,
    belongs_to,
    has_many,
    has_one,
    prop,
)


class TestDeclarations:
    """Tests for prop/has_one/has_many/belongs_to."""

    def test_has_one_defaults_target_to_name(self):
        relation = has_one("layoutPosition", inverse="target")

        assert relation.kind == RelationKind.HAS_ONE
        assert relation.target == StaticTarget("layoutPosition")
        assert relation.inverse == "target"

    def test_has_many_with_model(self):
        relation = has_many("pets", model="pet", inverse="owner")

        assert relation.kind == RelationKind.HAS_MANY
        assert relation.target == StaticTarget("pet")

    def test_has_many_default_names_collection(self):
        assert has_many("pets").target == StaticTarget("pets", by_collection=True)

    def test_belongs_to_keys(self):
        relation = belongs_to("owner")

        assert relation.id_attribute == "ownerId"
        assert relation.type_attribute == "ownerType"
        assert not relation.polymorphic

    def test_polymorphic_belongs_to(self):
        relation = belongs_to("commentable", polymorphic=True, types=("post", "photo"))

        assert relation.polymorphic
        assert relation.target == PolymorphicTarget(frozenset({"post", "photo"}))
        assert relation.target.permits("post")
        assert not relation.target.permits("owner")
        assert not relation.target.permits(None)

    def test_open_polymorphic_permits_any_name(self):
        target = belongs_to("target", polymorphic=True).target
        assert target.permits("anything")
        assert not target.permits("")

    def test_polymorphic_with_model_rejected(self):
        with pytest.raises(InvalidModelDefinition):
            belongs_to("target", model="floor", polymorphic=True)

    def test_types_without_polymorphic_rejected(self):
        with pytest.raises(InvalidModelDefinition):
            belongs_to("target", types=("floor",))

    def test_read_only_with_setter_rejected(self):
        with pytest.raises(InvalidModelDefinition):
            prop("name", read_only=True, setter=lambda record, value: None)

    def test_relation_kind_from_str(self):
        assert RelationKind.from_str("hasMany") == RelationKind.HAS_MANY
        with pytest.raises(ValueError, match="Invalid relationship kind"):
            RelationKind.from_str("manyToMany")


class TestModelDef:
    """Tests for ModelDef validation."""

    def test_requires_name(self):
        with pytest.raises(InvalidModelDefinition, match="name cannot be empty"):
            ModelDef(name="", collection="owners")

    def test_requires_collection(self):
        with pytest.raises(InvalidModelDefinition, match="collection"):
            ModelDef(name="owner", collection="")

    def test_duplicate_property(self):
        with pytest.raises(InvalidModelDefinition, match="Duplicate property"):
            ModelDef("owner", "owners", properties=(prop("name"), prop("name")))

    def test_duplicate_relationship(self):
        with pytest.raises(InvalidModelDefinition, match="Duplicate relationship"):
            ModelDef("owner", "owners", relationships=(has_many("pets"), has_many("pets")))

    def test_property_relationship_clash(self):
        with pytest.raises(InvalidModelDefinition, match="both property and relationship"):
            ModelDef("owner", "owners", properties=(prop("pets"),), relationships=(has_many("pets"),))

    def test_reserved_names(self):
        with pytest.raises(InvalidModelDefinition, match="reserved"):
            ModelDef("owner", "owners", properties=(prop("save"),))

    def test_through_must_name_declared_relationship(self):
        with pytest.raises(InvalidModelDefinition, match="unknown relationship"):
            ModelDef("store", "stores", relationships=(has_many("fixtures", through="floors"),))

    def test_through_itself_rejected(self):
        with pytest.raises(InvalidModelDefinition, match="itself"):
            has_many("fixtures", through="fixtures")

    def test_lookup_helpers(self):
        model = ModelDef(
            "owner",
            "owners",
            properties=(prop("name"),),
            relationships=(has_many("pets"),),
        )

        assert model.get_property("name").name == "name"
        assert model.get_property("missing") is None
        assert model.get_relationship("pets").kind == RelationKind.HAS_MANY
        assert model.declared_names() == ["name", "pets"]

    def test_to_dict(self):
        model = ModelDef(
            "comment",
            "comments",
            properties=(prop("body", read_only=True),),
            relationships=(belongs_to("commentable", polymorphic=True, types=("post",)),),
        )

        assert model.to_dict() == {
            "name": "comment",
            "collection": "comments",
            "properties": [{"name": "body", "read_only": True}],
            "relationships": [
                {
                    "kind": "belongsTo",
                    "name": "commentable",
                    "polymorphic": True,
                    "allowed": ["post"],
                }
            ],
        }


class TestSchemaRegistry:
    """Tests for SchemaRegistry."""

    def test_register_and_lookup(self):
        registry = SchemaRegistry()
        owner = ModelDef("owner", "owners")

        registry.register(owner)

        assert registry.get("owner") == owner
        assert registry.resolve("owner") == owner
        assert registry.get_by_collection("owners") == owner
        assert "owner" in registry
        assert len(registry) == 1

    def test_duplicate_name_raises(self):
        registry = SchemaRegistry()
        registry.register(ModelDef("owner", "owners"))

        with pytest.raises(DuplicateRegistrationError, match="'owner' already registered"):
            registry.register(ModelDef("owner", "people"))

    def test_duplicate_collection_raises(self):
        registry = SchemaRegistry()
        registry.register(ModelDef("owner", "owners"))

        with pytest.raises(DuplicateRegistrationError, match="Collection 'owners'"):
            registry.register(ModelDef("person", "owners"))

    def test_freeze_registry(self):
        registry = SchemaRegistry()
        registry.register(ModelDef("owner", "owners"))

        fingerprint = registry.freeze()

        assert registry.frozen is True
        assert fingerprint.startswith("sha256:")
        assert registry.fingerprint == fingerprint

    def test_register_after_freeze_raises(self):
        registry = SchemaRegistry()
        registry.freeze()

        with pytest.raises(RegistryFrozenError):
            registry.register(ModelDef("owner", "owners"))

    def test_double_freeze_raises(self):
        registry = SchemaRegistry()
        registry.freeze()

        with pytest.raises(RegistryFrozenError, match="already frozen"):
            registry.freeze()

    def test_fingerprint_deterministic(self):
        """Registration order does not change the fingerprint."""
        first = SchemaRegistry()
        first.register(ModelDef("owner", "owners"))
        first.register(ModelDef("pet", "pets", relationships=(belongs_to("owner"),)))

        second = SchemaRegistry()
        second.register(ModelDef("pet", "pets", relationships=(belongs_to("owner"),)))
        second.register(ModelDef("owner", "owners"))

        assert first.freeze() == second.freeze()

    def test_fingerprint_changes_with_schema(self):
        first = SchemaRegistry()
        first.register(ModelDef("owner", "owners"))

        second = SchemaRegistry()
        second.register(ModelDef("owner", "owners", properties=(prop("name"),)))

        assert first.freeze() != second.freeze()

    def test_to_json(self):
        registry = SchemaRegistry()
        registry.register(ModelDef("owner", "owners"))

        data = json.loads(registry.to_json())
        assert data["models"][0]["name"] == "owner"

    def test_resolve_target_has_many_by_collection(self):
        """hasMany names a collection first, then a model."""
        registry = SchemaRegistry()
        registry.register(ModelDef("floor", "floors"))
        registry.register(ModelDef("area", "area"))

        assert registry.resolve_target(has_many("floors")).name == "floor"
        assert registry.resolve_target(has_many("area")).name == "area"
        assert registry.resolve_target(has_one("floors")) is None

    def test_resolve_target_explicit_model(self):
        """An explicit model= is looked up by model name only."""
        registry = SchemaRegistry()
        registry.register(ModelDef("photo", "media"))
        registry.register(ModelDef("media", "medias"))

        assert registry.resolve_target(has_many("items", model="media")).name == "media"
        assert registry.resolve_target(has_many("media")).name == "photo"
        assert registry.resolve_target(has_many("items", model="medias")) is None

    def test_validate_all(self):
        registry = SchemaRegistry()
        registry.register(ModelDef("owner", "owners", relationships=(has_many("pets"),)))
        registry.register(
            ModelDef(
                "comment",
                "comments",
                relationships=(belongs_to("commentable", polymorphic=True, types=("post",)),),
            )
        )

        errors = registry.validate_all()

        assert len(errors) == 2
        assert any("owner.pets" in error for error in errors)
        assert any("unknown model 'post'" in error for error in errors)

        registry.register(ModelDef("pet", "pets"))
        registry.register(ModelDef("post", "posts"))
        assert registry.validate_all() == []
