"""
Integration tests over a store layout schema.

A store has floors, floors have areas, areas have fixtures, and floors,
areas and fixtures are all placed by polymorphic layout positions. The
same scenarios run against in-memory and SQLite storage.
"""

import os
import tempfile

import pytest

from riverdb import (
    Database,
    InMemoryStorage,
    ModelDef,
    Settings,
    SqliteStorage,
    belongs_to,
    has_many,
    has_one,
)


def is_geometry(kind):
    return lambda position: position.get("geometryType") == kind


STORE = ModelDef(
    "store",
    "stores",
    relationships=(
        has_many("floors"),
        has_many("areas"),
        has_many("fixtures", through="areas"),
        has_many("floorPositions", through="floors", source="layoutPosition"),
    ),
)

FLOOR = ModelDef(
    "floor",
    "floors",
    relationships=(
        belongs_to("store"),
        has_many("areas"),
        has_many("fixtures"),
        has_one("layoutPosition", inverse="target"),
    ),
)

AREA = ModelDef(
    "area",
    "areas",
    relationships=(
        belongs_to("store"),
        belongs_to("floor"),
        has_many("fixtures"),
        has_one("layoutPosition", inverse="target"),
    ),
)

FIXTURE = ModelDef(
    "fixture",
    "fixtures",
    relationships=(
        belongs_to("store"),
        belongs_to("area"),
        has_one("layoutPosition", inverse="target", where=is_geometry("layout_position")),
        has_one(
            "modalPosition",
            model="layoutPosition",
            inverse="target",
            where=is_geometry("modal_position"),
        ),
    ),
)

LAYOUT_POSITION = ModelDef(
    "layoutPosition",
    "layoutPositions",
    relationships=(
        belongs_to("target", polymorphic=True, types=("floor", "area", "fixture")),
    ),
)

SCHEMA = (STORE, FLOOR, AREA, FIXTURE, LAYOUT_POSITION)


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def settings():
    return Settings(_env_file=None, storage_backend="memory")


@pytest.fixture(params=["memory", "sqlite"])
def layout_db(request, data_dir, settings):
    """Database with the store layout schema, on each storage adapter."""
    if request.param == "memory":
        storage = InMemoryStorage()
    else:
        storage = SqliteStorage(os.path.join(data_dir, "layout.sqlite"), wal_mode=False)
    database = Database(storage, settings=settings)
    database.define(*SCHEMA)
    database.finalize_all()
    return database


@pytest.fixture
def populated(layout_db):
    """One store with two floors, areas, fixtures and their positions."""
    db = layout_db
    db.model("store").create({"id": 1, "name": "Main St"})
    db.model("floor").create({"id": 10, "storeId": 1, "level": 0})
    db.model("floor").create({"id": 11, "storeId": 1, "level": 1})
    db.model("area").create({"id": 20, "storeId": 1, "floorId": 10})
    db.model("area").create({"id": 21, "storeId": 1, "floorId": 11})
    db.model("fixture").create({"id": 30, "storeId": 1, "areaId": 20, "floorId": 10})
    db.model("fixture").create({"id": 31, "storeId": 1, "areaId": 21, "floorId": 11})

    positions = db.model("layoutPosition")
    positions.create({"id": 40, "targetType": "floor", "targetId": 10, "x": 0})
    positions.create({"id": 41, "targetType": "floor", "targetId": 11, "x": 1})
    positions.create({"id": 42, "targetType": "area", "targetId": 10, "x": 2})
    positions.create(
        {"id": 43, "targetType": "fixture", "targetId": 30, "geometryType": "layout_position"}
    )
    positions.create(
        {"id": 44, "targetType": "fixture", "targetId": 30, "geometryType": "modal_position"}
    )
    return db


class TestStoreLayout:
    """Relationship graph across five models."""

    def test_store_floors(self, populated):
        store = populated.select("store", 1)

        assert sorted(floor.id for floor in store.floors()) == [10, 11]
        assert all(floor.store() == store for floor in store.floors())

    def test_floor_layout_position(self, populated):
        """Position 42 targets area 10, which does not exist; floor 10 only sees 40."""
        floor = populated.select("floor", 10)

        position = floor.layoutPosition()

        assert position.id == 40
        assert position.target() == floor

    def test_position_targeting_missing_area(self, populated):
        assert populated.select("layoutPosition", 42).target() is None

    def test_fixture_scoped_positions(self, populated):
        fixture = populated.select("fixture", 30)

        assert fixture.layoutPosition().id == 43
        assert fixture.modalPosition().id == 44
        assert populated.select("fixture", 31).layoutPosition() is None

    def test_fixtures_through_areas(self, populated):
        store = populated.select("store", 1)

        assert sorted(fixture.id for fixture in store.fixtures()) == [30, 31]

    def test_through_has_one_source(self, populated):
        store = populated.select("store", 1)

        assert sorted(position.id for position in store.floorPositions()) == [40, 41]

    def test_floor_areas_and_fixtures(self, populated):
        floor = populated.select("floor", 11)

        assert [area.id for area in floor.areas()] == [21]
        assert [fixture.id for fixture in floor.fixtures()] == [31]
        assert floor.areas()[0].floor() == floor

    def test_graph_follows_writes(self, populated):
        """Moving a fixture to another area changes every derived view."""
        fixture = populated.select("fixture", 31)
        fixture.set({"areaId": 20, "floorId": 10}).save()

        area = populated.select("area", 20)
        assert sorted(f.id for f in area.fixtures()) == [30, 31]
        assert populated.select("area", 21).fixtures() == []
        assert sorted(f.id for f in populated.select("store", 1).fixtures()) == [30, 31]

    def test_new_records_link_by_client_id(self, populated):
        """A floor and its position can be linked before the floor has an id."""
        floor = populated.model("floor").new({"storeId": 1, "level": 2})
        position = populated.model("layoutPosition").create(
            {"targetType": "floor", "targetId": floor.client_id}
        )

        assert floor.layoutPosition() == position

        floor.save()
        assert position.target() == floor
        assert len(populated.select("store", 1).floors()) == 3

    def test_clear_all_empties_relations(self, populated):
        populated.model("fixture").clear_all()

        assert populated.select("store", 1).fixtures() == []
        assert populated.select("layoutPosition", 43).target() is None


class TestSqlitePersistence:
    """Data written by one Database is visible to the next."""

    def test_reopen(self, data_dir, settings):
        path = os.path.join(data_dir, "layout.sqlite")

        first = Database(SqliteStorage(path, wal_mode=False), settings=settings)
        first.define(*SCHEMA)
        first.model("store").create({"id": 1})
        first.model("floor").create({"id": 10, "storeId": 1})
        floor_client_id = first.select("floor", 10).client_id

        second = Database(SqliteStorage(path, wal_mode=False), settings=settings)
        second.define(*SCHEMA)
        floors = second.select("store", 1).floors()

        assert [floor.id for floor in floors] == [10]
        assert floors[0].client_id == floor_client_id

    def test_sqlite_backend_from_settings(self, data_dir):
        settings = Settings(
            _env_file=None,
            storage_backend="sqlite",
            sqlite_path=os.path.join(data_dir, "from-settings.sqlite"),
            sqlite_wal_mode=False,
        )
        database = Database(settings=settings)
        database.define(*SCHEMA)

        database.model("store").create({"id": 1})

        assert isinstance(database.storage, SqliteStorage)
        assert database.storage.get_item("stores") is not None
