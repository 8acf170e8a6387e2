"""
Shared fixtures for the RiverDB test suite.
"""

import pytest

from riverdb import (
    CollectionListener,
    Database,
    InMemoryStorage,
    ModelDef,
    RecordListener,
    Settings,
    belongs_to,
    has_many,
    has_one,
    prop,
)

OWNER = ModelDef(
    name="owner",
    collection="owners",
    properties=(prop("name"),),
    relationships=(
        has_many("pets", inverse="owner"),
        has_one("favoritePet", model="pet", inverse="owner", where=lambda pet: pet.get("favorite")),
    ),
)

PET = ModelDef(
    name="pet",
    collection="pets",
    properties=(prop("name"), prop("species", default="dog")),
    relationships=(belongs_to("owner"),),
)


class RecordingListener(CollectionListener):
    """Collects the names of every event it receives."""

    def __init__(self):
        self.events = []

    def record_was_added(self, event):
        self.events.append(event)

    def record_was_updated(self, event):
        self.events.append(event)

    def record_was_deleted(self, event):
        self.events.append(event)

    def collection_was_cleared(self, event):
        self.events.append(event)

    @property
    def names(self):
        return [event.name for event in self.events]


class RecordingRecordListener(RecordListener):
    """Collects (kind, attributes) for every record change it receives."""

    def __init__(self):
        self.calls = []

    def record_was_updated(self, record):
        self.calls.append(("updated", record.attributes))

    def record_was_deleted(self, record):
        self.calls.append(("deleted", record.client_id))


@pytest.fixture
def storage():
    """Fresh in-memory storage."""
    return InMemoryStorage()


@pytest.fixture
def settings():
    """Default settings, independent of the environment."""
    return Settings(_env_file=None, storage_backend="memory", save_mode="replace")


@pytest.fixture
def db(storage, settings):
    """Database with the owner/pet schema."""
    database = Database(storage, settings=settings)
    database.define(OWNER, PET)
    return database


@pytest.fixture
def listener():
    """Collection listener recording every event."""
    return RecordingListener()


@pytest.fixture
def record_listener():
    """Record listener recording every call."""
    return RecordingRecordListener()
