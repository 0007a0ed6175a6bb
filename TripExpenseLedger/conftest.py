"""
Shared pytest fixtures.

`fake_db` installs an in-memory stand-in for the Firestore client through
config.firebase_config.set_db, so the stores and the API run without a
Firebase project.
"""

import copy

import pytest

from config import firebase_config


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = data

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data) if self._data is not None else None


class FakeDocument:
    def __init__(self, store, path):
        self._store = store
        self._path = path
        self.id = path[-1]

    def collection(self, name):
        return FakeCollection(self._store, self._path + (name,))

    def set(self, data):
        self._store[self._path] = copy.deepcopy(data)

    def get(self):
        return FakeSnapshot(self.id, self._store.get(self._path))

    def delete(self):
        self._store.pop(self._path, None)


class FakeCollection:
    def __init__(self, store, path):
        self._store = store
        self._path = path

    def document(self, doc_id):
        return FakeDocument(self._store, self._path + (doc_id,))

    def stream(self):
        depth = len(self._path) + 1
        return [
            FakeSnapshot(path[-1], copy.deepcopy(data))
            for path, data in sorted(self._store.items())
            if len(path) == depth and path[:-1] == self._path
        ]


class FakeFirestore:
    def __init__(self):
        self.store = {}

    def collection(self, name):
        return FakeCollection(self.store, (name,))


@pytest.fixture
def fake_db():
    db = FakeFirestore()
    firebase_config.set_db(db)
    yield db
    firebase_config.set_db(None)


@pytest.fixture
def trip(fake_db):
    """A trip with three members: P001 Alice, P002 Bob, P003 Chika."""
    from participants import add_participant

    trip_id = "trip_test"
    fake_db.collection("trips").document(trip_id).set({"trip_id": trip_id, "name": "Osaka"})
    for name in ("Alice", "Bob", "Chika"):
        add_participant(trip_id, name)
    return trip_id
