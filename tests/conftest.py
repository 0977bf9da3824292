"""
Pytest configuration and shared fixtures for all tests.

This file is automatically loaded by pytest and provides:
  - Test configuration (env vars set before any src import)
  - An in-memory Firestore double covering the query surface the service uses
  - A fixed clock for deterministic swipe/match timestamps
"""

import os
import threading
from datetime import datetime, timezone
from itertools import count

# Config() is instantiated at import time, so the environment must be ready
# before test modules import anything from src.
os.environ.setdefault("FIREBASE_PROJECT_ID", "test-project")
os.environ.setdefault("GOOGLE_APPLICATION_CREDENTIALS", "/config/test-serviceAccountKey.json")
os.environ.setdefault("SERVICE_TOKEN", "")
os.environ.setdefault("DEBUG", "True")

import pytest
from google.api_core.exceptions import AlreadyExists


FIXED_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = None if data is None else dict(data)

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return None if self._data is None else dict(self._data)


class FakeDocumentRef:
    def __init__(self, collection, doc_id):
        self._collection = collection
        self.id = doc_id

    def get(self):
        self._collection.db.check("get", self._collection.name)
        return FakeSnapshot(self.id, self._collection.docs.get(self.id))

    def set(self, data):
        self._collection.db.check("set", self._collection.name)
        self._collection.docs[self.id] = dict(data)

    def create(self, data):
        self._collection.db.check("create", self._collection.name)
        with self._collection.db.lock:
            if self.id in self._collection.docs:
                raise AlreadyExists(f"Document already exists: {self.id}")
            self._collection.docs[self.id] = dict(data)


class FakeQuery:
    """Immutable query: where / order_by / start_after / limit / stream."""

    def __init__(self, collection, filters=(), order=None, after=None, max_results=None):
        self._collection = collection
        self._filters = tuple(filters)
        self._order = order
        self._after = after
        self._limit = max_results

    def _copy(self, **changes):
        params = {
            "filters": self._filters,
            "order": self._order,
            "after": self._after,
            "max_results": self._limit,
        }
        params.update(changes)
        return FakeQuery(self._collection, **params)

    def where(self, field, op, value):
        return self._copy(filters=self._filters + ((field, op, value),))

    def order_by(self, field):
        return self._copy(order=field)

    def start_after(self, values):
        return self._copy(after=values)

    def limit(self, count):
        return self._copy(max_results=count)

    @staticmethod
    def _matches(data, field, op, value):
        if field not in data:
            return False
        actual = data[field]
        if op == "==":
            return actual == value
        if op == "!=":
            return actual != value
        if op == "not-in":
            return actual not in value
        if op == "array_contains":
            return isinstance(actual, list) and value in actual
        raise NotImplementedError(op)

    def stream(self):
        db = self._collection.db
        db.check("stream", self._collection.name)
        db.queries.append(
            {
                "collection": self._collection.name,
                "filters": self._filters,
                "order": self._order,
                "after": self._after,
                "limit": self._limit,
            }
        )

        rows = [
            (doc_id, data)
            for doc_id, data in self._collection.docs.items()
            if all(self._matches(data, f, op, v) for f, op, v in self._filters)
        ]
        if self._order:
            rows = [r for r in rows if self._order in r[1]]
            rows.sort(key=lambda r: r[1][self._order])
            if self._after is not None:
                cursor_value = self._after[self._order]
                rows = [r for r in rows if r[1][self._order] > cursor_value]
        else:
            rows.sort(key=lambda r: r[0])
        if self._limit is not None:
            rows = rows[: self._limit]
        return iter([FakeSnapshot(doc_id, data) for doc_id, data in rows])


class FakeCollection(FakeQuery):
    def __init__(self, db, name):
        self.db = db
        self.name = name
        self.docs = {}
        super().__init__(self)

    def document(self, doc_id):
        return FakeDocumentRef(self, doc_id)

    def add(self, data):
        self.db.check("add", self.name)
        doc_id = f"auto{next(self.db.ids):06d}"
        self.docs[doc_id] = dict(data)
        return FIXED_TIME, FakeDocumentRef(self, doc_id)


class FakeFirestore:
    """Minimal stand-in for firestore.Client used by src.tools.firestore_tools.

    Set ``failures`` to {(operation, collection)} or {collection} to make
    calls raise, simulating an unavailable store.
    """

    def __init__(self):
        self.collections = {}
        self.queries = []
        self.failures = set()
        self.lock = threading.Lock()
        self.ids = count(1)

    def collection(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(self, name)
        return self.collections[name]

    def check(self, operation, collection):
        if collection in self.failures or (operation, collection) in self.failures:
            raise RuntimeError(f"{operation} on {collection} unavailable")

    # Seeding helpers -------------------------------------------------

    def seed_user(self, uid, lat=None, lng=None, **fields):
        data = {"uid": uid, "name": fields.pop("name", uid.title()), **fields}
        if lat is not None and lng is not None:
            data["currentLocation"] = {
                "address": f"{lat},{lng}",
                "coordinates": {"latitude": lat, "longitude": lng},
            }
        self.collection("users").docs[uid] = data
        return data

    def seed_swipe(self, swiper_id, swiped_user_id, action="like"):
        self.collection("swipes").add(
            {
                "swiperId": swiper_id,
                "swipedUserId": swiped_user_id,
                "action": action,
                "timestamp": FIXED_TIME,
            }
        )

    def seed_match(self, uid1, uid2):
        first, second = sorted([uid1, uid2])
        self.collection("matches").docs[f"{first}_{second}"] = {
            "users": [first, second],
            "timestamp": FIXED_TIME,
        }

    def docs(self, name):
        return self.collection(name).docs


@pytest.fixture
def fake_db(monkeypatch):
    """Route every Firestore call in the service to an in-memory store."""

    db = FakeFirestore()
    monkeypatch.setattr("src.tools.firestore_tools.get_db", lambda: db)
    return db


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_TIME
