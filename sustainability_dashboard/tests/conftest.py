import copy
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

# Keep a developer .env from leaking into the settings used by the tests.
try:
    import pydantic_settings.sources as _psources
    _psources.DotEnvSettingsSource._read_env_files = lambda self, *args, **kwargs: {}
except (ImportError, AttributeError):
    pass

from sustainability_dashboard.api import auth  # noqa: E402
from sustainability_dashboard.core.config import settings  # noqa: E402
from sustainability_dashboard.core.database import get_db  # noqa: E402
from sustainability_dashboard.main import app  # noqa: E402

PASSWORD = "password123"


def _matches(doc, query):
    for key, cond in (query or {}).items():
        value = doc.get(key)
        if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
            for op, arg in cond.items():
                if op == "$gte" and not (value is not None and value >= arg):
                    return False
                if op == "$gt" and not (value is not None and value > arg):
                    return False
                if op == "$lte" and not (value is not None and value <= arg):
                    return False
                if op == "$lt" and not (value is not None and value < arg):
                    return False
                if op == "$in" and value not in arg:
                    return False
                if op == "$ne" and value == arg:
                    return False
        elif value != cond:
            return False
    return True


class FakeCursor:
    def __init__(self, docs):
        self._docs = docs

    def sort(self, key, direction=1):
        self._docs.sort(key=lambda d: (d.get(key) is None, d.get(key)), reverse=direction == -1)
        return self

    def skip(self, n):
        self._docs = self._docs[n:]
        return self

    def limit(self, n):
        if n:
            self._docs = self._docs[:n]
        return self

    async def to_list(self, length=None):
        return self._docs if length is None else self._docs[:length]


class FakeCollection:
    """Just enough of a Motor collection for the routes under test."""

    def __init__(self):
        self._docs = {}

    def _all(self):
        return list(self._docs.values())

    async def find_one(self, query=None, projection=None):
        for doc in self._all():
            if _matches(doc, query):
                return copy.deepcopy(doc)
        return None

    def find(self, query=None, projection=None):
        return FakeCursor([copy.deepcopy(d) for d in self._all() if _matches(d, query)])

    async def insert_one(self, doc):
        doc.setdefault("_id", ObjectId())
        self._docs[doc["_id"]] = copy.deepcopy(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def insert_many(self, docs):
        ids = []
        for doc in docs:
            res = await self.insert_one(doc)
            ids.append(res.inserted_id)
        return SimpleNamespace(inserted_ids=ids)

    async def update_one(self, query, update, upsert=False):
        for doc in self._all():
            if _matches(doc, query):
                doc.update(copy.deepcopy(update.get("$set", {})))
                return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)
        if upsert:
            doc = {k: v for k, v in query.items() if not isinstance(v, dict)}
            doc.update(update.get("$setOnInsert", {}))
            doc.update(update.get("$set", {}))
            self.seed(doc)
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=doc["_id"])
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

    async def delete_one(self, query):
        for key, doc in list(self._docs.items()):
            if _matches(doc, query):
                del self._docs[key]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)

    async def count_documents(self, query):
        return sum(1 for d in self._all() if _matches(d, query))

    def seed(self, doc):
        doc.setdefault("_id", ObjectId())
        self._docs[doc["_id"]] = copy.deepcopy(doc)
        return doc

    async def create_index(self, *args, **kwargs):
        return "fake_index"

    def aggregate(self, pipeline):
        raise NotImplementedError("aggregate is not supported by FakeCollection; monkeypatch the fetcher")


class FakeDB:
    def __init__(self):
        self._collections = {}

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self._collections.setdefault(name, FakeCollection())

    def __getitem__(self, name):
        return getattr(self, name)


@pytest.fixture(scope="session")
def password_hash():
    return auth.hash_password(PASSWORD)


@pytest.fixture
def fake_db():
    return FakeDB()


@pytest.fixture
def client(fake_db, monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "REPORT_DIR", str(tmp_path / "reports"))
    app.dependency_overrides[get_db] = lambda: fake_db
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(fake_db, password_hash):
    """Insert a user and return (user_doc, auth headers)."""

    def _make(role="analyst", email=None, is_active=True, name="Test User"):
        now = datetime.now(timezone.utc)
        doc = {
            "email": email or f"{role}-{ObjectId()}@example.com",
            "name": name,
            "password": password_hash,
            "role": role,
            "department": "Production",
            "unit": "Plant A",
            "isActive": is_active,
            "lastLogin": None,
            "createdAt": now,
            "updatedAt": now,
        }
        fake_db.users.seed(doc)
        token = auth.create_access_token(str(doc["_id"]))
        return doc, {"Authorization": f"Bearer {token}"}

    return _make


@pytest.fixture
def ids():
    """A consistent set of reference ids for readings."""
    return SimpleNamespace(
        unit=ObjectId(),
        department=ObjectId(),
        machine=ObjectId(),
        shift=ObjectId(),
    )
