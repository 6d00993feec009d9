"""
Shared pytest fixtures: in-memory database, local store, fake clock and
fakes for the Airtable / Storage HTTP clients.
"""
import os
import sys
from datetime import datetime, timezone
from typing import Generator

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from trefa import create_app
from trefa.db import Base
from trefa.models import InventarioCache
from trefa.services.local_store import LocalStore
from trefa.services.vehicles import VehicleService


# ============== TEST DATABASE ==============
TEST_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(
    bind=engine, autocommit=False, autoflush=False, expire_on_commit=False
)


class BrokenSession:
    """Session stand-in whose every query fails like a dropped connection."""

    def execute(self, *args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is down"))

    def commit(self):
        pass

    def rollback(self):
        pass

    def close(self):
        pass


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture(scope="function")
def db_session() -> Generator:
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store(tmp_path) -> LocalStore:
    return LocalStore(str(tmp_path / "local_store.json"))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def vehicle_service(db_session, store, clock) -> VehicleService:
    return VehicleService(store, session_factory=TestingSessionLocal, clock=clock)


# ============== DATA FIXTURES ==============
@pytest.fixture
def make_vehicle(db_session):
    counter = {"n": 0}

    def _make(**kwargs) -> InventarioCache:
        counter["n"] += 1
        n = counter["n"]
        data = {
            "record_id": f"rec{n:05d}",
            "slug": f"vehiculo-{n}",
            "title": f"Vehiculo {n}",
            "marca": "Nissan",
            "modelo": "Versa",
            "autoano": 2020,
            "precio": 250000,
            "enganchemin": 50000,
            "ordenstatus": "Comprado",
            "ubicacion": "MTY",
            "separado": False,
            "vendido": False,
            "viewcount": 0,
            "updated_at": datetime(2025, 1, 1, tzinfo=timezone.utc),
        }
        data.update(kwargs)
        v = InventarioCache(**data)
        db_session.add(v)
        db_session.commit()
        return v

    return _make


# ============== FLASK ==============
@pytest.fixture
def static_dir(tmp_path):
    dist = tmp_path / "dist"
    (dist / "assets").mkdir(parents=True)
    (dist / "index.html").write_text("<html><body>TREFA</body></html>", encoding="utf-8")
    (dist / "assets" / "app.js").write_text("console.log('trefa')", encoding="utf-8")
    return dist


@pytest.fixture
def app(db_session, tmp_path, static_dir):
    app = create_app({
        "TESTING": True,
        "SESSION_FACTORY": TestingSessionLocal,
        "LOCAL_STORE_PATH": str(tmp_path / "store.json"),
        "STATIC_DIR": str(static_dir),
        "ACCESS_LOG": False,
    })
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


# ============== HTTP FAKES ==============
class FakeResponse:
    def __init__(self, status_code=200, json_data=None, content=b"", headers=None, text=""):
        self.status_code = status_code
        self._json = json_data
        self.content = content
        self.headers = headers or {}
        self.text = text

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        return self._json


class FakeHttp:
    """requests.Session stand-in: maps URL -> FakeResponse (or exception)."""

    def __init__(self, responses=None):
        self.headers = {}
        self.responses = responses or {}
        self.calls = []

    def get(self, url, params=None, timeout=None):
        self.calls.append((url, dict(params or {})))
        resp = self.responses[url]
        if isinstance(resp, list):
            resp = resp.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp


class FakeStorage:
    def __init__(self, existing=None, fail_list=False, fail_upload=False):
        self.files = {}  # folder -> set(names)
        for path in existing or []:
            folder, _, name = path.rpartition("/")
            self.files.setdefault(folder + "/", set()).add(name)
        self.fail_list = fail_list
        self.fail_upload = fail_upload
        self.uploads = []
        self.list_calls = []

    def list(self, folder, limit=1000):
        from trefa.sync.storage import StorageError
        self.list_calls.append(folder)
        if self.fail_list:
            raise StorageError("list failed")
        return [{"name": n} for n in sorted(self.files.get(folder, set()))]

    def upload(self, path, content, content_type, upsert=False):
        from trefa.sync.storage import StorageError
        if self.fail_upload:
            raise StorageError("upload failed")
        self.uploads.append((path, content, content_type, upsert))
        folder, _, name = path.rpartition("/")
        self.files.setdefault(folder + "/", set()).add(name)

    def public_url(self, path):
        return f"https://cdn.test/storage/v1/object/public/fotos_airtable/{path}"


class FakeAirtable:
    def __init__(self, pages=None, error=None):
        self.pages = pages or []
        self.error = error

    def iter_pages(self, formula=None, page_size=100, delay=0):
        if self.error:
            raise self.error
        for page in self.pages:
            yield page

    def fetch_all(self, formula=None, delay=0):
        return [r for page in self.iter_pages(formula) for r in page]
