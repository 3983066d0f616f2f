import json
import os

# Keep the import-time engine away from the working directory and the logs quiet
os.environ.setdefault("OPALFORGE_DATABASE_URL", "sqlite://")
os.environ.setdefault("OPALFORGE_LOG_LEVEL", "WARNING")
os.environ.setdefault("OPALFORGE_RENDERER", "local")

import pytest
from fastapi.testclient import TestClient
from redis import RedisError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from opalforge.certificates.cache import CertificateCache, get_cache
from opalforge.certificates.crud import CertificateStore
from opalforge.certificates.database import Base, get_db
from opalforge.certificates.repository import CertificateRepository
from opalforge.server import app


class InMemoryCache(CertificateCache):
    """Cache double keeping serialized entries and their TTLs in a dict."""

    def __init__(self, fail: bool = False):
        super().__init__(client=None)
        self.entries = {}
        self.ttls = {}
        self.fail = fail

    def _check(self):
        if self.fail:
            raise RedisError("cache unavailable")

    def get_json(self, key):
        self._check()
        raw = self.entries.get(key)
        return None if raw is None else json.loads(raw)

    def set_json(self, key, value, ttl):
        self._check()
        self.entries[key] = json.dumps(value)
        self.ttls[key] = ttl

    def get_bytes(self, key):
        self._check()
        return self.entries.get(key)

    def set_bytes(self, key, value, ttl):
        self._check()
        self.entries[key] = value
        self.ttls[key] = ttl

    def ping(self):
        self._check()
        return True


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def cache():
    return InMemoryCache()


@pytest.fixture
def store(db_session):
    return CertificateStore(db_session)


@pytest.fixture
def repository(store, cache):
    return CertificateRepository(store, cache)


@pytest.fixture
def client(db_session, cache):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cache] = lambda: cache
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
