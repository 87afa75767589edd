import os
import tempfile

# Settings are read at import time; keep the app's own database and
# storage out of the working tree.
_RUNTIME_DIR = tempfile.mkdtemp(prefix="chat-api-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_RUNTIME_DIR}/app.sqlite")
os.environ.setdefault("STORAGE_DIR", os.path.join(_RUNTIME_DIR, "storage"))
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from chat_api.core.security import create_access_token
from chat_api.db.init_db import init_db
from chat_api.db.session import get_db, make_engine
from chat_api.main import app
from chat_api.security.rate_limiter import get_rate_limiter
from chat_api.storage.blob import StorageError, get_blob_store
from chat_api.storage.profiles import Profile, get_profile_directory


class FakeBlobStore:
    """Keeps uploads in memory. Names listed in ``fail_on`` raise StorageError."""

    def __init__(self):
        self.objects = {}
        self.fail_on = set()

    def put(self, bucket, path, data, mime_type):
        if any(path.endswith(name) for name in self.fail_on):
            raise StorageError(f"refused {path}")
        self.objects[(bucket, path)] = (data, mime_type)
        return f"https://blobs.test/{bucket}/{path}"


class FakeProfileDirectory:
    def __init__(self):
        self.profiles = {}

    def add(self, user_id, name=None, avatar_url=None):
        self.profiles[user_id] = Profile(id=user_id, name=name, avatar_url=avatar_url)

    def lookup(self, user_id):
        return self.profiles.get(user_id)


@pytest.fixture
def engine(tmp_path):
    eng = make_engine(f"sqlite:///{tmp_path}/chat.sqlite")
    init_db(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def blob_store():
    return FakeBlobStore()


@pytest.fixture
def profiles():
    return FakeProfileDirectory()


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    get_rate_limiter().reset()
    yield
    get_rate_limiter().reset()


@pytest.fixture
def client(session_factory, blob_store, profiles):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    app.dependency_overrides[get_profile_directory] = lambda: profiles
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth(user_id):
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}
