import pytest
from fastapi.testclient import TestClient

from FinDesk.core.firebase import get_bucket, get_db
from main import app
from fakes import FakeBucket, FakeFirestore


@pytest.fixture
def db():
    return FakeFirestore()


@pytest.fixture
def bucket():
    return FakeBucket()


@pytest.fixture
def api(db, bucket):
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_bucket] = lambda: bucket
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def override():
    """Register extra dependency overrides for one test."""
    def _set(dependency, value):
        app.dependency_overrides[dependency] = lambda: value
    return _set
