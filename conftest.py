import pytest
from fastapi.testclient import TestClient

from api import create_app
from database import RecordStore
from library import Library
from tests.fakes import InMemoryRecordStore


@pytest.fixture
def store(tmp_path, request):
    # A unique database file per test
    db_file = str(tmp_path / f"test_{request.node.name}.db")
    store = RecordStore(db_file)
    store.initialize()
    yield store
    store.close()


@pytest.fixture
def fake_store():
    return InMemoryRecordStore()


@pytest.fixture
def lib(fake_store):
    return Library(fake_store)


@pytest.fixture
def client(store):
    app = create_app(store=store)
    # Unhandled errors should come back as 500 responses, not re-raised in the test
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
