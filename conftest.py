import pytest

from catalog.database import EntityStore, initialize_database
from catalog.library import Catalog


@pytest.fixture
def db_file(tmp_path, request):
    # Each test gets its own database file
    path = str(tmp_path / f"test_{request.node.name}.db")
    initialize_database(path)
    return path


@pytest.fixture
def store(db_file):
    return EntityStore(db_file)


@pytest.fixture
def catalog(store):
    return Catalog(store)


@pytest.fixture
def client(db_file):
    from fastapi.testclient import TestClient
    from catalog.api import create_app

    with TestClient(create_app(db_file=db_file)) as test_client:
        yield test_client
