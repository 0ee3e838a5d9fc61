"""
Pytest configuration and shared fixtures for REVIEW_STORE tests.

This module provides:
- Mock MongoDB client/database fixtures
- In-memory (mongomock) pool fixtures
- Testcontainers fixtures for integration tests
- Test data factories
"""

from typing import Any, Dict
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from mongomock_motor import AsyncMongoMockClient

from review_store.config import StoreConfig
from review_store.core.gateway import Gateway
from review_store.database.connection import ConnectionPool
from review_store.observability import get_store_metrics


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without a server")
    config.addinivalue_line("markers", "integration: tests that need a real MongoDB")


# ============================================================================
# CONFIG FIXTURES
# ============================================================================


@pytest.fixture
def store_config() -> StoreConfig:
    """Provide a valid configuration pointing at a local server."""
    return StoreConfig(
        mongo_url="mongodb://localhost:27017",
        database="test_db",
        max_pool_size=10,
        min_pool_size=1,
    )


# ============================================================================
# MOCK MONGODB FIXTURES
# ============================================================================


def make_mock_collection(name: str) -> MagicMock:
    """Create a mock collection whose CRUD methods return driver-like results."""
    collection = MagicMock()
    collection.name = name
    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=[])
    # Motor's find() is synchronous and returns a cursor
    collection.find = MagicMock(return_value=cursor)
    collection.insert_one = AsyncMock(return_value=MagicMock(inserted_id="test_id"))
    collection.insert_many = AsyncMock(return_value=MagicMock(inserted_ids=["id1", "id2"]))
    collection.update_one = AsyncMock(return_value=MagicMock(matched_count=1, modified_count=1))
    collection.update_many = AsyncMock(return_value=MagicMock(matched_count=2, modified_count=2))
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
    collection.delete_many = AsyncMock(return_value=MagicMock(deleted_count=2))
    return collection


class MockDatabase:
    """Database stand-in that hands out one mock collection per name."""

    def __init__(self, name: str = "test_db"):
        self.name = name
        self.collections: Dict[str, MagicMock] = {}
        self.create_collection = AsyncMock()
        self.command = AsyncMock(return_value={"ok": 1})
        self.list_collection_names = AsyncMock(return_value=[])

    def __getitem__(self, name: str) -> MagicMock:
        if name not in self.collections:
            self.collections[name] = make_mock_collection(name)
        return self.collections[name]


@pytest.fixture
def mock_mongo_database() -> MockDatabase:
    """Create a mock MongoDB database."""
    return MockDatabase()


@pytest.fixture
def mock_mongo_client(mock_mongo_database: MockDatabase) -> MagicMock:
    """Create a mock MongoDB client."""
    client = MagicMock()
    client.admin = MagicMock()
    client.admin.command = AsyncMock(return_value={"ok": 1})
    client.__getitem__.return_value = mock_mongo_database
    return client


@pytest_asyncio.fixture
async def mock_pool(store_config, mock_mongo_client):
    """Initialized ConnectionPool backed by the mock client."""
    with patch(
        "review_store.database.connection.AsyncIOMotorClient", return_value=mock_mongo_client
    ):
        pool = ConnectionPool(store_config)
        await pool.initialize()
        yield pool
        await pool.shutdown()


@pytest.fixture
def mock_gateway(mock_pool) -> Gateway:
    return Gateway(mock_pool)


# ============================================================================
# IN-MEMORY MONGODB FIXTURES
# ============================================================================


@pytest_asyncio.fixture
async def mongomock_pool(store_config):
    """
    ConnectionPool backed by an in-memory mongomock client.

    mongomock does not enforce ``$jsonSchema`` validators; schema rejection
    is covered by the integration tests.
    """
    client = AsyncMongoMockClient()
    pool = ConnectionPool(store_config)
    pool._mongo_client = client
    pool._mongo_db = client[store_config.database]
    pool._initialized = True
    yield pool
    await pool.shutdown()


@pytest.fixture
def mongomock_gateway(mongomock_pool) -> Gateway:
    return Gateway(mongomock_pool)


# ============================================================================
# TEST DATA FACTORIES
# ============================================================================


@pytest.fixture
def sample_customer() -> Dict[str, Any]:
    return {"customerID": "c1", "abn": "51824753556", "businessName": "Acme Pty Ltd"}


# ============================================================================
# ENVIRONMENT AND GLOBAL STATE
# ============================================================================


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch, tmp_path):
    """Clear MONGO_* variables and keep dotenv lookups away from the repo."""
    for var in [
        "MONGO_URL",
        "MONGO_DATABASE",
        "MONGO_OPTIONS",
        "MONGO_MAX_POOL_SIZE",
        "MONGO_MIN_POOL_SIZE",
        "MONGO_SERVER_SELECTION_TIMEOUT_MS",
        "MONGO_TIMEOUT_MS",
    ]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    yield


@pytest.fixture(autouse=True)
def reset_metrics():
    get_store_metrics().reset()
    yield
    get_store_metrics().reset()


# ============================================================================
# TESTCONTAINERS FIXTURES (Real MongoDB for Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def mongodb_container():
    """
    Start a MongoDB container for integration tests.

    Session-scoped: container starts once and is reused for all integration tests.
    """
    try:
        from testcontainers.mongodb import MongoDbContainer
    except ImportError:
        pytest.skip("testcontainers not installed. Install with: pip install -e '.[test]'")

    with MongoDbContainer(image="mongo:7.0") as container:
        yield container


@pytest.fixture
def mongodb_connection_string(mongodb_container):
    """Connection string using localhost and the exposed port."""
    return mongodb_container.get_connection_url()


@pytest_asyncio.fixture
async def real_pool(mongodb_connection_string, request):
    """
    ConnectionPool against the container, on a database unique to the test.

    The database is dropped after the test.
    """
    import os

    database = f"test_db_{os.getpid()}_{abs(hash(request.node.nodeid)) % 10**8}"
    config = StoreConfig(mongo_url=mongodb_connection_string, database=database)
    pool = ConnectionPool(config)
    await pool.initialize()

    yield pool

    client = pool.client
    await client.drop_database(database)
    await pool.shutdown()
