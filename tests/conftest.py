# tests/conftest.py
"""
Pytest configuration and fixtures.

The contract tests run every storage operation against both adapters: the
in-memory volatile store and the SQL adapter on a throwaway SQLite file.
Selector and API tests use FakeProber / FakeDurableAdapter so transitions
can be driven without a real database.
"""

import os

import pytest
import pytest_asyncio

# No real database or .env for the test run
os.environ["DATABASE_URL"] = ""
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_JSON", "false")

from forexhub.config import Settings
from forexhub.storage.memory_adapter import MemoryStoreAdapter
from forexhub.storage.selector import StorageSelector
from forexhub.storage.sql_adapter import SqlStoreAdapter
from tests.factories import ADMIN_KEY, FakeDurableAdapter, FakeProber


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "durable: tests that need the SQL adapter")


# -----------------------------------------------------------------------------
# Adapters
# -----------------------------------------------------------------------------


def sqlite_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'forexhub-test.db'}"


@pytest_asyncio.fixture
async def memory_adapter():
    adapter = MemoryStoreAdapter()
    await adapter.initialize()
    yield adapter
    await adapter.close()


@pytest_asyncio.fixture
async def sql_adapter(tmp_path):
    adapter = SqlStoreAdapter(sqlite_url(tmp_path), auto_create_tables=True)
    await adapter.initialize()
    yield adapter
    await adapter.close()


@pytest_asyncio.fixture(params=["volatile", "durable"])
async def adapter(request, tmp_path):
    """Each contract test runs once per adapter; results must be identical."""
    if request.param == "volatile":
        store = MemoryStoreAdapter()
    else:
        store = SqlStoreAdapter(sqlite_url(tmp_path), auto_create_tables=True)
    await store.initialize()
    yield store
    await store.close()


# -----------------------------------------------------------------------------
# Selector / app
# -----------------------------------------------------------------------------


@pytest.fixture
def prober():
    return FakeProber(reachable=True)


@pytest.fixture
def durable():
    return FakeDurableAdapter()


@pytest.fixture
def selector(prober, durable):
    return StorageSelector(volatile=MemoryStoreAdapter(), prober=prober, durable=durable)


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        DATABASE_URL=None,
        ADMIN_API_KEY=ADMIN_KEY,
        ENVIRONMENT="test",
        LOG_JSON=False,
        SEED_VOLATILE_STORE=False,
        REQUEST_RECONCILE_MIN_INTERVAL_SECONDS=0,
        RECONCILE_INTERVAL_SECONDS=3600,
    )


@pytest.fixture
def admin_headers():
    return {"X-API-Key": ADMIN_KEY}

