# tests/factories.py
"""
Fakes and payload builders shared by the test modules.
"""

import asyncio

from forexhub.schemas.catalog import DownloadCreate
from forexhub.schemas.content import CategoryCreate, PostCreate
from forexhub.schemas.users import UserCreate
from forexhub.storage.errors import InitializationError
from forexhub.storage.memory_adapter import MemoryStoreAdapter
from forexhub.storage.text import utcnow

ADMIN_KEY = "test-admin-key"


# -----------------------------------------------------------------------------
# Fakes
# -----------------------------------------------------------------------------


class FakeProber:
    """Connectivity prober whose answer the test controls."""

    def __init__(self, reachable: bool = True, delay: float = 0.0):
        self.reachable = reachable
        self.delay = delay
        self.calls = 0
        self.closed = False
        self.last_check = None
        self.last_error = None

    @property
    def is_configured(self) -> bool:
        return True

    async def check_connectivity(self) -> bool:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        self.last_check = utcnow()
        self.last_error = None if self.reachable else "OperationalError: connection refused"
        return self.reachable

    def close(self) -> None:
        self.closed = True


class FakeDurableAdapter(MemoryStoreAdapter):
    """In-memory adapter posing as the durable store, with a switchable readiness step."""

    name = "durable"
    is_persistent = True

    def __init__(self, fail_init: bool = False):
        super().__init__()
        self.fail_init = fail_init
        self.initialize_calls = 0
        self.closed = False

    async def initialize(self) -> None:
        self.initialize_calls += 1
        if self.fail_init:
            raise InitializationError("Durable store initialization failed: relation \"posts\" does not exist")

    async def close(self) -> None:
        self.closed = True


# -----------------------------------------------------------------------------
# Payload builders
# -----------------------------------------------------------------------------


def make_post(title: str = "Scalping the London Open", **overrides) -> PostCreate:
    return PostCreate(title=title, body="Entry rules and stop placement.", **overrides)


def make_download(title: str = "Trend Master EA", **overrides) -> DownloadCreate:
    data = {"file_url": "downloads/trend-master.ex4", "platform": "mt4"}
    data.update(overrides)
    return DownloadCreate(title=title, **data)


def make_category(name: str = "Expert Advisors", **overrides) -> CategoryCreate:
    return CategoryCreate(name=name, **overrides)


def make_user(email: str = "trader@example.com", username: str = "trader", **overrides) -> UserCreate:
    return UserCreate(email=email, username=username, password="correct-horse-battery", **overrides)
