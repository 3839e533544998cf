"""
Shared fixtures: a controllable clock, recording and failing stores, and
test clients for both apps.
"""

import pytest
from fastapi.testclient import TestClient

from tempshare import server, vault
from tempshare.storage import KVStore, MemoryKVStore, StoreError

ADMIN_PASSWORD = "s3cret-admin"

TEST_CONFIG = {
    "persistence": False,
    "cleanup_interval_minutes": 0,
    "admin_password": ADMIN_PASSWORD,
}


class FakeClock:
    """Callable clock that only moves when told to"""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingStore(MemoryKVStore):
    """MemoryKVStore that remembers every operation"""

    def __init__(self, clock):
        super().__init__(clock=clock)
        self.calls = []

    async def get(self, key):
        self.calls.append(("get", key))
        return await super().get(key)

    async def put(self, key, value, ttl=None):
        self.calls.append(("put", key))
        await super().put(key, value, ttl=ttl)

    async def delete(self, key):
        self.calls.append(("delete", key))
        await super().delete(key)

    async def list_keys(self, prefix=""):
        self.calls.append(("list", prefix))
        return await super().list_keys(prefix)

    def record_calls(self):
        """Operations other than rate-limit bookkeeping"""
        return [call for call in self.calls if not call[1].startswith("ratelimit:")]


class FailingStore(KVStore):
    """Store whose backend is unreachable"""

    async def get(self, key):
        raise StoreError("store unreachable")

    async def put(self, key, value, ttl=None):
        raise StoreError("store unreachable")

    async def delete(self, key):
        raise StoreError("store unreachable")

    async def list_keys(self, prefix=""):
        raise StoreError("store unreachable")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return RecordingStore(clock)


@pytest.fixture
def client(store, clock):
    app = server.create_app(TEST_CONFIG, store=store, clock=clock)
    return TestClient(app)


@pytest.fixture
def vault_client(store, clock):
    app = vault.create_app(TEST_CONFIG, store=store, clock=clock)
    return TestClient(app)
