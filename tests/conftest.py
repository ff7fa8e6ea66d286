"""Pytest fixtures shared by unit and API tests.

The backing store is replaced by in-memory fakes implementing the same
async key-value protocol as ``RedisStore``:

- ``InMemoryStore``      plain dictionary, values stored as strings like Redis
- ``FaultyStore``        raises ``StorageError`` for chosen operations/keys
- ``InterleavingStore``  yields to the event loop before every operation so
                         concurrent requests interleave between calls
- ``SlowStore``          sleeps before chosen operations, for timeout tests
"""
import asyncio
from collections import defaultdict
from typing import AsyncGenerator, Dict, List, Optional, Sequence

import httpx
import pytest

from voting_service.auth import Authenticator
from voting_service.candidates import CandidateRegistry
from voting_service.config import Settings
from voting_service.exceptions import StorageError
from voting_service.ledger import VoteGuard, VoteLedger
from voting_service.main import create_app
from voting_service.store import CredentialStore
from voting_service.tally import TallyReader

TEST_SECRET = "test-secret"


class InMemoryStore:
    """Dictionary-backed key-value store."""

    def __init__(self):
        self.data: Dict[str, str] = {}
        self.calls: List[tuple] = []
        self.closed = False

    async def _before(self, op: str, key) -> None:
        self.calls.append((op, key))

    async def get(self, key: str) -> Optional[str]:
        await self._before("get", key)
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        await self._before("set", key)
        self.data[key] = str(value)

    async def set_if_absent(self, key: str, value: str) -> bool:
        await self._before("set_if_absent", key)
        if key in self.data:
            return False
        self.data[key] = str(value)
        return True

    async def delete(self, key: str) -> None:
        await self._before("delete", key)
        self.data.pop(key, None)

    async def incr(self, key: str) -> int:
        await self._before("incr", key)
        value = int(self.data.get(key, "0")) + 1
        self.data[key] = str(value)
        return value

    async def mget(self, keys: Sequence[str]) -> List[Optional[str]]:
        await self._before("mget", tuple(keys))
        return [self.data.get(key) for key in keys]

    async def ping(self) -> bool:
        await self._before("ping", None)
        return True

    async def close(self) -> None:
        self.closed = True


class FaultyStore(InMemoryStore):
    """In-memory store that fails on request."""

    def __init__(self):
        super().__init__()
        self.failures = set()

    def fail(self, op: str, key=None) -> None:
        """Make ``op`` fail, for every key or only for ``key``."""
        self.failures.add((op, key))

    async def _before(self, op: str, key) -> None:
        await super()._before(op, key)
        if (op, None) in self.failures or (op, key) in self.failures:
            raise StorageError(f"injected {op} failure for {key}")


class InterleavingStore(InMemoryStore):
    """In-memory store that hands control back to the loop before each call.

    Also records, per key, how many reads saw the key unset (or zero) before
    the first increment of that key landed.
    """

    def __init__(self):
        super().__init__()
        self.unset_reads_before_incr: Dict[str, int] = defaultdict(int)
        self._incremented = set()

    async def _before(self, op: str, key) -> None:
        await asyncio.sleep(0)
        await super()._before(op, key)

    async def get(self, key: str) -> Optional[str]:
        value = await super().get(key)
        if key not in self._incremented and value in (None, "0"):
            self.unset_reads_before_incr[key] += 1
        return value

    async def incr(self, key: str) -> int:
        value = await super().incr(key)
        self._incremented.add(key)
        return value


class SlowStore(InMemoryStore):
    """In-memory store whose chosen operations take ``delay`` seconds."""

    def __init__(self, delay: float, ops: Sequence[str] = ("get",)):
        super().__init__()
        self.delay = delay
        self.ops = set(ops)

    async def _before(self, op: str, key) -> None:
        if op in self.ops:
            await asyncio.sleep(self.delay)
        await super()._before(op, key)


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the environment and any .env file."""
    return Settings(JWT_SECRET=TEST_SECRET, _env_file=None)


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def faulty_store() -> FaultyStore:
    return FaultyStore()


@pytest.fixture
def interleaving_store() -> InterleavingStore:
    return InterleavingStore()


@pytest.fixture
def slow_store_factory():
    """Returns a function building a SlowStore with the given delay."""
    return SlowStore


@pytest.fixture
def registry(settings: Settings) -> CandidateRegistry:
    return CandidateRegistry(settings.CANDIDATES)


@pytest.fixture
def authenticator() -> Authenticator:
    return Authenticator(TEST_SECRET)


@pytest.fixture
def make_ledger(authenticator: Authenticator, registry: CandidateRegistry):
    """Helper fixture to build a VoteLedger over a given store.

    Returns a function taking the store, the guard and the timeout.
    """
    def _make(store, guard: VoteGuard = VoteGuard.CLAIM, timeout: float = 5.0) -> VoteLedger:
        return VoteLedger(
            authenticator,
            CredentialStore(store),
            registry,
            guard=guard,
            timeout=timeout
        )

    return _make


@pytest.fixture
def ledger(make_ledger, store: InMemoryStore) -> VoteLedger:
    return make_ledger(store)


@pytest.fixture
def tally(store: InMemoryStore, registry: CandidateRegistry) -> TallyReader:
    return TallyReader(CredentialStore(store), registry)


@pytest.fixture
def app(settings: Settings, store: InMemoryStore):
    return create_app(settings, store=store)


@pytest.fixture
async def api_client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    """HTTP client bound to the in-process application."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client


@pytest.fixture
def auth_header():
    """Helper fixture to build an Authorization header from a token."""
    def _header(token: str, scheme: str = "Bearer") -> dict:
        return {"Authorization": f"{scheme} {token}"}

    return _header
