"""Pytest fixtures for offline verification-log tests."""

import itertools
from unittest.mock import AsyncMock, MagicMock

import pytest

from app.db.session import Database
from app.offline.did_cache import DIDCache
from app.offline.event_store import EventStore
from app.offline.events import EventBus
from app.offline.revocation import RevocationCache


class FakeClock:
    """Millisecond clock that advances by one on every read."""

    def __init__(self, start: int = 1_700_000_000_000):
        self._counter = itertools.count(start)
        self.last = start

    def __call__(self) -> int:
        self.last = next(self._counter)
        return self.last


@pytest.fixture
def db_url(tmp_path):
    return f"sqlite:///{tmp_path / 'offline.db'}"


@pytest.fixture
def database(db_url):
    """Fresh, initialized file-backed database."""
    db = Database(db_url)
    db.init()
    yield db
    db.dispose()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def store(database, bus, clock):
    return EventStore(database, bus=bus, clock=clock)


@pytest.fixture
def did_cache(database, clock):
    return DIDCache(database, capacity=5, clock=clock)


@pytest.fixture
def revocations(database):
    return RevocationCache(database)


@pytest.fixture
def mock_remote():
    """Remote authority double; every call succeeds by default."""
    remote = MagicMock()
    remote.submit_log = AsyncMock(return_value=None)
    remote.fetch_revocations = AsyncMock(return_value=[])
    remote.verify = AsyncMock(return_value={"verified": True, "status": "success"})
    remote.capabilities = AsyncMock(return_value={"status": "AVAILABLE"})
    return remote
