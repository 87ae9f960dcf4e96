"""Shared fixtures: an in-memory store, a controllable clock, and an API client."""

import os

# Force the process-local backend before settings are first loaded.
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("ENVIRONMENT", "test")

import pytest
from fastapi.testclient import TestClient

from mesh_inbox.api.deps import get_executor
from mesh_inbox.api.main import app
from mesh_inbox.core.continuum_store import ContinuumStore
from mesh_inbox.core.storage import MemoryBackend
from mesh_inbox.services.commands import CommandExecutor
from mesh_inbox.services.queue_engine import QueueEngine

T0 = 1_700_000_000_000


class FakeClock:
    """Callable epoch-ms clock that only moves when told to."""

    def __init__(self, start: int = T0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def backend():
    return MemoryBackend()


@pytest.fixture
def store(backend):
    return ContinuumStore(backend)


@pytest.fixture
def engine(store, clock):
    return QueueEngine(store, clock=clock)


@pytest.fixture
def executor(engine):
    return CommandExecutor(engine)


@pytest.fixture
def client(executor):
    app.dependency_overrides[get_executor] = lambda: executor
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
