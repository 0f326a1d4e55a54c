"""
Pytest Configuration File

This module provides fixtures and configuration for all tests: an
in-memory entry store, a controllable clock, and a test client wired to
them through the application lifespan.
"""

import asyncio
import os
from contextlib import asynccontextmanager

import pytest
from fastapi.testclient import TestClient

from tests.helpers import FakeClock, FakeEntryStore, auth_headers, seed_tree
from timekeep.app import create_app
from timekeep.features.timer.registry import TimerRegistry


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return FakeEntryStore()


@pytest.fixture
def test_client(store, clock):
    """Fixture for FastAPI test client backed by the in-memory store"""

    @asynccontextmanager
    async def lifespan(app):
        app.state.store = store
        app.state.timers = TimerRegistry(store, clock=clock, tick_interval=3600, checkpoint_interval=3600)
        yield
        await app.state.timers.shutdown()

    with TestClient(create_app(lifespan)) as client:
        yield client


@pytest.fixture
def tree(store):
    """One client, project and activity owned by the test user."""
    return asyncio.run(seed_tree(store))


@pytest.fixture
def headers():
    return auth_headers()


@pytest.fixture(autouse=True)
def setup_test_env():
    """Automatically set up test environment variables"""
    os.environ["TESTING"] = "true"
    yield
    os.environ.pop("TESTING", None)
