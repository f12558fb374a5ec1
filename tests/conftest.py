"""Pytest fixtures for OKR Guard HTTP-level tests."""

from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from fakes import FakeDirectory, FakeEngine, FakeSession
from okrguard.app import create_app, limiter
from okrguard.modules.tenancy.scope import cleanup_health


@pytest.fixture(autouse=True)
def _reset_cleanup_health():
    cleanup_health.discarded = 0
    cleanup_health.unhealthy = 0
    FakeSession.observed = []
    limiter.reset()
    yield
    cleanup_health.discarded = 0
    cleanup_health.unhealthy = 0


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def fake_directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def app(fake_engine: FakeEngine, fake_directory: FakeDirectory):
    return create_app(directory=fake_directory, engine=fake_engine, session_factory=FakeSession)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Yield an httpx AsyncClient wired to the app; server errors come back as 500s."""
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
