import os

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["RATE_LIMIT_USE_REDIS"] = "false"
os.environ["CLEANUP_ENABLED"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient

from spindecide.database import build_engine, build_session_factory, create_schema, get_session_factory
from spindecide.main import app
from spindecide.services.room_service import RoomService
from spindecide.utils.rate_limit import RateLimiter

BASE_URL = "http://spindecide.test"


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'spindecide.db'}")
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def room_service(session_factory):
    return RoomService(session_factory)


@pytest.fixture
def rate_limiter():
    return RateLimiter(enabled=False)


@pytest.fixture
async def make_client(session_factory, rate_limiter):
    """Factory for API clients; each one keeps its own cookie jar (one participant each)."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.state.rate_limiter = rate_limiter
    clients = []

    def _make() -> AsyncClient:
        client = AsyncClient(transport=ASGITransport(app=app), base_url=BASE_URL)
        clients.append(client)
        return client

    yield _make

    for client in clients:
        await client.aclose()
    app.dependency_overrides.clear()


@pytest.fixture
def client(make_client):
    return make_client()
