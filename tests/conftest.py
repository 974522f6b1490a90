import os

# must be in place before craftlink.config.settings is imported anywhere
os.environ["ENV"] = "test"
os.environ["PASS_HASH_ROUNDS"] = "4"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["CLEANUP_INTERVAL_SECONDS"] = "0"

import pytest
from asgi_lifespan import LifespanManager
from httpx import ASGITransport, AsyncClient
from craftlink.config.settings import Settings
from craftlink.main import create_app


def make_settings(**overrides) -> Settings:
    values = dict(
        ENV="test",
        DATABASE_URL="sqlite+aiosqlite://",
        PASS_HASH_ROUNDS=4,
        CLEANUP_INTERVAL_SECONDS=0,
        JWT_SECRET="test-access-secret",
        JWT_REFRESH_SECRET="test-refresh-secret",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
async def app(settings):
    # fresh app per test: own in-memory db, own limiter counters
    app = create_app(settings)
    async with LifespanManager(app):
        yield app


@pytest.fixture
async def ac_client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def store(app):
    return app.state.store


@pytest.fixture
def auth_service(app):
    return app.state.auth_service
