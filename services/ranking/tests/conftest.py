from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis
from httpx import ASGITransport, AsyncClient

from feedrank.config import Settings
from feedrank.dependencies import get_redis, get_settings, get_supplier
from feedrank.main import app

from factories import TEST_JWT_SECRET, FakeSupplier, make_author, make_candidate, make_token


@pytest.fixture
def settings() -> Settings:
    return Settings(jwt_secret=TEST_JWT_SECRET, env_name="test")


@pytest_asyncio.fixture
async def redis() -> AsyncGenerator[FakeRedis, None]:
    client = FakeRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def viewer_id() -> UUID:
    return uuid4()


@pytest.fixture
def auth_headers(viewer_id: UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(viewer_id)}"}


@pytest.fixture
def supplier(viewer_id: UUID) -> FakeSupplier:
    """A small live network: the viewer follows one author; one outsider has a hit post."""
    now = datetime.now(timezone.utc)
    viewer = make_author(viewer_id)
    followed = make_author()
    outsider = make_author(verified=True)
    posts = [
        make_candidate(viewer, hours_old=3, likes=1, now=now),
        make_candidate(followed, hours_old=1, likes=2, replies=1, now=now),
        make_candidate(followed, hours_old=5, likes=4, reposts=1, now=now),
        make_candidate(outsider, hours_old=2, likes=30, reposts=5, replies=4, now=now),
    ]
    return FakeSupplier(
        viewers={viewer_id, followed.id, outsider.id},
        posts=posts,
        authors=[viewer, followed, outsider],
        following={viewer_id: {followed.id}},
    )


@pytest_asyncio.fixture
async def async_client(
    supplier: FakeSupplier, redis: FakeRedis, settings: Settings
) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_supplier] = lambda: supplier
    app.dependency_overrides[get_redis] = lambda: redis
    app.dependency_overrides[get_settings] = lambda: settings
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
