import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import redis.asyncio as redis

from cleanbook.config import settings
from cleanbook.core import middleware
from cleanbook.main import create_application, install_services


class FakePipeline:
    """Stands in for a redis pipeline; counts hits per key."""

    def __init__(self, client: "FakeRedis") -> None:
        self.client = client
        self.key: str | None = None

    async def __aenter__(self) -> "FakePipeline":
        return self

    async def __aexit__(self, *exc) -> None:
        return None

    async def zremrangebyscore(self, key, minimum, maximum):
        self.key = key

    async def zcard(self, key):
        self.key = key

    async def zadd(self, key, mapping):
        self.key = key

    async def expire(self, key, seconds):
        self.key = key

    async def execute(self):
        if self.client.down:
            raise redis.ConnectionError("connection refused")
        seen = self.client.hits.get(self.key, 0)
        self.client.hits[self.key] = seen + 1
        return [0, seen, 1, True]


class FakeRedis:
    def __init__(self, down: bool = False) -> None:
        self.down = down
        self.hits: dict[str, int] = {}

    def pipeline(self, transaction: bool = True) -> FakePipeline:
        return FakePipeline(self)


async def make_client(session_factory, monkeypatch, fake: FakeRedis) -> AsyncClient:
    monkeypatch.setattr(settings, "rate_limit_per_minute", 2)
    monkeypatch.setattr(middleware.redis, "from_url", lambda *args, **kwargs: fake)
    app = create_application(use_lifespan=False, rate_limit=True)
    install_services(app, session_factory)
    return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")


@pytest_asyncio.fixture
async def plain_client(session_factory):
    app = create_application(use_lifespan=False)
    install_services(app, session_factory)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


async def test_request_id_is_echoed(plain_client):
    response = await plain_client.get("/health", headers={"X-Request-ID": "req-42"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "req-42"
    assert response.headers["X-Response-Time"].endswith("s")


async def test_request_id_is_generated_when_missing(plain_client):
    response = await plain_client.get("/health")

    assert response.headers["X-Request-ID"]


async def test_security_headers(plain_client):
    response = await plain_client.get("/health")

    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
    assert response.headers["Referrer-Policy"] == "strict-origin-when-cross-origin"
    assert "Strict-Transport-Security" not in response.headers


async def test_rate_limiter_returns_429_once_budget_is_spent(session_factory, monkeypatch):
    fake = FakeRedis()
    async with await make_client(session_factory, monkeypatch, fake) as client:
        first = await client.get("/api/v1/bookings/")
        second = await client.get("/api/v1/bookings/")
        third = await client.get("/api/v1/bookings/")

    assert first.headers["X-RateLimit-Remaining"] == "1"
    assert second.headers["X-RateLimit-Remaining"] == "0"
    assert third.status_code == 429
    assert third.json()["code"] == "RateLimitExceeded"
    assert third.headers["Retry-After"] == "60"


async def test_rate_limiter_keys_clients_separately(session_factory, monkeypatch):
    fake = FakeRedis()
    async with await make_client(session_factory, monkeypatch, fake) as client:
        for _ in range(2):
            await client.get("/api/v1/bookings/", headers={"Authorization": "Bearer aaaa.bbbb.cccc"})
        response = await client.get("/api/v1/bookings/", headers={"Authorization": "Bearer dddd.eeee.ffff"})

    assert response.status_code != 429
    assert len(fake.hits) == 2


async def test_health_is_never_throttled(session_factory, monkeypatch):
    fake = FakeRedis()
    async with await make_client(session_factory, monkeypatch, fake) as client:
        for _ in range(5):
            response = await client.get("/health")
            assert response.status_code == 200

    assert fake.hits == {}


async def test_rate_limiter_fails_open_when_redis_is_down(session_factory, monkeypatch):
    async with await make_client(session_factory, monkeypatch, FakeRedis(down=True)) as client:
        responses = [await client.get("/api/v1/bookings/") for _ in range(4)]

    assert all(r.status_code != 429 for r in responses)
    assert all("X-RateLimit-Limit" not in r.headers for r in responses)
