import asyncio

from fastapi import FastAPI
from fastapi.testclient import TestClient

from regional_weather.middleware.rate_limit import RateLimitMiddleware
from regional_weather.rate_limiter import RateLimiter


class FakePipeline:
    def __init__(self, redis):
        self.redis = redis

    def zadd(self, *args):
        return self

    def zremrangebyscore(self, *args):
        return self

    def zcard(self, *args):
        return self

    def expire(self, *args):
        return self

    async def execute(self):
        if self.redis.down:
            raise ConnectionError("redis unavailable")
        self.redis.count += 1
        return [1, 0, self.redis.count, True]


class FakeRedis:
    def __init__(self, down=False):
        self.count = 0
        self.down = down

    def pipeline(self):
        return FakePipeline(self)


def test_requests_over_limit_are_rejected():
    limiter = RateLimiter(redis_client=FakeRedis(), max_requests=2)

    async def run():
        return [await limiter.is_allowed() for _ in range(3)]

    assert asyncio.run(run()) == [(True, 0), (True, 0), (False, 2)]


def test_limiter_fails_open():
    limiter = RateLimiter(redis_client=FakeRedis(down=True), max_requests=1)

    assert asyncio.run(limiter.is_allowed()) == (True, 0)


def test_middleware_returns_429_and_bypasses_health():
    app = FastAPI()
    app.add_middleware(
        RateLimitMiddleware,
        calls=1,
        enabled=True,
        rate_limiter=RateLimiter(redis_client=FakeRedis(), max_requests=1)
    )

    @app.get("/analysis/regions")
    async def regions():
        return []

    @app.get("/analysis/health")
    async def health():
        return {"status": "healthy"}

    client = TestClient(app)

    first = client.get("/analysis/regions")
    assert first.status_code == 200
    assert first.headers["X-RateLimit-Limit"] == "1"

    second = client.get("/analysis/regions")
    assert second.status_code == 429
    assert second.headers["Retry-After"] == "2"

    assert client.get("/analysis/health").status_code == 200
