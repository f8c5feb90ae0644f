import fakeredis
import pytest
from starlette.requests import Request

from spindecide.config import Settings
from spindecide.utils.rate_limit import (
    RateLimitAction,
    RateLimiter,
    RedisRateLimiter,
    build_rate_limiter,
    get_client_identifier,
    get_rate_limit_rules,
)


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


async def test_allows_up_to_limit_then_rejects(clock):
    limiter = RateLimiter(clock=clock)

    for expected_remaining in (2, 1, 0):
        allowed, info = await limiter.is_allowed("k", 3, 60)
        assert allowed
        assert info["remaining"] == expected_remaining

    allowed, info = await limiter.is_allowed("k", 3, 60)
    assert not allowed
    assert info["remaining"] == 0
    assert info["reset"] == int(clock.now + 60)


async def test_window_slides(clock):
    limiter = RateLimiter(clock=clock)
    await limiter.is_allowed("k", 2, 60)
    clock.advance(30)
    await limiter.is_allowed("k", 2, 60)
    assert not (await limiter.is_allowed("k", 2, 60))[0]

    # First request falls out of the window, second is still inside
    clock.advance(31)
    assert (await limiter.is_allowed("k", 2, 60))[0]
    assert not (await limiter.is_allowed("k", 2, 60))[0]


async def test_rejected_requests_are_not_recorded(clock):
    limiter = RateLimiter(clock=clock)
    await limiter.is_allowed("k", 1, 10)
    for _ in range(5):
        clock.advance(1)
        assert not (await limiter.is_allowed("k", 1, 10))[0]

    clock.advance(5.5)
    assert (await limiter.is_allowed("k", 1, 10))[0]


async def test_keys_are_independent(clock):
    limiter = RateLimiter(clock=clock)
    assert (await limiter.is_allowed("a", 1, 60))[0]
    assert not (await limiter.is_allowed("a", 1, 60))[0]
    assert (await limiter.is_allowed("b", 1, 60))[0]


async def test_disabled_limiter_allows_everything(clock):
    limiter = RateLimiter(clock=clock, enabled=False)
    for _ in range(10):
        assert (await limiter.is_allowed("k", 1, 60))[0]
    assert limiter.tracked_keys() == 0


async def test_sweep_evicts_idle_keys(clock):
    limiter = RateLimiter(clock=clock)
    await limiter.is_allowed("old", 5, 60)
    clock.advance(100)
    await limiter.is_allowed("new", 5, 60)

    assert limiter.sweep(60) == 1
    assert limiter.tracked_keys() == 1
    assert (await limiter.is_allowed("new", 5, 60))[1]["remaining"] == 3


def test_rules_follow_settings():
    config = Settings(RATE_LIMIT_SPIN_LIMIT=7, RATE_LIMIT_SPIN_WINDOW=30)
    rules = get_rate_limit_rules(config)

    assert rules[RateLimitAction.SPIN].limit == 7
    assert rules[RateLimitAction.SPIN].window == 30
    assert rules[RateLimitAction.CREATE_ROOM].limit == 5
    assert set(rules) == set(RateLimitAction)


def test_build_rate_limiter_picks_backend():
    assert isinstance(build_rate_limiter(Settings(RATE_LIMIT_USE_REDIS=False)), RateLimiter)
    limiter = build_rate_limiter(Settings(RATE_LIMIT_USE_REDIS=True, RATE_LIMIT_ENABLED=False))
    assert isinstance(limiter, RedisRateLimiter)
    assert limiter.enabled is False


def make_request(headers=None, client=("10.0.0.5", 4321)) -> Request:
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/api/rooms",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def test_client_identifier_uses_first_forwarded_hop():
    request = make_request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})
    assert get_client_identifier(request) == "ip:203.0.113.7"


def test_client_identifier_falls_back_to_peer():
    assert get_client_identifier(make_request()) == "ip:10.0.0.5"
    assert get_client_identifier(make_request(client=None)) == "ip:unknown"


# ---------- Redis backend ----------

async def test_redis_limiter(clock):
    client = fakeredis.FakeAsyncRedis(decode_responses=True)
    limiter = RedisRateLimiter(client=client, clock=clock)

    assert (await limiter.is_allowed("rate_limit:spin:ip:1", 2, 60))[0]
    allowed, info = await limiter.is_allowed("rate_limit:spin:ip:1", 2, 60)
    assert allowed
    assert info["remaining"] == 0

    allowed, info = await limiter.is_allowed("rate_limit:spin:ip:1", 2, 60)
    assert not allowed
    assert info["reset"] == int(clock.now + 60)

    clock.advance(61)
    assert (await limiter.is_allowed("rate_limit:spin:ip:1", 2, 60))[0]
    await limiter.close()


async def test_redis_limiter_falls_back_to_memory(clock):
    server = fakeredis.FakeServer()
    server.connected = False
    client = fakeredis.FakeAsyncRedis(server=server, decode_responses=True)
    limiter = RedisRateLimiter(client=client, clock=clock)

    assert (await limiter.is_allowed("k", 1, 60))[0]
    assert not (await limiter.is_allowed("k", 1, 60))[0]
    assert limiter.sweep(0) == 1


async def test_redis_limiter_retries_redis_after_cooldown(clock):
    server = fakeredis.FakeServer()
    server.connected = False
    client = fakeredis.FakeAsyncRedis(server=server, decode_responses=True)
    limiter = RedisRateLimiter(client=client, clock=clock, retry_after=30)

    assert (await limiter.is_allowed("k", 5, 60))[0]
    server.connected = True

    # Still inside the cooldown: served from memory, Redis untouched
    clock.advance(10)
    assert (await limiter.is_allowed("k", 5, 60))[0]
    assert await client.zcard("k") == 0

    clock.advance(25)
    allowed, info = await limiter.is_allowed("k", 5, 60)
    assert allowed
    assert info["remaining"] == 4
    assert await client.zcard("k") == 1
    await limiter.close()
