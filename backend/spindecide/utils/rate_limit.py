"""
Sliding-window rate limiting.

RateLimiter keeps per-key request timestamps in process memory.
RedisRateLimiter keeps them in one Redis sorted set per key, so several
processes can share limits. Both expose the same coroutine `is_allowed`.

The limiter instance lives on `app.state.rate_limiter`; it is created at
startup, swept periodically and closed on shutdown.
"""
import asyncio
import secrets
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Union

from fastapi import Request
from redis.asyncio import Redis
from redis.exceptions import RedisError

from spindecide.config import Settings, settings
from spindecide.exceptions import RateLimitExceededException
from spindecide.utils.logging_config import rate_limit_logger


class RateLimitAction(str, Enum):
    CREATE_ROOM = "create_room"
    JOIN_ROOM = "join_room"
    SUBMIT_OPTION = "submit_option"
    VETO = "veto"
    SPIN = "spin"


@dataclass(frozen=True)
class RateLimitRule:
    limit: int
    window: int  # seconds


def get_rate_limit_rules(config: Settings = settings) -> dict[RateLimitAction, RateLimitRule]:
    return {
        RateLimitAction.CREATE_ROOM: RateLimitRule(
            config.RATE_LIMIT_CREATE_ROOM_LIMIT, config.RATE_LIMIT_CREATE_ROOM_WINDOW
        ),
        RateLimitAction.JOIN_ROOM: RateLimitRule(
            config.RATE_LIMIT_JOIN_ROOM_LIMIT, config.RATE_LIMIT_JOIN_ROOM_WINDOW
        ),
        RateLimitAction.SUBMIT_OPTION: RateLimitRule(
            config.RATE_LIMIT_SUBMIT_OPTION_LIMIT, config.RATE_LIMIT_SUBMIT_OPTION_WINDOW
        ),
        RateLimitAction.VETO: RateLimitRule(config.RATE_LIMIT_VETO_LIMIT, config.RATE_LIMIT_VETO_WINDOW),
        RateLimitAction.SPIN: RateLimitRule(config.RATE_LIMIT_SPIN_LIMIT, config.RATE_LIMIT_SPIN_WINDOW),
    }


class RateLimiter:
    """
    In-memory sliding window limiter.

    A request is allowed when fewer than `limit` requests from the same key
    were recorded in the last `window` seconds. Rejected requests are not
    recorded, so a blocked caller is let through again as soon as old
    requests slide out of the window.
    """

    def __init__(self, clock: Callable[[], float] = time.time, enabled: bool = True):
        self._clock = clock
        self._store: dict[str, list[float]] = {}
        self.enabled = enabled

    def _info(self, limit: int, window: int, timestamps: list[float], now: float) -> dict:
        oldest = timestamps[0] if timestamps else now
        return {
            "limit": limit,
            "remaining": max(0, limit - len(timestamps)),
            "reset": int(oldest + window),
        }

    async def is_allowed(self, key: str, limit: int, window: int) -> tuple[bool, dict]:
        """
        Check and record one request.

        Args:
            key: Unique identifier (e.g. action + client IP)
            limit: Maximum requests allowed inside the window
            window: Window length in seconds

        Returns:
            Tuple of (is_allowed, info_dict)
        """
        now = self._clock()
        if not self.enabled:
            return True, {"limit": limit, "remaining": limit, "reset": int(now + window)}

        window_start = now - window
        timestamps = [t for t in self._store.get(key, ()) if t > window_start]

        if len(timestamps) >= limit:
            if timestamps:
                self._store[key] = timestamps
            else:
                self._store.pop(key, None)
            return False, self._info(limit, window, timestamps, now)

        timestamps.append(now)
        self._store[key] = timestamps
        return True, self._info(limit, window, timestamps, now)

    def sweep(self, max_age: float) -> int:
        """Drop timestamps older than `max_age` seconds and forget empty keys."""
        cutoff = self._clock() - max_age
        evicted = 0
        for key in list(self._store):
            fresh = [t for t in self._store[key] if t > cutoff]
            if fresh:
                self._store[key] = fresh
            else:
                del self._store[key]
                evicted += 1
        return evicted

    def tracked_keys(self) -> int:
        return len(self._store)

    async def close(self):
        self._store.clear()


class RedisRateLimiter:
    """
    Redis-backed sliding window limiter (sorted set of request timestamps).
    Falls back to an in-memory limiter if Redis stops answering, and tries
    Redis again once `retry_after` seconds have passed.
    """

    def __init__(
        self,
        redis_url: Optional[str] = None,
        client: Optional[Redis] = None,
        clock: Callable[[], float] = time.time,
        enabled: bool = True,
        retry_after: float = 30.0,
    ):
        self._redis = client or Redis.from_url(
            redis_url or settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=False,
        )
        self._clock = clock
        self._fallback = RateLimiter(clock=clock, enabled=enabled)
        self._retry_after = retry_after
        # Redis is skipped until this time after a failure
        self._fallback_until: Optional[float] = None
        self.enabled = enabled

    async def is_allowed(self, key: str, limit: int, window: int) -> tuple[bool, dict]:
        now = self._clock()
        if not self.enabled:
            return True, {"limit": limit, "remaining": limit, "reset": int(now + window)}
        if self._fallback_until is not None:
            if now < self._fallback_until:
                return await self._fallback.is_allowed(key, limit, window)
            rate_limit_logger.info("Retrying Redis rate limiter")

        try:
            pipe = self._redis.pipeline()
            pipe.zremrangebyscore(key, 0, now - window)
            pipe.zcard(key)
            pipe.zrange(key, 0, 0, withscores=True)
            _, current_count, oldest = await pipe.execute()
            if self._fallback_until is not None:
                rate_limit_logger.info("Redis rate limiter recovered")
                self._fallback_until = None

            reset = int((oldest[0][1] if oldest else now) + window)
            if current_count >= limit:
                return False, {"limit": limit, "remaining": 0, "reset": reset}

            # Random suffix keeps two requests in the same instant distinct
            member = f"{now}:{secrets.token_hex(4)}"
            pipe = self._redis.pipeline()
            pipe.zadd(key, {member: now})
            pipe.expire(key, window)
            await pipe.execute()

            return True, {
                "limit": limit,
                "remaining": max(0, limit - current_count - 1),
                "reset": reset,
            }
        except RedisError as e:
            rate_limit_logger.warning(f"Redis rate limiter unavailable, using in-memory fallback: {e}")
            self._fallback_until = now + self._retry_after
            return await self._fallback.is_allowed(key, limit, window)

    def sweep(self, max_age: float) -> int:
        # Redis expires keys on its own; only the fallback store needs sweeping
        return self._fallback.sweep(max_age)

    async def close(self):
        await self._redis.aclose()
        await self._fallback.close()


AnyRateLimiter = Union[RateLimiter, RedisRateLimiter]


def build_rate_limiter(config: Settings = settings) -> AnyRateLimiter:
    if config.RATE_LIMIT_USE_REDIS:
        return RedisRateLimiter(config.REDIS_URL, enabled=config.RATE_LIMIT_ENABLED)
    return RateLimiter(enabled=config.RATE_LIMIT_ENABLED)


async def sweep_loop(limiter: AnyRateLimiter, interval: int, max_age: float) -> None:
    """Periodically evict stale rate limit records until cancelled."""
    while True:
        await asyncio.sleep(interval)
        evicted = limiter.sweep(max_age)
        if evicted:
            rate_limit_logger.debug(f"Evicted {evicted} idle rate limit record(s)")


def get_client_identifier(request: Request) -> str:
    """Client network identity: first X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip: str = "unknown"
        if request.client is not None:
            ip = request.client.host

    return f"ip:{ip}"


def get_rate_limiter(request: Request) -> AnyRateLimiter:
    limiter = getattr(request.app.state, "rate_limiter", None)
    if limiter is None:
        raise RuntimeError("Rate limiter is not initialised; is the app lifespan running?")
    return limiter


async def enforce_rate_limit(
    request: Request,
    action: RateLimitAction,
    key_func: Optional[Callable[[Request], str]] = None,
) -> dict:
    """
    Count one request for `action` against the caller.

    Raises:
        RateLimitExceededException: When the caller is over the limit
    """
    rule = get_rate_limit_rules()[action]
    client_key = key_func(request) if key_func else get_client_identifier(request)
    full_key = f"rate_limit:{action.value}:{client_key}"

    limiter = get_rate_limiter(request)
    is_allowed, info = await limiter.is_allowed(full_key, rule.limit, rule.window)

    # Picked up by RateLimitHeaderMiddleware
    request.state.rate_limit_info = info

    if not is_allowed:
        rate_limit_logger.warning(f"Rate limit exceeded: {full_key}")
        raise RateLimitExceededException(rule.limit, rule.window, info["reset"])
    return info


def rate_limited(action: RateLimitAction, key_func: Optional[Callable[[Request], str]] = None):
    """
    Rate limiting dependency for FastAPI endpoints.

    Pass it in the route's `dependencies=[...]`: route-level dependencies are
    resolved before the endpoint's own, so throttling happens before the
    session is checked or the body validated.

        @router.post("/{code}/spin", dependencies=[Depends(rate_limited(RateLimitAction.SPIN))])
    """
    async def dependency(request: Request) -> None:
        await enforce_rate_limit(request, action, key_func)

    return dependency
