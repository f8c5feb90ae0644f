from spindecide.utils.security import generate_room_code, generate_session_token
from spindecide.utils.rate_limit import (
    RateLimitAction,
    RateLimitRule,
    RateLimiter,
    RedisRateLimiter,
    build_rate_limiter,
    get_client_identifier,
    enforce_rate_limit,
    rate_limited,
)

__all__ = [
    "generate_room_code", "generate_session_token",
    "RateLimitAction", "RateLimitRule", "RateLimiter", "RedisRateLimiter",
    "build_rate_limiter", "get_client_identifier", "enforce_rate_limit", "rate_limited",
]
