from __future__ import annotations
import time
from dataclasses import dataclass

import redis.asyncio as redis
from fastapi import Request

from onboarding.core.config import settings
from onboarding.core.errors import RateLimited

@dataclass(frozen=True)
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_seconds: int

class TokenRateLimiter:
    def __init__(self, redis_url: str):
        self.r = redis.from_url(redis_url, decode_responses=True, socket_timeout=2)

    async def allow(self, *, key: str, limit: int, window_seconds: int) -> RateLimitResult:
        now = int(time.time())
        window = now // window_seconds
        rkey = f"rl:{key}:{window}"

        # INCR with expiry
        val = await self.r.incr(rkey)
        if val == 1:
            await self.r.expire(rkey, window_seconds)

        remaining = max(0, limit - val)
        reset = window_seconds - (now % window_seconds)
        return RateLimitResult(allowed=val <= limit, remaining=remaining, reset_seconds=reset)


_limiter: TokenRateLimiter | None = None


def _get_limiter() -> TokenRateLimiter:
    global _limiter
    if _limiter is None:
        _limiter = TokenRateLimiter(settings.redis_url)
    return _limiter


async def limit_confirmation_requests(request: Request) -> None:
    """Per-IP throttle for the public token endpoints (tokens are guessable only by brute force)."""
    if not settings.rate_limit_enabled:
        return
    client_ip = request.client.host if request.client else "unknown"
    result = await _get_limiter().allow(
        key=f"confirm:{client_ip}",
        limit=settings.confirmation_rate_limit,
        window_seconds=settings.confirmation_rate_window_seconds,
    )
    if not result.allowed:
        raise RateLimited(details=[{"retry_after_seconds": result.reset_seconds}])
