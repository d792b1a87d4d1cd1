"""
Rate Limiting

Fixed-window request counters per endpoint scope and client IP, used as
a FastAPI dependency:

    @router.post("/signin", dependencies=[Depends(RateLimiter("signin", 10, 60))])

Counters live in Redis (INCR + EXPIRE) when Redis is enabled, and in
process memory otherwise or when Redis is unreachable. The dependency
runs before the handler, so a rejected request has no side effects.
"""

import logging
import time
from typing import Dict, Optional, Tuple

from fastapi import Request

from app.core.config import settings
from app.core.exceptions import TooManyRequestsError
from app.db.redis import get_redis

logger = logging.getLogger(__name__)

# (scope, client) -> (count, window_reset_at)
_memory_buckets: Dict[Tuple[str, str], Tuple[int, float]] = {}


def reset_rate_limits() -> None:
    """Forget every in-process counter."""
    _memory_buckets.clear()


def client_ip(request: Request) -> str:
    """Best-effort client IP, honouring X-Forwarded-For."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "anon"


def _hit_memory(key: Tuple[str, str], window_seconds: int, now: Optional[float] = None) -> int:
    now = now if now is not None else time.monotonic()
    count, reset_at = _memory_buckets.get(key, (0, now + window_seconds))
    if now >= reset_at:
        count, reset_at = 0, now + window_seconds
    count += 1
    _memory_buckets[key] = (count, reset_at)
    return count


async def _hit_redis(key: Tuple[str, str], window_seconds: int) -> int:
    redis = await get_redis()
    redis_key = f"ratelimit:{key[0]}:{key[1]}"
    count = await redis.incr(redis_key)
    if count == 1:
        await redis.expire(redis_key, window_seconds)
    return count


class RateLimiter:
    """Dependency enforcing `limit` requests per `window_seconds`."""

    def __init__(self, scope: str, limit: int, window_seconds: int = 60):
        self.scope = scope
        self.limit = limit
        self.window_seconds = window_seconds

    async def hit(self, client: str) -> int:
        key = (self.scope, client)
        if settings.REDIS_ENABLED:
            try:
                return await _hit_redis(key, self.window_seconds)
            except Exception as e:
                logger.warning(f"Redis rate limit unavailable ({e}), using in-process counter")
        return _hit_memory(key, self.window_seconds)

    async def __call__(self, request: Request) -> None:
        client = client_ip(request)
        count = await self.hit(client)
        if count > self.limit:
            logger.warning(f"Rate limit exceeded: scope={self.scope}, client={client}")
            raise TooManyRequestsError("Too many requests")
