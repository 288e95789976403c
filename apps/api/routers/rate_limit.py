"""Per-session quotas for the management API (Redis, with an in-process fallback)."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Tuple

from fastapi import Depends, HTTPException, Request
import redis.asyncio as redis
from redis.exceptions import RedisError

from config import settings
from routers.auth_scope import AuthContext, get_auth_context

logger = logging.getLogger(__name__)

KEY_NAMESPACE = "automation:rate"

# (allowed, seconds until the window resets)
QuotaDecision = Tuple[bool, int]

_local_windows: Dict[str, Tuple[int, float]] = {}
_local_lock = asyncio.Lock()


def reset_local_counters() -> None:
    _local_windows.clear()


async def _consume_local_quota(key: str, limit: int, window_seconds: int) -> QuotaDecision:
    now = time.monotonic()
    async with _local_lock:
        count, reset_at = _local_windows.get(key, (0, now + window_seconds))
        if now >= reset_at:
            count, reset_at = 0, now + window_seconds
        count += 1
        _local_windows[key] = (count, reset_at)
    return count <= limit, max(int(reset_at - now), 1)


async def _consume_redis_quota(key: str, limit: int, window_seconds: int) -> QuotaDecision:
    client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    try:
        async with client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.ttl(key)
            current, ttl = await pipe.execute()
        if int(ttl) < 0:
            await client.expire(key, window_seconds)
            ttl = window_seconds
    finally:
        await client.aclose()
    return int(current) <= limit, max(int(ttl), 1)


def rate_limit(prefix: str, limit: int, window_seconds: int) -> Callable[..., Awaitable[None]]:
    """
    Dependency enforcing `limit` calls per `window_seconds` for one endpoint family.
    Quotas are keyed by the session subject, so it also requires a valid session.
    """

    async def _dependency(request: Request, auth: AuthContext = Depends(get_auth_context)) -> None:
        if getattr(request.app.state, "disable_rate_limits", False):
            return

        key = f"{KEY_NAMESPACE}:{prefix}:{auth.role}:{auth.user_id}"
        try:
            allowed, retry_after = await _consume_redis_quota(key, limit, window_seconds)
        except (RedisError, OSError) as exc:
            logger.debug("Redis quota unavailable for %s, using local window: %s", prefix, exc)
            allowed, retry_after = await _consume_local_quota(key, limit, window_seconds)

        if not allowed:
            raise HTTPException(
                status_code=429,
                detail=f"Rate limit exceeded for {prefix}. Try again later.",
                headers={"Retry-After": str(retry_after)},
            )

    return _dependency
