"""Shared Redis client for pub/sub fan-out and the JWT revocation list."""

from __future__ import annotations

import redis.asyncio as redis
import structlog

from app.core.config import get_settings

log = structlog.get_logger()
settings = get_settings()

_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    """Return the process-wide client, creating it on first use."""
    global _client
    if _client is None:
        _client = redis.from_url(
            settings.redis_url,
            decode_responses=True,
            socket_connect_timeout=2,
            health_check_interval=30,
        )
    return _client


async def close_redis() -> None:
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None
        log.info("redis.closed")
