"""
Per-user real-time events over Redis Pub/Sub, streamed to browsers as SSE.

Features:
- Short per-user replay buffer in Redis
- Keepalive heartbeat every 30 seconds
- JWT revocation checking during streaming
"""

from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, AsyncGenerator
from uuid import UUID

import structlog
from fastapi import Request
from redis.exceptions import RedisError

from app.core.redis import get_redis

log = structlog.get_logger()

REDIS_PUBSUB_CHANNEL_PREFIX = "hearth:user-events:"
REDIS_BUFFER_KEY_PREFIX = "hearth:user-events:buffer:"
BUFFER_SIZE = 100
BUFFER_TTL_SECONDS = 86400
HEARTBEAT_INTERVAL = 30  # seconds


def _channel(user_id: UUID) -> str:
    return f"{REDIS_PUBSUB_CHANNEL_PREFIX}{user_id}"


async def publish_user_event(user_id: UUID, event_type: str, payload: dict[str, Any]) -> bool:
    """
    Buffer and publish an event for one user.

    Returns False when Redis is unavailable; the error is logged, not raised.
    """
    event_data = {
        "type": event_type,
        "user_id": str(user_id),
        "payload": payload,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    event_json = json.dumps(event_data, default=str)
    buffer_key = f"{REDIS_BUFFER_KEY_PREFIX}{user_id}"

    try:
        redis = await get_redis()
        async with redis.pipeline() as pipe:
            pipe.lpush(buffer_key, event_json)
            pipe.ltrim(buffer_key, 0, BUFFER_SIZE - 1)
            pipe.expire(buffer_key, BUFFER_TTL_SECONDS)
            await pipe.execute()
        await redis.publish(_channel(user_id), event_json)
    except (RedisError, OSError):
        log.warning("events.publish_failed", user_id=str(user_id), event_type=event_type, exc_info=True)
        return False
    return True


async def recent_user_events(user_id: UUID, limit: int = 20) -> list[dict]:
    """Most recent buffered events for a user, oldest first."""
    redis = await get_redis()
    raw_events = await redis.lrange(f"{REDIS_BUFFER_KEY_PREFIX}{user_id}", 0, limit - 1)
    return [json.loads(raw) for raw in reversed(raw_events)]


async def _check_jwt_revoked(jti: str | None) -> bool:
    if not jti:
        return False
    redis = await get_redis()
    return await redis.exists(f"jwt:revoked:{jti}") > 0


async def user_event_generator(
    request: Request,
    user_id: UUID,
    jti: str | None = None,
    replay: bool = False,
) -> AsyncGenerator[dict | str, None]:
    """
    SSE generator for one user's events with heartbeat and revocation checks.
    """
    redis = await get_redis()
    pubsub = redis.pubsub()
    await pubsub.subscribe(_channel(user_id))

    try:
        if replay:
            for event_data in await recent_user_events(user_id):
                yield {"event": event_data["type"], "data": json.dumps(event_data)}

        loop = asyncio.get_running_loop()
        last_sent = loop.time()
        revocation_check_counter = 0
        while True:
            if await request.is_disconnected():
                break

            # roughly every 10s
            revocation_check_counter += 1
            if revocation_check_counter >= 10 and jti:
                revocation_check_counter = 0
                if await _check_jwt_revoked(jti):
                    yield {
                        "event": "session.revoked",
                        "data": json.dumps({"reason": "credential_revoked"}),
                    }
                    break

            try:
                message = await asyncio.wait_for(
                    pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0),
                    timeout=HEARTBEAT_INTERVAL,
                )
            except asyncio.TimeoutError:
                message = None

            if message is None:
                if loop.time() - last_sent >= HEARTBEAT_INTERVAL:
                    last_sent = loop.time()
                    yield ": heartbeat\n\n"
                continue

            if message["type"] == "message":
                event_data = json.loads(message["data"])
                last_sent = loop.time()
                yield {"event": event_data["type"], "data": message["data"]}

    except asyncio.CancelledError:
        log.info("events.stream_cancelled", user_id=str(user_id))
        raise
    finally:
        await pubsub.unsubscribe(_channel(user_id))
        await pubsub.aclose()
