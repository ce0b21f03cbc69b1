from __future__ import annotations

import redis

from turnbell.config import StorageSettings


def create_redis(settings: StorageSettings) -> redis.Redis:
    if settings.redis_url is None:
        raise RuntimeError("No REDIS_URL configured")
    # decode_responses=True => strings in/out instead of bytes
    return redis.Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.redis_timeout,
        socket_connect_timeout=settings.redis_timeout,
    )
