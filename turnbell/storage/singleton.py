from __future__ import annotations

import logging

import redis

from turnbell.config import StorageSettings, settings_from_env
from turnbell.infra.redis_client import create_redis
from turnbell.storage.durable import RedisStorage
from turnbell.storage.fallback import FallbackStorage
from turnbell.storage.memory import MemoryStorage


logger = logging.getLogger(__name__)

_STORAGE: FallbackStorage | None = None


def build_storage(settings: StorageSettings, *, r: redis.Redis | None = None) -> FallbackStorage:
    """Wire a FallbackStorage from settings.

    Pass `r` to reuse an existing client (tests hand in fakeredis). Without a client
    and without a configured REDIS_URL the storage starts in volatile mode.
    """

    if r is None and settings.durable_configured:
        r = create_redis(settings)

    durable = RedisStorage(r=r, key_prefix=settings.key_prefix) if r is not None else None
    return FallbackStorage(durable=durable, volatile=MemoryStorage())


def init_storage(settings: StorageSettings | None = None, *, r: redis.Redis | None = None) -> FallbackStorage:
    """Build the process-wide storage once and cache it.

    Safe to call multiple times; subsequent calls return the already built instance.
    """

    global _STORAGE
    if _STORAGE is None:
        _STORAGE = build_storage(settings or settings_from_env(), r=r)
        logger.info("Storage initialized in %s mode", _STORAGE.mode.value)
    return _STORAGE


def reset_storage_for_tests() -> None:
    global _STORAGE
    _STORAGE = None


def get_storage() -> FallbackStorage:
    if _STORAGE is None:
        raise RuntimeError("Storage not initialized. Call init_storage() at startup.")
    return _STORAGE
