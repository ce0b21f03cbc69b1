"""Storage contract, its Redis and in-memory backends, and the fallback coordinator."""

from turnbell.storage.base import StorageBackend
from turnbell.storage.durable import RedisStorage
from turnbell.storage.fallback import FallbackStorage, StorageMode
from turnbell.storage.memory import MemoryStorage
from turnbell.storage.singleton import get_storage, init_storage

__all__ = [
    "FallbackStorage",
    "MemoryStorage",
    "RedisStorage",
    "StorageBackend",
    "StorageMode",
    "get_storage",
    "init_storage",
]
