from __future__ import annotations

import logging
import os
from dataclasses import dataclass


MEMORY_URL = "memory://"


@dataclass(frozen=True, slots=True)
class StorageSettings:
    # None => no durable store configured; storage starts in memory mode.
    redis_url: str | None
    key_prefix: str = "turnbell"
    # Socket timeout in seconds for the Redis client. None waits indefinitely.
    redis_timeout: float | None = None

    @property
    def durable_configured(self) -> bool:
        return self.redis_url is not None


def settings_from_env() -> StorageSettings:
    url = os.environ.get("REDIS_URL", "").strip()
    if not url or url == MEMORY_URL:
        redis_url = None
    else:
        redis_url = url

    raw_timeout = os.environ.get("TURNBELL_REDIS_TIMEOUT", "").strip()
    try:
        timeout = float(raw_timeout) if raw_timeout else None
    except ValueError as e:
        raise RuntimeError(f"TURNBELL_REDIS_TIMEOUT must be a number of seconds, got {raw_timeout!r}") from e

    return StorageSettings(
        redis_url=redis_url,
        key_prefix=os.environ.get("TURNBELL_KEY_PREFIX", "turnbell").strip() or "turnbell",
        redis_timeout=timeout,
    )


def configure_logging(level: str | int | None = None) -> None:
    if level is None:
        level = os.environ.get("TURNBELL_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
