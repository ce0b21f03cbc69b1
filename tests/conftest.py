from __future__ import annotations

import os
from collections.abc import Callable, Generator
from pathlib import Path

import fakeredis
import pytest

from turnbell.storage.base import StorageBackend
from turnbell.storage.durable import RedisStorage
from turnbell.storage.fallback import FallbackStorage
from turnbell.storage.memory import MemoryStorage
from turnbell.storage.singleton import reset_storage_for_tests


@pytest.fixture(scope="session", autouse=True)
def _load_dotenv_for_tests() -> None:
    """Load repo .env for local runs.

    This makes REDIS_URL / TURNBELL_REDIS_INTEGRATION available to the live Redis test
    without exporting them in your shell. In CI, `.env` is not loaded unless
    TURNBELL_LOAD_DOTENV_FOR_TESTS=1, so the integration test stays skipped.
    """

    if os.environ.get("CI") and os.environ.get("TURNBELL_LOAD_DOTENV_FOR_TESTS") != "1":
        return

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        from dotenv import load_dotenv

        load_dotenv(dotenv_path=env_path, override=False)


@pytest.fixture(autouse=True)
def _reset_storage_singleton() -> Generator[None, None, None]:
    reset_storage_for_tests()
    yield
    reset_storage_for_tests()


@pytest.fixture()
def redis_server() -> fakeredis.FakeServer:
    """Flip `redis_server.connected = False` to simulate an outage."""

    return fakeredis.FakeServer()


@pytest.fixture()
def r(redis_server: fakeredis.FakeServer) -> fakeredis.FakeRedis:
    return fakeredis.FakeRedis(server=redis_server, decode_responses=True)


@pytest.fixture()
def redis_storage(r: fakeredis.FakeRedis) -> RedisStorage:
    return RedisStorage(r=r, key_prefix="test")


@pytest.fixture()
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture()
def fallback_storage(redis_storage: RedisStorage, memory_storage: MemoryStorage) -> FallbackStorage:
    return FallbackStorage(durable=redis_storage, volatile=memory_storage)


@pytest.fixture(params=["redis", "memory"])
def backend(request: pytest.FixtureRequest) -> StorageBackend:
    """Each backend on its own; contract tests run once per backend."""

    if request.param == "redis":
        return RedisStorage(r=fakeredis.FakeRedis(decode_responses=True))
    return MemoryStorage()


@pytest.fixture()
def make_session() -> Callable[..., dict[str, str]]:
    """Build a create_game_session payload; keyword overrides replace fields."""

    def _make(**overrides: str) -> dict[str, str]:
        data = {
            "name": "Game A",
            "code": "ABC123",
            "player1_steam_id": "P1",
            "player2_steam_id": "P2",
            "current_turn": "P1",
        }
        data.update(overrides)
        return data

    return _make
