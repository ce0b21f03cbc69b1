from __future__ import annotations

from collections.abc import Callable

import pytest

from turnbell.errors import InvalidInput
from turnbell.models import GameSessionCreate, PlayerStatusCreate, PlayerStatusValue
from turnbell.storage.base import StorageBackend


MakeSession = Callable[..., dict[str, str]]


@pytest.mark.asyncio
async def test_create_then_get_by_code_returns_same_session(backend: StorageBackend, make_session: MakeSession) -> None:
    created = await backend.create_game_session(make_session())

    assert created.id
    assert created.created_at is not None

    fetched = await backend.get_game_session_by_code("ABC123")
    assert fetched is not None
    assert fetched.model_dump() == created.model_dump()

    by_id = await backend.get_game_session_by_id(created.id)
    assert by_id is not None
    assert by_id.model_dump() == created.model_dump()


@pytest.mark.asyncio
async def test_accepts_pydantic_input(backend: StorageBackend) -> None:
    payload = GameSessionCreate(name="Game B", code="XYZ789", player1_steam_id="A", player2_steam_id="B")
    created = await backend.create_game_session(payload)
    # Creator moves first when current_turn is omitted.
    assert created.current_turn == "A"


@pytest.mark.asyncio
async def test_code_lookup_is_case_insensitive(backend: StorageBackend, make_session: MakeSession) -> None:
    created = await backend.create_game_session(make_session(code="AbC123"))

    fetched = await backend.get_game_session_by_code("abc123")
    assert fetched is not None
    assert fetched.id == created.id
    # Stored exactly as supplied.
    assert fetched.code == "AbC123"


@pytest.mark.asyncio
async def test_duplicate_code_is_rejected(backend: StorageBackend, make_session: MakeSession) -> None:
    await backend.create_game_session(make_session())
    with pytest.raises(InvalidInput):
        await backend.create_game_session(make_session(code="abc123", name="Other"))


@pytest.mark.asyncio
async def test_missing_lookups_return_none(backend: StorageBackend) -> None:
    assert await backend.get_game_session_by_code("NOPE") is None
    assert await backend.get_game_session_by_id("missing") is None
    assert await backend.get_game_session_with_players("missing") is None
    assert await backend.get_game_session_with_players_by_code("NOPE") is None
    assert await backend.get_player_status("missing", "P1") is None
    assert await backend.get_subscription_by_steam_id("P1") is None


@pytest.mark.asyncio
async def test_session_with_players_end_to_end(backend: StorageBackend, make_session: MakeSession) -> None:
    session = await backend.create_game_session(make_session())
    await backend.create_player_status({"game_session_id": session.id, "steam_id": "P1", "status": "ready"})

    game = await backend.get_game_session_with_players_by_code("ABC123")

    assert game is not None
    assert game.id == session.id
    assert game.player1_status is not None
    assert game.player1_status.status == "ready"
    assert game.player2_status is None


@pytest.mark.asyncio
async def test_update_turn(backend: StorageBackend, make_session: MakeSession) -> None:
    session = await backend.create_game_session(make_session())

    updated = await backend.update_game_session_turn(session.id, "P2")
    assert updated is not None
    assert updated.current_turn == "P2"

    fetched = await backend.get_game_session_by_id(session.id)
    assert fetched is not None
    assert fetched.current_turn == "P2"
    assert fetched.code == "ABC123"


@pytest.mark.asyncio
async def test_update_turn_missing_session_is_noop(backend: StorageBackend) -> None:
    assert await backend.update_game_session_turn("missing", "P2") is None


@pytest.mark.asyncio
async def test_update_turn_rejects_non_player(backend: StorageBackend, make_session: MakeSession) -> None:
    session = await backend.create_game_session(make_session())
    with pytest.raises(InvalidInput):
        await backend.update_game_session_turn(session.id, "P3")

    fetched = await backend.get_game_session_by_id(session.id)
    assert fetched is not None
    assert fetched.current_turn == "P1"


@pytest.mark.asyncio
async def test_create_player_status_defaults(backend: StorageBackend) -> None:
    created = await backend.create_player_status({"game_session_id": "g1", "steam_id": "P1", "status": "busy"})

    assert created.status == PlayerStatusValue.busy
    assert created.message is None
    assert created.last_turn_completed is None
    assert created.updated_at is not None


@pytest.mark.asyncio
async def test_create_player_status_keeps_explicit_message(backend: StorageBackend) -> None:
    created = await backend.create_player_status(
        PlayerStatusCreate(game_session_id="g1", steam_id="P1", status=PlayerStatusValue.busy, message="at work")
    )
    assert created.message == "at work"


@pytest.mark.asyncio
async def test_create_player_status_twice_merges_into_one_record(backend: StorageBackend) -> None:
    first = await backend.create_player_status(
        {"game_session_id": "g1", "steam_id": "P1", "status": "ready", "message": "hi"}
    )
    second = await backend.create_player_status({"game_session_id": "g1", "steam_id": "P1", "status": "busy"})

    assert second.id == first.id
    assert second.status == PlayerStatusValue.busy
    # Not supplied on the second call, so the merge keeps it.
    assert second.message == "hi"
    assert second.updated_at >= first.updated_at

    stored = await backend.get_player_status("g1", "P1")
    assert stored is not None
    assert stored.model_dump() == second.model_dump()


@pytest.mark.asyncio
async def test_player_status_key_needs_both_fields(backend: StorageBackend) -> None:
    await backend.create_player_status({"game_session_id": "g1", "steam_id": "P1", "status": "ready"})
    await backend.create_player_status({"game_session_id": "g2", "steam_id": "P2", "status": "busy"})

    assert await backend.get_player_status("g1", "P2") is None
    assert await backend.get_player_status("g2", "P1") is None


@pytest.mark.asyncio
async def test_update_player_status_without_message_keeps_message(backend: StorageBackend) -> None:
    await backend.update_player_status("g1", "P2", "busy", "afk")
    final = await backend.update_player_status("g1", "P2", "ready")

    assert final.status == PlayerStatusValue.ready
    assert final.message == "afk"

    stored = await backend.get_player_status("g1", "P2")
    assert stored is not None
    assert stored.message == "afk"
    assert stored.status == "ready"


@pytest.mark.asyncio
async def test_update_player_status_with_none_clears_message(backend: StorageBackend) -> None:
    await backend.update_player_status("g1", "P2", "busy", "afk")
    final = await backend.update_player_status("g1", "P2", "ready", None)

    assert final.message is None


@pytest.mark.asyncio
async def test_update_player_status_creates_missing_record(backend: StorageBackend) -> None:
    created = await backend.update_player_status("g1", "P1", PlayerStatusValue.unavailable)

    assert created.status == PlayerStatusValue.unavailable
    assert created.message is None
    assert await backend.get_player_status("g1", "P1") is not None


@pytest.mark.asyncio
async def test_update_player_status_rejects_unknown_status(backend: StorageBackend) -> None:
    with pytest.raises(InvalidInput):
        await backend.update_player_status("g1", "P1", "waiting")
    assert await backend.get_player_status("g1", "P1") is None


@pytest.mark.asyncio
async def test_update_last_turn(backend: StorageBackend) -> None:
    await backend.create_player_status({"game_session_id": "g1", "steam_id": "P1", "status": "ready"})

    updated = await backend.update_player_last_turn("g1", "P1")

    assert updated is not None
    assert updated.last_turn_completed is not None
    assert updated.last_turn_completed == updated.updated_at


@pytest.mark.asyncio
async def test_update_last_turn_missing_record_creates_nothing(backend: StorageBackend) -> None:
    assert await backend.update_player_last_turn("g1", "P1") is None
    assert await backend.get_player_status("g1", "P1") is None


@pytest.mark.asyncio
async def test_save_subscription_twice_overwrites(backend: StorageBackend) -> None:
    first = await backend.save_subscription(
        {"steam_id": "P1", "endpoint": "https://push.example/one", "p256dh": "key1", "auth": "auth1"}
    )
    second = await backend.save_subscription(
        {"steam_id": "P1", "endpoint": "https://push.example/two", "p256dh": "key2", "auth": "auth2"}
    )

    assert second.id == first.id
    assert second.created_at == first.created_at
    assert second.updated_at is not None

    stored = await backend.get_subscription_by_steam_id("P1")
    assert stored is not None
    assert stored.endpoint == "https://push.example/two"
    assert stored.p256dh == "key2"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "bad",
    [
        {"name": "x", "code": "C1", "player1_steam_id": "P1", "player2_steam_id": "P1"},
        {"name": "x", "code": "C1", "player1_steam_id": "P1", "player2_steam_id": "P2", "current_turn": "P3"},
        {"name": "", "code": "C1", "player1_steam_id": "P1", "player2_steam_id": "P2"},
        {"name": "x", "code": "  ", "player1_steam_id": "P1", "player2_steam_id": "P2"},
        {"name": "x", "player1_steam_id": "P1", "player2_steam_id": "P2"},
    ],
)
async def test_create_game_session_rejects_bad_input(backend: StorageBackend, bad: dict[str, str]) -> None:
    with pytest.raises(InvalidInput):
        await backend.create_game_session(bad)


@pytest.mark.asyncio
async def test_save_subscription_rejects_missing_fields(backend: StorageBackend) -> None:
    with pytest.raises(InvalidInput):
        await backend.save_subscription({"steam_id": "P1", "endpoint": "https://push.example/one"})
