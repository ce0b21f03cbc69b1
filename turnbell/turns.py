from __future__ import annotations

import logging
import random
from dataclasses import dataclass

from turnbell.errors import InvalidInput
from turnbell.models import (
    GameSession,
    GameSessionWithPlayers,
    PlayerStatus,
    PlayerStatusValue,
    PushSubscription,
)
from turnbell.storage.base import StorageBackend


logger = logging.getLogger(__name__)

# No 0/O or 1/I: codes get read out loud and typed on phones.
SESSION_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
SESSION_CODE_LENGTH = 6

WAITING = "waiting"


@dataclass(frozen=True, slots=True)
class TurnHandoff:
    """Result of completing a turn.

    `subscription` is where the push transport should notify `next_steam_id`;
    None when that player never enabled notifications.
    """

    session: GameSession
    completed_by: PlayerStatus | None
    next_steam_id: str
    subscription: PushSubscription | None


def generate_session_code(length: int = SESSION_CODE_LENGTH, rng: random.Random | None = None) -> str:
    rng = rng or random.SystemRandom()
    return "".join(rng.choice(SESSION_CODE_ALPHABET) for _ in range(length))


def other_player(session: GameSession, steam_id: str) -> str:
    if steam_id == session.player1_steam_id:
        return session.player2_steam_id
    if steam_id == session.player2_steam_id:
        return session.player1_steam_id
    raise InvalidInput(f"{steam_id!r} is not a player in game {session.id}")


def status_label(status: PlayerStatus | None) -> str:
    """A player with no status record is shown as waiting."""

    if status is None:
        return WAITING
    return status.status.value


async def generate_unused_code(storage: StorageBackend, *, max_attempts: int = 10, rng: random.Random | None = None) -> str:
    for _ in range(max_attempts):
        code = generate_session_code(rng=rng)
        if await storage.get_game_session_by_code(code) is None:
            return code
    raise RuntimeError(f"Could not find an unused session code after {max_attempts} attempts")


async def create_session(
    storage: StorageBackend,
    *,
    name: str,
    player1_steam_id: str,
    player2_steam_id: str,
    code: str | None = None,
) -> GameSessionWithPlayers:
    """Create a session with player 1 to move, and mark the creator ready."""

    if code is None:
        code = await generate_unused_code(storage)

    session = await storage.create_game_session(
        {
            "name": name,
            "code": code,
            "player1_steam_id": player1_steam_id,
            "player2_steam_id": player2_steam_id,
            "current_turn": player1_steam_id,
        }
    )
    await storage.create_player_status(
        {
            "game_session_id": session.id,
            "steam_id": session.player1_steam_id,
            "status": PlayerStatusValue.ready,
        }
    )
    logger.info("Created game %s (code %s)", session.id, session.code)

    created = await storage.get_game_session_with_players(session.id)
    if created is None:
        raise RuntimeError(f"Game {session.id} vanished right after creation")
    return created


async def join_session(storage: StorageBackend, *, code: str, steam_id: str) -> GameSessionWithPlayers | None:
    session = await storage.get_game_session_with_players_by_code(code)
    if session is None:
        return None
    if not session.has_player(steam_id):
        raise InvalidInput("Steam ID does not match any player in this game")
    return session


async def complete_turn(storage: StorageBackend, *, game_session_id: str, steam_id: str) -> TurnHandoff | None:
    """Record that `steam_id` finished their turn and pass the turn to the other player.

    Returns None when the session does not exist.
    """

    session = await storage.get_game_session_by_id(game_session_id)
    if session is None:
        return None
    if session.current_turn != steam_id:
        raise InvalidInput("It is not this player's turn")

    next_steam_id = other_player(session, steam_id)
    completed_by = await storage.update_player_last_turn(game_session_id, steam_id)
    updated = await storage.update_game_session_turn(game_session_id, next_steam_id)
    if updated is None:
        return None

    subscription = await storage.get_subscription_by_steam_id(next_steam_id)
    logger.info("Game %s: turn passed from %s to %s", game_session_id, steam_id, next_steam_id)
    return TurnHandoff(
        session=updated,
        completed_by=completed_by,
        next_steam_id=next_steam_id,
        subscription=subscription,
    )
