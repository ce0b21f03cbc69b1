from __future__ import annotations

import itertools
from collections.abc import Mapping
from typing import Any

from turnbell.errors import InvalidInput
from turnbell.models import (
    UNSET,
    GameSession,
    GameSessionCreate,
    GameSessionWithPlayers,
    PlayerStatus,
    PlayerStatusCreate,
    PlayerStatusValue,
    PushSubscription,
    PushSubscriptionCreate,
    normalize_code,
    parse_input,
    parse_message,
    parse_status,
    utcnow,
)


class MemoryStorage:
    """Process-local storage; nothing survives a restart.

    Records live in insertion-ordered lists and are found by linear scan. Callers get
    copies, so the only way to change a stored record is through these methods.
    """

    def __init__(self) -> None:
        self._game_sessions: list[GameSession] = []
        self._player_statuses: list[PlayerStatus] = []
        self._subscriptions: list[PushSubscription] = []
        self._ids = itertools.count(1)

    def _next_id(self) -> str:
        return str(next(self._ids))

    def _session_index(self, game_session_id: str) -> int | None:
        return next((i for i, s in enumerate(self._game_sessions) if s.id == game_session_id), None)

    def _status_index(self, game_session_id: str, steam_id: str) -> int | None:
        return next(
            (
                i
                for i, s in enumerate(self._player_statuses)
                if s.game_session_id == game_session_id and s.steam_id == steam_id
            ),
            None,
        )

    def _subscription_index(self, steam_id: str) -> int | None:
        return next((i for i, s in enumerate(self._subscriptions) if s.steam_id == steam_id), None)

    # Game sessions

    async def create_game_session(self, session: GameSessionCreate | Mapping[str, Any]) -> GameSession:
        payload = parse_input(GameSessionCreate, session)
        if await self.get_game_session_by_code(payload.code) is not None:
            raise InvalidInput(f"Game code already in use: {payload.code}")
        created = GameSession(id=self._next_id(), created_at=utcnow(), **payload.model_dump())
        self._game_sessions.append(created)
        return created.model_copy()

    async def get_game_session_by_code(self, code: str) -> GameSession | None:
        key = normalize_code(code)
        found = next((s for s in self._game_sessions if normalize_code(s.code) == key), None)
        return found.model_copy() if found is not None else None

    async def get_game_session_by_id(self, game_session_id: str) -> GameSession | None:
        idx = self._session_index(game_session_id)
        return self._game_sessions[idx].model_copy() if idx is not None else None

    async def _with_players(self, session: GameSession) -> GameSessionWithPlayers:
        player1_status = await self.get_player_status(session.id, session.player1_steam_id)
        player2_status = await self.get_player_status(session.id, session.player2_steam_id)
        return GameSessionWithPlayers.compose(session, player1_status, player2_status)

    async def get_game_session_with_players(self, game_session_id: str) -> GameSessionWithPlayers | None:
        session = await self.get_game_session_by_id(game_session_id)
        if session is None:
            return None
        return await self._with_players(session)

    async def get_game_session_with_players_by_code(self, code: str) -> GameSessionWithPlayers | None:
        session = await self.get_game_session_by_code(code)
        if session is None:
            return None
        return await self._with_players(session)

    async def update_game_session_turn(self, game_session_id: str, current_turn: str) -> GameSession | None:
        idx = self._session_index(game_session_id)
        if idx is None:
            return None
        session = self._game_sessions[idx]
        if not session.has_player(current_turn):
            raise InvalidInput(f"{current_turn!r} is not a player in game {game_session_id}")
        self._game_sessions[idx] = session.model_copy(update={"current_turn": current_turn})
        return self._game_sessions[idx].model_copy()

    # Player statuses

    async def create_player_status(self, status: PlayerStatusCreate | Mapping[str, Any]) -> PlayerStatus:
        payload = parse_input(PlayerStatusCreate, status)
        idx = self._status_index(payload.game_session_id, payload.steam_id)
        if idx is not None:
            self._player_statuses[idx] = self._player_statuses[idx].model_copy(
                update={**payload.supplied_fields(), "updated_at": utcnow()}
            )
            return self._player_statuses[idx].model_copy()

        created = PlayerStatus(id=self._next_id(), updated_at=utcnow(), **payload.model_dump())
        self._player_statuses.append(created)
        return created.model_copy()

    async def get_player_status(self, game_session_id: str, steam_id: str) -> PlayerStatus | None:
        idx = self._status_index(game_session_id, steam_id)
        return self._player_statuses[idx].model_copy() if idx is not None else None

    async def update_player_status(
        self,
        game_session_id: str,
        steam_id: str,
        status: PlayerStatusValue | str,
        message: str | None = UNSET,
    ) -> PlayerStatus:
        value = parse_status(status)
        if message is not UNSET:
            message = parse_message(message)

        idx = self._status_index(game_session_id, steam_id)
        if idx is None:
            return await self.create_player_status(
                {
                    "game_session_id": game_session_id,
                    "steam_id": steam_id,
                    "status": value,
                    "message": None if message is UNSET else message,
                }
            )

        changes: dict[str, Any] = {"status": value, "updated_at": utcnow()}
        if message is not UNSET:
            changes["message"] = message
        self._player_statuses[idx] = self._player_statuses[idx].model_copy(update=changes)
        return self._player_statuses[idx].model_copy()

    async def update_player_last_turn(self, game_session_id: str, steam_id: str) -> PlayerStatus | None:
        idx = self._status_index(game_session_id, steam_id)
        if idx is None:
            return None
        now = utcnow()
        self._player_statuses[idx] = self._player_statuses[idx].model_copy(
            update={"last_turn_completed": now, "updated_at": now}
        )
        return self._player_statuses[idx].model_copy()

    # Push subscriptions

    async def save_subscription(self, subscription: PushSubscriptionCreate | Mapping[str, Any]) -> PushSubscription:
        payload = parse_input(PushSubscriptionCreate, subscription)
        idx = self._subscription_index(payload.steam_id)
        if idx is not None:
            self._subscriptions[idx] = self._subscriptions[idx].model_copy(
                update={**payload.model_dump(), "updated_at": utcnow()}
            )
            return self._subscriptions[idx].model_copy()

        created = PushSubscription(id=self._next_id(), created_at=utcnow(), **payload.model_dump())
        self._subscriptions.append(created)
        return created.model_copy()

    async def get_subscription_by_steam_id(self, steam_id: str) -> PushSubscription | None:
        idx = self._subscription_index(steam_id)
        return self._subscriptions[idx].model_copy() if idx is not None else None
