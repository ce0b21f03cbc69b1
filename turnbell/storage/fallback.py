from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import StrEnum
from typing import Any

from statemachine import State, StateMachine

from turnbell.errors import BackendUnavailable
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
)
from turnbell.storage.base import StorageBackend


logger = logging.getLogger(__name__)


class StorageMode(StrEnum):
    durable = "durable"
    volatile = "volatile"


class StorageModeMachine(StateMachine):
    """durable -> volatile, once. There is no way back."""

    durable = State(StorageMode.durable.value, value=StorageMode.durable.value, initial=True)
    volatile = State(StorageMode.volatile.value, value=StorageMode.volatile.value, final=True)

    degrade = durable.to(volatile)


class FallbackStorage:
    """Serve the storage contract from the durable backend while it works.

    The first BackendUnavailable flips the mode to volatile for the rest of the
    process: the failed call is re-run against the volatile backend and every later
    call goes straight there. Callers therefore never see BackendUnavailable.
    Other errors (InvalidInput included) propagate untouched and do not flip the mode.

    There is no locking. The flip happens without an await between the check and
    the transition, so overlapping failures degrade exactly once.
    """

    def __init__(
        self,
        *,
        durable: StorageBackend | None,
        volatile: StorageBackend,
        start_durable: bool = True,
    ) -> None:
        self._durable = durable
        self._volatile = volatile
        self._mode = StorageModeMachine()
        if durable is None or not start_durable:
            self._mode.degrade()

    @property
    def mode(self) -> StorageMode:
        return StorageMode(str(self._mode.current_state.value))

    @property
    def using_durable(self) -> bool:
        return self.mode == StorageMode.durable

    @property
    def active_backend(self) -> StorageBackend:
        if self.using_durable and self._durable is not None:
            return self._durable
        return self._volatile

    def _degrade(self, error: BackendUnavailable) -> None:
        if not self.using_durable:
            return
        logger.warning("Durable storage unavailable, falling back to in-memory storage: %s", error)
        self._mode.degrade()

    async def _call(self, operation: str, *args: Any) -> Any:
        if self.using_durable and self._durable is not None:
            try:
                return await getattr(self._durable, operation)(*args)
            except BackendUnavailable as e:
                self._degrade(e)
        return await getattr(self._volatile, operation)(*args)

    # Game sessions

    async def create_game_session(self, session: GameSessionCreate | Mapping[str, Any]) -> GameSession:
        return await self._call("create_game_session", session)

    async def get_game_session_by_code(self, code: str) -> GameSession | None:
        return await self._call("get_game_session_by_code", code)

    async def get_game_session_by_id(self, game_session_id: str) -> GameSession | None:
        return await self._call("get_game_session_by_id", game_session_id)

    async def get_game_session_with_players(self, game_session_id: str) -> GameSessionWithPlayers | None:
        return await self._call("get_game_session_with_players", game_session_id)

    async def get_game_session_with_players_by_code(self, code: str) -> GameSessionWithPlayers | None:
        return await self._call("get_game_session_with_players_by_code", code)

    async def update_game_session_turn(self, game_session_id: str, current_turn: str) -> GameSession | None:
        return await self._call("update_game_session_turn", game_session_id, current_turn)

    # Player statuses

    async def create_player_status(self, status: PlayerStatusCreate | Mapping[str, Any]) -> PlayerStatus:
        return await self._call("create_player_status", status)

    async def get_player_status(self, game_session_id: str, steam_id: str) -> PlayerStatus | None:
        return await self._call("get_player_status", game_session_id, steam_id)

    async def update_player_status(
        self,
        game_session_id: str,
        steam_id: str,
        status: PlayerStatusValue | str,
        message: str | None = UNSET,
    ) -> PlayerStatus:
        return await self._call("update_player_status", game_session_id, steam_id, status, message)

    async def update_player_last_turn(self, game_session_id: str, steam_id: str) -> PlayerStatus | None:
        return await self._call("update_player_last_turn", game_session_id, steam_id)

    # Push subscriptions

    async def save_subscription(self, subscription: PushSubscriptionCreate | Mapping[str, Any]) -> PushSubscription:
        return await self._call("save_subscription", subscription)

    async def get_subscription_by_steam_id(self, steam_id: str) -> PushSubscription | None:
        return await self._call("get_subscription_by_steam_id", steam_id)
