"""Storage contract shared by every backend.

`RedisStorage` (durable), `MemoryStorage` (volatile) and the `FallbackStorage`
coordinator all implement it, so callers never need to know which one serves them.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

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


class StorageBackend(Protocol):
    """Every method may suspend on I/O. Absent records are returned as None, never raised."""

    async def create_game_session(self, session: GameSessionCreate | Mapping[str, Any]) -> GameSession:
        """Assign id/created_at and store. Duplicate codes raise InvalidInput."""
        ...

    async def get_game_session_by_code(self, code: str) -> GameSession | None:
        ...

    async def get_game_session_by_id(self, game_session_id: str) -> GameSession | None:
        ...

    async def get_game_session_with_players(self, game_session_id: str) -> GameSessionWithPlayers | None:
        """Session plus both players' statuses. No status lookups when the session is absent."""
        ...

    async def get_game_session_with_players_by_code(self, code: str) -> GameSessionWithPlayers | None:
        ...

    async def update_game_session_turn(self, game_session_id: str, current_turn: str) -> GameSession | None:
        ...

    async def create_player_status(self, status: PlayerStatusCreate | Mapping[str, Any]) -> PlayerStatus:
        """Upsert by (game_session_id, steam_id), merging only the supplied fields."""
        ...

    async def get_player_status(self, game_session_id: str, steam_id: str) -> PlayerStatus | None:
        ...

    async def update_player_status(
        self,
        game_session_id: str,
        steam_id: str,
        status: PlayerStatusValue | str,
        message: str | None = UNSET,
    ) -> PlayerStatus:
        """Set status; overwrite message only when passed (None clears it)."""
        ...

    async def update_player_last_turn(self, game_session_id: str, steam_id: str) -> PlayerStatus | None:
        ...

    async def save_subscription(self, subscription: PushSubscriptionCreate | Mapping[str, Any]) -> PushSubscription:
        """Upsert by steam_id."""
        ...

    async def get_subscription_by_steam_id(self, steam_id: str) -> PushSubscription | None:
        ...
