from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any

import redis
from pydantic import BaseModel

from turnbell.errors import BackendUnavailable, InvalidInput
from turnbell.infra.documents import Document, DocumentCollection
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


logger = logging.getLogger(__name__)

GAME_SESSIONS = "game_sessions"
PLAYER_STATUSES = "player_statuses"
SUBSCRIPTIONS = "subscriptions"


@contextmanager
def _unavailable_on_redis_error(operation: str) -> Iterator[None]:
    try:
        yield
    except redis.exceptions.RedisError as e:
        logger.error("Redis error during %s: %s", operation, e)
        raise BackendUnavailable(f"{operation} failed: {e}") from e


def _to_doc(model: BaseModel, **extra: Any) -> dict[str, Any]:
    data = model.model_dump(mode="json", exclude={"id"})
    data.update(extra)
    return data


class RedisStorage:
    """Durable storage: three document collections in Redis.

    Lookups by code, steam id or (game_session_id, steam_id) are equality scans that
    stop at the first match. Upserts read, then write; they are not atomic.
    Any Redis failure surfaces as BackendUnavailable.
    """

    def __init__(self, *, r: redis.Redis, key_prefix: str = "turnbell") -> None:
        self._sessions = DocumentCollection(r=r, name=GAME_SESSIONS, prefix=key_prefix)
        self._statuses = DocumentCollection(r=r, name=PLAYER_STATUSES, prefix=key_prefix)
        self._subscriptions = DocumentCollection(r=r, name=SUBSCRIPTIONS, prefix=key_prefix)

    @staticmethod
    def _session_from_doc(doc: Document) -> GameSession:
        # `code_key` is a query helper stored alongside the session; pydantic drops it.
        return GameSession.model_validate({**doc.data, "id": doc.id})

    @staticmethod
    def _status_from_doc(doc: Document) -> PlayerStatus:
        return PlayerStatus.model_validate({**doc.data, "id": doc.id})

    @staticmethod
    def _subscription_from_doc(doc: Document) -> PushSubscription:
        return PushSubscription.model_validate({**doc.data, "id": doc.id})

    def _put_session(self, session: GameSession) -> None:
        self._sessions.put(session.id, _to_doc(session, code_key=normalize_code(session.code)))

    def _find_status_doc(self, game_session_id: str, steam_id: str) -> Document | None:
        return self._statuses.find_one(game_session_id=game_session_id, steam_id=steam_id)

    # Game sessions

    async def create_game_session(self, session: GameSessionCreate | Mapping[str, Any]) -> GameSession:
        payload = parse_input(GameSessionCreate, session)
        with _unavailable_on_redis_error("create_game_session"):
            if self._sessions.find_one(code_key=normalize_code(payload.code)) is not None:
                raise InvalidInput(f"Game code already in use: {payload.code}")
            created = GameSession(id=self._sessions.new_id(), created_at=utcnow(), **payload.model_dump())
            self._put_session(created)
        return created

    async def get_game_session_by_code(self, code: str) -> GameSession | None:
        with _unavailable_on_redis_error("get_game_session_by_code"):
            doc = self._sessions.find_one(code_key=normalize_code(code))
        return self._session_from_doc(doc) if doc is not None else None

    async def get_game_session_by_id(self, game_session_id: str) -> GameSession | None:
        with _unavailable_on_redis_error("get_game_session_by_id"):
            doc = self._sessions.get(game_session_id)
        return self._session_from_doc(doc) if doc is not None else None

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
        with _unavailable_on_redis_error("update_game_session_turn"):
            doc = self._sessions.get(game_session_id)
            if doc is None:
                return None
            session = self._session_from_doc(doc)
            if not session.has_player(current_turn):
                raise InvalidInput(f"{current_turn!r} is not a player in game {game_session_id}")
            updated = session.model_copy(update={"current_turn": current_turn})
            self._put_session(updated)
        return updated

    # Player statuses

    async def create_player_status(self, status: PlayerStatusCreate | Mapping[str, Any]) -> PlayerStatus:
        payload = parse_input(PlayerStatusCreate, status)
        with _unavailable_on_redis_error("create_player_status"):
            doc = self._find_status_doc(payload.game_session_id, payload.steam_id)
            if doc is not None:
                saved = self._status_from_doc(doc).model_copy(
                    update={**payload.supplied_fields(), "updated_at": utcnow()}
                )
            else:
                saved = PlayerStatus(id=self._statuses.new_id(), updated_at=utcnow(), **payload.model_dump())
            self._statuses.put(saved.id, _to_doc(saved))
        return saved

    async def get_player_status(self, game_session_id: str, steam_id: str) -> PlayerStatus | None:
        with _unavailable_on_redis_error("get_player_status"):
            doc = self._find_status_doc(game_session_id, steam_id)
        return self._status_from_doc(doc) if doc is not None else None

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

        with _unavailable_on_redis_error("update_player_status"):
            doc = self._find_status_doc(game_session_id, steam_id)
            if doc is not None:
                changes: dict[str, Any] = {"status": value, "updated_at": utcnow()}
                if message is not UNSET:
                    changes["message"] = message
                saved = self._status_from_doc(doc).model_copy(update=changes)
                self._statuses.put(saved.id, _to_doc(saved))
                return saved

        return await self.create_player_status(
            {
                "game_session_id": game_session_id,
                "steam_id": steam_id,
                "status": value,
                "message": None if message is UNSET else message,
            }
        )

    async def update_player_last_turn(self, game_session_id: str, steam_id: str) -> PlayerStatus | None:
        with _unavailable_on_redis_error("update_player_last_turn"):
            doc = self._find_status_doc(game_session_id, steam_id)
            if doc is None:
                return None
            now = utcnow()
            saved = self._status_from_doc(doc).model_copy(update={"last_turn_completed": now, "updated_at": now})
            self._statuses.put(saved.id, _to_doc(saved))
        return saved

    # Push subscriptions

    async def save_subscription(self, subscription: PushSubscriptionCreate | Mapping[str, Any]) -> PushSubscription:
        payload = parse_input(PushSubscriptionCreate, subscription)
        with _unavailable_on_redis_error("save_subscription"):
            doc = self._subscriptions.find_one(steam_id=payload.steam_id)
            if doc is not None:
                saved = self._subscription_from_doc(doc).model_copy(
                    update={**payload.model_dump(), "updated_at": utcnow()}
                )
            else:
                saved = PushSubscription(id=self._subscriptions.new_id(), created_at=utcnow(), **payload.model_dump())
            self._subscriptions.put(saved.id, _to_doc(saved))
        return saved

    async def get_subscription_by_steam_id(self, steam_id: str) -> PushSubscription | None:
        with _unavailable_on_redis_error("get_subscription_by_steam_id"):
            doc = self._subscriptions.find_one(steam_id=steam_id)
        return self._subscription_from_doc(doc) if doc is not None else None
