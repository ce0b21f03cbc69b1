from __future__ import annotations

from collections.abc import Mapping
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from turnbell.errors import InvalidInput


ModelT = TypeVar("ModelT", bound=BaseModel)


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


def normalize_code(code: str) -> str:
    """Session codes are typed by humans; compare them case-insensitively."""

    return code.strip().casefold()


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


# Marks an argument the caller did not pass, as opposed to an explicit None.
UNSET: Any = _Unset()


class PlayerStatusValue(StrEnum):
    ready = "ready"
    busy = "busy"
    unavailable = "unavailable"


def parse_status(value: PlayerStatusValue | str) -> PlayerStatusValue:
    try:
        return PlayerStatusValue(value)
    except ValueError as e:
        raise InvalidInput(f"Unknown player status: {value!r}") from e


def parse_message(message: Any) -> str | None:
    if message is None or isinstance(message, str):
        return message
    raise InvalidInput(f"Status message must be a string or None, got {type(message).__name__}")


def parse_input(model: type[ModelT], data: ModelT | Mapping[str, Any]) -> ModelT:
    """Coerce caller input into `model`, reporting bad data as InvalidInput."""

    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidInput(str(e)) from e


class GameSessionCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    code: str = Field(..., min_length=1, max_length=32)
    player1_steam_id: str = Field(..., min_length=1)
    player2_steam_id: str = Field(..., min_length=1)

    # The session creator moves first unless told otherwise.
    current_turn: str | None = None

    @model_validator(mode="after")
    def _check_players(self) -> GameSessionCreate:
        if self.player1_steam_id == self.player2_steam_id:
            raise ValueError("player1_steam_id and player2_steam_id must differ")
        if self.current_turn is None:
            self.current_turn = self.player1_steam_id
        elif self.current_turn not in (self.player1_steam_id, self.player2_steam_id):
            raise ValueError("current_turn must be one of the session's players")
        return self


class GameSession(BaseModel):
    id: str
    name: str
    code: str
    player1_steam_id: str
    player2_steam_id: str
    current_turn: str
    created_at: datetime

    @property
    def players(self) -> tuple[str, str]:
        return (self.player1_steam_id, self.player2_steam_id)

    def has_player(self, steam_id: str) -> bool:
        return steam_id in self.players


class PlayerStatusCreate(BaseModel):
    game_session_id: str = Field(..., min_length=1)
    steam_id: str = Field(..., min_length=1)
    status: PlayerStatusValue
    message: str | None = None
    last_turn_completed: datetime | None = None

    def supplied_fields(self) -> dict[str, Any]:
        """Only the fields the caller set explicitly; these are what an upsert merges."""

        return self.model_dump(exclude_unset=True)


class PlayerStatus(BaseModel):
    id: str
    game_session_id: str
    steam_id: str
    status: PlayerStatusValue
    message: str | None = None
    last_turn_completed: datetime | None = None
    updated_at: datetime


class GameSessionWithPlayers(GameSession):
    # None means the player has not reported yet ("waiting" in the UI).
    player1_status: PlayerStatus | None = None
    player2_status: PlayerStatus | None = None

    @classmethod
    def compose(
        cls,
        session: GameSession,
        player1_status: PlayerStatus | None,
        player2_status: PlayerStatus | None,
    ) -> GameSessionWithPlayers:
        return cls(
            **session.model_dump(),
            player1_status=player1_status,
            player2_status=player2_status,
        )


class PushSubscriptionCreate(BaseModel):
    # Credential fields come from the browser push API and are stored verbatim.
    steam_id: str = Field(..., min_length=1)
    endpoint: str
    p256dh: str
    auth: str


class PushSubscription(BaseModel):
    id: str
    steam_id: str
    endpoint: str
    p256dh: str
    auth: str
    created_at: datetime
    updated_at: datetime | None = None
