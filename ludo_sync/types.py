from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Type, TypeVar

from .config import config

T = TypeVar("T")
U = TypeVar("U")


class GameError(str, Enum):
    """Domain failures. Values are the symbolic names used on the wire."""

    INVALID_TOKEN_INDEX = "InvalidTokenIndex"
    INVALID_PLAYER_INDEX = "InvalidPlayerIndex"
    INVALID_DICE_ROLL = "InvalidDiceRoll"
    INVALID_COMMAND_FOR_TURN = "InvalidCommandForTurn"
    INVALID_POSITION_VALUE = "InvalidPositionValue"
    TOKEN_NOT_MOVABLE = "TokenNotMovable"
    TOKEN_ALREADY_HOME = "TokenAlreadyHome"
    TOKEN_NOT_AT_BASE = "TokenNotAtBase"
    CANNOT_LEAVE_BASE_WITHOUT_SIX = "CannotLeaveBaseWithoutSix"
    WOULD_OVERSHOOT_HOME = "WouldOvershootHome"
    NO_TURN_AVAILABLE = "NoTurnAvailable"
    GAME_ALREADY_WON = "GameAlreadyWon"


ERROR_MESSAGES = {
    GameError.INVALID_TOKEN_INDEX: "Token index is out of range",
    GameError.INVALID_PLAYER_INDEX: "Player index is out of range",
    GameError.INVALID_DICE_ROLL: "Dice value must be between 1 and 6",
    GameError.INVALID_COMMAND_FOR_TURN: "Command does not match the current turn",
    GameError.INVALID_POSITION_VALUE: "Position is outside the board",
    GameError.TOKEN_NOT_MOVABLE: "Token cannot move with the current roll",
    GameError.TOKEN_ALREADY_HOME: "Token is already home",
    GameError.TOKEN_NOT_AT_BASE: "Token is not at base",
    GameError.CANNOT_LEAVE_BASE_WITHOUT_SIX: "A six is required to leave base",
    GameError.WOULD_OVERSHOOT_HOME: "Move would overshoot home",
    GameError.NO_TURN_AVAILABLE: "Action not available in the current turn phase",
    GameError.GAME_ALREADY_WON: "Game is already won",
}


class LudoRuleError(Exception):
    """Raised when an error result is unwrapped."""

    def __init__(self, error: GameError, message: str | None = None) -> None:
        self.error = error
        super().__init__(message or ERROR_MESSAGES.get(error, error.value))


class MovableTokens(IntFlag):
    NONE = 0
    T0 = 1
    T1 = 2
    T2 = 4
    T3 = 8

    @classmethod
    def from_indices(cls, indices: Iterable[int]) -> "MovableTokens":
        mask = cls.NONE
        for i in indices:
            if not 0 <= i < config.TOKENS_PER_PLAYER:
                raise ValueError(f"Token local index out of range: {i}")
            mask |= cls(1 << i)
        return mask

    @classmethod
    def from_names(cls, names: Iterable[str]) -> "MovableTokens":
        mask = cls.NONE
        for name in names:
            if name not in ("T0", "T1", "T2", "T3"):
                raise ValueError(f"Unknown movable token name: {name!r}")
            mask |= cls[name]
        return mask

    def indices(self) -> List[int]:
        return [i for i in range(config.TOKENS_PER_PLAYER) if self & (1 << i)]

    def names(self) -> List[str]:
        return [f"T{i}" for i in self.indices()]

    def contains(self, local_index: int) -> bool:
        if not 0 <= local_index < config.TOKENS_PER_PLAYER:
            return False
        return bool(self & (1 << local_index))

    def first(self) -> Optional[int]:
        idx = self.indices()
        return idx[0] if idx else None


class TurnPhase(Enum):
    AWAITING_ROLL = "awaiting_roll"
    AWAITING_MOVE = "awaiting_move"


def wire_field(
    data: Dict[str, Any], key: str, kind: type, error: Type[ValueError] = ValueError
) -> Any:
    """Fetch ``data[key]`` without coercion; raise ``error`` if absent or mistyped."""
    if key not in data:
        raise error(f"Missing field {key!r}")
    value = data[key]
    # bool is an int subclass; keep the two apart
    if kind is int and isinstance(value, bool) or not isinstance(value, kind):
        raise error(f"Field {key!r} must be {kind.__name__}, got {value!r}")
    return value


@dataclass(frozen=True, slots=True)
class Result(Generic[T]):
    """Success value or a GameError, never both."""

    value: Optional[T] = None
    error: Optional[GameError] = None

    @classmethod
    def ok(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def err(cls, error: GameError) -> "Result[T]":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    @property
    def is_err(self) -> bool:
        return self.error is not None

    def unwrap(self) -> T:
        if self.error is not None:
            raise LudoRuleError(self.error)
        return self.value

    def unwrap_err(self) -> GameError:
        if self.error is None:
            raise ValueError("Called unwrap_err on an ok result")
        return self.error

    def unwrap_or(self, default: T) -> T:
        return default if self.error is not None else self.value

    def map(self, fn: Callable[[T], U]) -> "Result[U]":
        if self.error is not None:
            return Result(error=self.error)
        return Result(value=fn(self.value))

    def and_then(self, fn: Callable[[T], "Result[U]"]) -> "Result[U]":
        if self.error is not None:
            return Result(error=self.error)
        return fn(self.value)


@dataclass(frozen=True, slots=True)
class DiceRoll:
    player: int
    value: int
    movable: MovableTokens
    forfeited: bool = False


@dataclass(frozen=True, slots=True)
class MoveResult:
    player: int
    token_local_index: int
    old_position: int
    new_position: int
    captured_token: Optional[int] = None  # absolute index of the captured token
    extra_turn: bool = False
    won: bool = False

    @property
    def did_capture(self) -> bool:
        return self.captured_token is not None
