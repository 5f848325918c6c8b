"""
Command/event protocol that replicates a GameEngine across a network boundary.

Clients send commands carrying the turn id they believe is current; the server
runs them against its authoritative engine and broadcasts events, each with a
fresh snapshot. Wire payloads are JSON objects with camelCase keys and
enumerations by symbolic name. The carrier (HTTP, socket, pub/sub) is not
this module's concern.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Dict, List, Optional, Union

from loguru import logger

from .game import GameEngine, Snapshot
from .types import ERROR_MESSAGES, GameError, MovableTokens, wire_field


class ProtocolError(ValueError):
    """Malformed wire payload (unknown type, missing or mistyped field)."""


def _field(data: Dict[str, Any], key: str, kind: type) -> Any:
    return wire_field(data, key, kind, ProtocolError)


def _snapshot_field(data: Dict[str, Any]) -> Snapshot:
    raw = _field(data, "snapshot", dict)
    try:
        return Snapshot.from_dict(raw)
    except (KeyError, TypeError, ValueError) as e:
        raise ProtocolError(f"Invalid snapshot: {e}") from e


def _optional_index(value: Optional[int]) -> int:
    return -1 if value is None else value


def _from_wire_index(value: int) -> Optional[int]:
    return None if value < 0 else value


# --- Commands (client -> server) ---


@dataclass(frozen=True, slots=True)
class RollDiceCommand:
    TYPE: ClassVar[str] = "RollDiceCommand"

    expect_turn_id: int

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.TYPE, "expectTurnId": self.expect_turn_id}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RollDiceCommand":
        return cls(expect_turn_id=_field(data, "expectTurnId", int))


@dataclass(frozen=True, slots=True)
class MoveTokenCommand:
    TYPE: ClassVar[str] = "MoveTokenCommand"

    expect_turn_id: int
    token_local_index: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.TYPE,
            "expectTurnId": self.expect_turn_id,
            "tokenLocalIndex": self.token_local_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MoveTokenCommand":
        return cls(
            expect_turn_id=_field(data, "expectTurnId", int),
            token_local_index=_field(data, "tokenLocalIndex", int),
        )


Command = Union[RollDiceCommand, MoveTokenCommand]


# --- Events (server -> all clients) ---


@dataclass(frozen=True, slots=True)
class DiceRolledEvent:
    TYPE: ClassVar[str] = "DiceRolledEvent"

    player: int
    turn_id: int
    dice_value: int
    movable: MovableTokens
    forfeited_for_triple_six: bool
    snapshot: Snapshot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.TYPE,
            "player": self.player,
            "turnId": self.turn_id,
            "diceValue": self.dice_value,
            "movableTokensMask": self.movable.names(),
            "forfeitedForTripleSix": self.forfeited_for_triple_six,
            "snapshot": self.snapshot.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DiceRolledEvent":
        try:
            movable = MovableTokens.from_names(_field(data, "movableTokensMask", list))
        except ValueError as e:
            raise ProtocolError(str(e)) from e
        return cls(
            player=_field(data, "player", int),
            turn_id=_field(data, "turnId", int),
            dice_value=_field(data, "diceValue", int),
            movable=movable,
            forfeited_for_triple_six=_field(data, "forfeitedForTripleSix", bool),
            snapshot=_snapshot_field(data),
        )


@dataclass(frozen=True, slots=True)
class TokenMovedEvent:
    TYPE: ClassVar[str] = "TokenMovedEvent"

    player: int
    turn_id: int
    token_local_index: int
    new_position: int
    captured_token: Optional[int]
    extra_turn: bool
    won: bool
    winner: Optional[int]
    snapshot: Snapshot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.TYPE,
            "player": self.player,
            "turnId": self.turn_id,
            "tokenLocalIndex": self.token_local_index,
            "newPosition": self.new_position,
            "capturedTokenIndex": _optional_index(self.captured_token),
            "extraTurn": self.extra_turn,
            "gameWon": self.won,
            "winner": _optional_index(self.winner),
            "snapshot": self.snapshot.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TokenMovedEvent":
        return cls(
            player=_field(data, "player", int),
            turn_id=_field(data, "turnId", int),
            token_local_index=_field(data, "tokenLocalIndex", int),
            new_position=_field(data, "newPosition", int),
            captured_token=_from_wire_index(_field(data, "capturedTokenIndex", int)),
            extra_turn=_field(data, "extraTurn", bool),
            won=_field(data, "gameWon", bool),
            winner=_from_wire_index(_field(data, "winner", int)),
            snapshot=_snapshot_field(data),
        )


@dataclass(frozen=True, slots=True)
class TurnAdvancedEvent:
    TYPE: ClassVar[str] = "TurnAdvancedEvent"

    previous_player: int
    next_player: int
    turn_id: int
    snapshot: Snapshot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.TYPE,
            "previousPlayer": self.previous_player,
            "nextPlayer": self.next_player,
            "turnId": self.turn_id,
            "snapshot": self.snapshot.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TurnAdvancedEvent":
        return cls(
            previous_player=_field(data, "previousPlayer", int),
            next_player=_field(data, "nextPlayer", int),
            turn_id=_field(data, "turnId", int),
            snapshot=_snapshot_field(data),
        )


@dataclass(frozen=True, slots=True)
class ErrorEvent:
    TYPE: ClassVar[str] = "ErrorEvent"

    error: GameError
    message: str
    snapshot: Snapshot

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": self.TYPE,
            "errorKind": self.error.value,
            "message": self.message,
            "snapshot": self.snapshot.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorEvent":
        kind = _field(data, "errorKind", str)
        try:
            error = GameError(kind)
        except ValueError as e:
            raise ProtocolError(f"Unknown error kind {kind!r}") from e
        return cls(
            error=error,
            message=_field(data, "message", str),
            snapshot=_snapshot_field(data),
        )


Event = Union[DiceRolledEvent, TokenMovedEvent, TurnAdvancedEvent, ErrorEvent]

COMMAND_TYPES: Dict[str, Callable[[Dict[str, Any]], Command]] = {
    RollDiceCommand.TYPE: RollDiceCommand.from_dict,
    MoveTokenCommand.TYPE: MoveTokenCommand.from_dict,
}

EVENT_TYPES: Dict[str, Callable[[Dict[str, Any]], Event]] = {
    DiceRolledEvent.TYPE: DiceRolledEvent.from_dict,
    TokenMovedEvent.TYPE: TokenMovedEvent.from_dict,
    TurnAdvancedEvent.TYPE: TurnAdvancedEvent.from_dict,
    ErrorEvent.TYPE: ErrorEvent.from_dict,
}


# --- Codec ---


def _decode(data: Any, registry: Dict[str, Callable[[Dict[str, Any]], Any]]) -> Any:
    if not isinstance(data, dict):
        raise ProtocolError(f"Expected a JSON object, got {type(data).__name__}")
    kind = data.get("type")
    if not isinstance(kind, str) or kind not in registry:
        raise ProtocolError(f"Unknown message type {kind!r}")
    return registry[kind](data)


def encode_command(command: Command) -> Dict[str, Any]:
    return command.to_dict()


def decode_command(data: Dict[str, Any]) -> Command:
    return _decode(data, COMMAND_TYPES)


def encode_event(event: Event) -> Dict[str, Any]:
    return event.to_dict()


def decode_event(data: Dict[str, Any]) -> Event:
    return _decode(data, EVENT_TYPES)


def to_json(message: Union[Command, Event, Snapshot]) -> str:
    return json.dumps(message.to_dict(), separators=(",", ":"))


def _load(payload: str) -> Any:
    try:
        return json.loads(payload)
    except json.JSONDecodeError as e:
        raise ProtocolError(f"Invalid JSON: {e}") from e


def command_from_json(payload: str) -> Command:
    return decode_command(_load(payload))


def event_from_json(payload: str) -> Event:
    return decode_event(_load(payload))


def snapshot_from_json(payload: str) -> Snapshot:
    data = _load(payload)
    if not isinstance(data, dict):
        raise ProtocolError("Snapshot payload must be a JSON object")
    return _snapshot_field({"snapshot": data})


# --- Server-side handling ---


def _error(engine: GameEngine, error: GameError, message: Optional[str] = None) -> ErrorEvent:
    return ErrorEvent(
        error=error,
        message=message or ERROR_MESSAGES[error],
        snapshot=engine.get_snapshot(),
    )


def handle(engine: GameEngine, command: Command) -> List[Event]:
    """Run one command against the authoritative engine and return the events.

    Rule violations come back as a single ErrorEvent; the engine is left
    unchanged. Callers must serialize calls per engine.
    """
    if command.expect_turn_id != engine.turn_id:
        logger.info(
            f"Rejected {command.TYPE}: expected turn {engine.turn_id}, "
            f"got {command.expect_turn_id}"
        )
        return [
            _error(
                engine,
                GameError.INVALID_COMMAND_FOR_TURN,
                f"Command is for turn {command.expect_turn_id}, current turn is {engine.turn_id}",
            )
        ]

    if isinstance(command, RollDiceCommand):
        return _handle_roll(engine)
    if isinstance(command, MoveTokenCommand):
        return _handle_move(engine, command.token_local_index)
    raise ProtocolError(f"Unsupported command {command!r}")


def _handle_roll(engine: GameEngine) -> List[Event]:
    result = engine.roll_dice()
    if result.is_err:
        logger.info(f"Roll rejected: {result.error.value}")
        return [_error(engine, result.error)]

    roll = result.value
    snapshot = engine.get_snapshot()
    events: List[Event] = [
        DiceRolledEvent(
            player=roll.player,
            turn_id=engine.turn_id,
            dice_value=roll.value,
            movable=roll.movable,
            forfeited_for_triple_six=roll.forfeited,
            snapshot=snapshot,
        )
    ]
    if engine.state.can_roll_dice():
        events.append(
            TurnAdvancedEvent(
                previous_player=roll.player,
                next_player=engine.current_player,
                turn_id=engine.turn_id,
                snapshot=snapshot,
            )
        )
    return events


def _handle_move(engine: GameEngine, token_local_index: int) -> List[Event]:
    result = engine.move_token(token_local_index)
    if result.is_err:
        logger.info(f"Move of token {token_local_index} rejected: {result.error.value}")
        return [_error(engine, result.error)]

    move = result.value
    snapshot = engine.get_snapshot()
    events: List[Event] = [
        TokenMovedEvent(
            player=move.player,
            turn_id=engine.turn_id,
            token_local_index=move.token_local_index,
            new_position=move.new_position,
            captured_token=move.captured_token,
            extra_turn=move.extra_turn,
            won=move.won,
            winner=engine.winner,
            snapshot=snapshot,
        )
    ]
    if not move.extra_turn and not move.won:
        events.append(
            TurnAdvancedEvent(
                previous_player=move.player,
                next_player=engine.current_player,
                turn_id=engine.turn_id,
                snapshot=snapshot,
            )
        )
    return events
