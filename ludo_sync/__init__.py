from .board import Board
from .config import config
from .game import GameEngine, Snapshot
from .protocol import (
    DiceRolledEvent,
    ErrorEvent,
    MoveTokenCommand,
    ProtocolError,
    RollDiceCommand,
    TokenMovedEvent,
    TurnAdvancedEvent,
    handle,
)
from .session import MatchRegistry, MatchSession
from .state import TurnState
from .types import (
    DiceRoll,
    GameError,
    LudoRuleError,
    MovableTokens,
    MoveResult,
    Result,
    TurnPhase,
)

__all__ = [
    "config",
    "Board",
    "TurnState",
    "GameEngine",
    "Snapshot",
    "GameError",
    "LudoRuleError",
    "MovableTokens",
    "TurnPhase",
    "Result",
    "DiceRoll",
    "MoveResult",
    "RollDiceCommand",
    "MoveTokenCommand",
    "DiceRolledEvent",
    "TokenMovedEvent",
    "TurnAdvancedEvent",
    "ErrorEvent",
    "ProtocolError",
    "handle",
    "MatchSession",
    "MatchRegistry",
]
