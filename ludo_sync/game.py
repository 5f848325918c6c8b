from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from loguru import logger

from .board import Board, is_valid_dice_roll
from .config import config
from .state import TurnState
from .types import (
    DiceRoll,
    GameError,
    MovableTokens,
    MoveResult,
    Result,
    TurnPhase,
    wire_field,
)


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Immutable, self-describing copy of a GameEngine's observable state."""

    player_count: int
    current_player: int
    consecutive_sixes: int
    last_dice_roll: int
    movable_tokens: MovableTokens
    tokens: Tuple[int, ...]
    game_won: bool
    winner: Optional[int]
    turn_id: int
    version: int

    def to_dict(self) -> Dict[str, Any]:
        """Wire form: camelCase keys, symbolic mask names, -1 for no winner."""
        return {
            "playerCount": self.player_count,
            "currentPlayer": self.current_player,
            "consecutiveSixes": self.consecutive_sixes,
            "lastDiceRoll": self.last_dice_roll,
            "movableTokensMask": self.movable_tokens.names(),
            "tokens": list(self.tokens),
            "gameWon": self.game_won,
            "winner": -1 if self.winner is None else self.winner,
            "turnId": self.turn_id,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Snapshot":
        """Inverse of ``to_dict``. Raises ValueError on missing or mistyped keys."""
        tokens = wire_field(data, "tokens", list)
        if any(isinstance(t, bool) or not isinstance(t, int) for t in tokens):
            raise ValueError(f"Field 'tokens' must hold ints, got {tokens!r}")
        winner = wire_field(data, "winner", int)
        return cls(
            player_count=wire_field(data, "playerCount", int),
            current_player=wire_field(data, "currentPlayer", int),
            consecutive_sixes=wire_field(data, "consecutiveSixes", int),
            last_dice_roll=wire_field(data, "lastDiceRoll", int),
            movable_tokens=MovableTokens.from_names(
                wire_field(data, "movableTokensMask", list)
            ),
            tokens=tuple(tokens),
            game_won=wire_field(data, "gameWon", bool),
            winner=None if winner < 0 else winner,
            turn_id=wire_field(data, "turnId", int),
            version=wire_field(data, "version", int),
        )


@dataclass(slots=True)
class GameEngine:
    """One match: a Board, a TurnState and the match's own random source.

    ``roll_dice`` and ``move_token`` are the only operations that change the
    game. Both return a Result; a failed call leaves the engine untouched.
    """

    board: Board
    state: TurnState
    game_won: bool = False
    winner: Optional[int] = None
    rng: random.Random = field(default_factory=random.Random, repr=False)

    def __post_init__(self) -> None:
        if self.board.player_count != self.state.player_count:
            raise ValueError("Board and TurnState disagree on player count")

    @classmethod
    def create(cls, player_count: int, seed: Optional[int] = None) -> "GameEngine":
        return cls(
            board=Board(player_count),
            state=TurnState(player_count),
            rng=random.Random(seed),
        )

    # --- Read-only views ---
    @property
    def player_count(self) -> int:
        return self.board.player_count

    @property
    def current_player(self) -> int:
        return self.state.current_player

    @property
    def turn_id(self) -> int:
        return self.state.turn_id

    @property
    def version(self) -> int:
        return self.state.version

    def get_token_position(self, token_index: int) -> Result[int]:
        return self.board.get_token_position(token_index)

    # --- Game-altering operations ---
    def roll_dice(self) -> Result[DiceRoll]:
        if self.game_won:
            return Result.err(GameError.GAME_ALREADY_WON)
        if not self.state.can_roll_dice():
            return Result.err(GameError.NO_TURN_AVAILABLE)

        player = self.state.current_player
        value = self.rng.randint(config.DICE_MIN, config.DICE_MAX)
        movable = self.board.get_movable_tokens(player, value).unwrap()
        forfeited = self.state.record_dice_roll(value, movable)
        logger.debug(
            f"P{player} rolled {value} movable={movable.names()} forfeited={forfeited}"
        )
        return Result.ok(
            DiceRoll(
                player=player,
                value=value,
                movable=MovableTokens.NONE if forfeited else movable,
                forfeited=forfeited,
            )
        )

    def move_token(self, token_local_index: int) -> Result[MoveResult]:
        if self.game_won:
            return Result.err(GameError.GAME_ALREADY_WON)
        if not self.state.must_make_move():
            return Result.err(GameError.NO_TURN_AVAILABLE)
        if not 0 <= token_local_index < config.TOKENS_PER_PLAYER:
            return Result.err(GameError.INVALID_TOKEN_INDEX)
        if not self.state.is_token_movable(token_local_index):
            return Result.err(GameError.TOKEN_NOT_MOVABLE)

        player = self.state.current_player
        token_index = player * config.TOKENS_PER_PLAYER + token_local_index
        old_position = self.board.token_positions[token_index]
        moved = self.board.move_token(token_index, self.state.last_dice_roll)
        if moved.is_err:
            logger.warning(
                f"Token {token_index} flagged movable but board rejected it: {moved.error}"
            )
            return Result.err(moved.error)

        captured = self.board.try_capture_opponent(token_index).unwrap()
        won = self.board.has_player_won(player).unwrap()
        if won:
            self.game_won = True
            self.winner = player
            self.state.close_after_win()
            extra_turn = False
            logger.debug(f"P{player} won the match")
        else:
            extra_turn = self.state.clear_turn_after_move()

        return Result.ok(
            MoveResult(
                player=player,
                token_local_index=token_local_index,
                old_position=old_position,
                new_position=moved.value,
                captured_token=captured,
                extra_turn=extra_turn,
                won=won,
            )
        )

    # --- Snapshots ---
    def get_snapshot(self) -> Snapshot:
        return Snapshot(
            player_count=self.player_count,
            current_player=self.state.current_player,
            consecutive_sixes=self.state.consecutive_sixes,
            last_dice_roll=self.state.last_dice_roll,
            movable_tokens=self.state.movable_tokens,
            tokens=tuple(self.board.token_positions),
            game_won=self.game_won,
            winner=self.winner,
            turn_id=self.state.turn_id,
            version=self.state.version,
        )

    @classmethod
    def from_snapshot(cls, snapshot: Snapshot, seed: Optional[int] = None) -> "GameEngine":
        """Rehydrate an equivalent engine. Raises ValueError on inconsistent data."""
        board = Board.from_positions(snapshot.tokens)
        if board.player_count != snapshot.player_count:
            raise ValueError("Snapshot token count does not match player count")
        if snapshot.last_dice_roll and not is_valid_dice_roll(snapshot.last_dice_roll):
            raise ValueError(f"Snapshot dice roll out of range: {snapshot.last_dice_roll}")
        if not 0 <= snapshot.consecutive_sixes < config.MAX_CONSECUTIVE_SIXES:
            raise ValueError(
                f"Snapshot consecutive sixes out of range: {snapshot.consecutive_sixes}"
            )
        if snapshot.winner is not None and not 0 <= snapshot.winner < snapshot.player_count:
            raise ValueError(f"Snapshot winner out of range: {snapshot.winner}")
        if snapshot.last_dice_roll and not snapshot.movable_tokens:
            raise ValueError("Snapshot has a pending roll without movable tokens")
        if not snapshot.last_dice_roll and snapshot.movable_tokens:
            raise ValueError("Snapshot has movable tokens without a pending roll")
        if snapshot.game_won != (snapshot.winner is not None):
            raise ValueError("Snapshot won flag and winner disagree")

        state = TurnState(
            player_count=snapshot.player_count,
            current_player=snapshot.current_player,
            last_dice_roll=snapshot.last_dice_roll,
            movable_tokens=snapshot.movable_tokens,
            consecutive_sixes=snapshot.consecutive_sixes,
            phase=(
                TurnPhase.AWAITING_MOVE
                if snapshot.last_dice_roll
                else TurnPhase.AWAITING_ROLL
            ),
            turn_id=snapshot.turn_id,
            version=snapshot.version,
        )
        return cls(
            board=board,
            state=state,
            game_won=snapshot.game_won,
            winner=snapshot.winner,
            rng=random.Random(seed),
        )
