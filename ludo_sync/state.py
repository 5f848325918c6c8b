from __future__ import annotations

from dataclasses import dataclass

from loguru import logger

from .config import config
from .types import MovableTokens, TurnPhase


@dataclass(slots=True)
class TurnState:
    """Dice/turn sequencing. Knows nothing about the board.

    ``turn_id`` increments whenever a new roll opportunity begins (turn passed
    on, or an extra turn granted); ``version`` increments on every mutation.
    """

    player_count: int
    current_player: int = 0
    last_dice_roll: int = 0
    movable_tokens: MovableTokens = MovableTokens.NONE
    consecutive_sixes: int = 0
    phase: TurnPhase = TurnPhase.AWAITING_ROLL
    turn_id: int = 0
    version: int = 0

    def __post_init__(self) -> None:
        if not config.MIN_PLAYERS <= self.player_count <= config.MAX_PLAYERS:
            raise ValueError(
                f"player_count must be between {config.MIN_PLAYERS} and "
                f"{config.MAX_PLAYERS}, got {self.player_count}"
            )
        if not 0 <= self.current_player < self.player_count:
            raise ValueError(f"current_player out of range: {self.current_player}")

    # --- Queries ---
    def can_roll_dice(self) -> bool:
        return self.phase is TurnPhase.AWAITING_ROLL

    def must_make_move(self) -> bool:
        return self.phase is TurnPhase.AWAITING_MOVE

    def has_movable_tokens(self) -> bool:
        return self.movable_tokens != MovableTokens.NONE

    def is_token_movable(self, local_index: int) -> bool:
        return self.must_make_move() and self.movable_tokens.contains(local_index)

    # --- Transitions ---
    def record_dice_roll(self, value: int, movable: MovableTokens) -> bool:
        """Store a roll. Returns True when the roll is forfeited (third six)."""
        self.last_dice_roll = value
        self.movable_tokens = MovableTokens(movable)
        self.consecutive_sixes = self.consecutive_sixes + 1 if value == 6 else 0
        self.version += 1

        if self.consecutive_sixes >= config.MAX_CONSECUTIVE_SIXES:
            logger.debug(f"Player {self.current_player} forfeits on a third six")
            self.advance_turn()
            return True
        if not self.has_movable_tokens():
            logger.debug(f"Player {self.current_player} has no move for {value}")
            self.advance_turn()
            return False
        self.phase = TurnPhase.AWAITING_MOVE
        return False

    def clear_turn_after_move(self) -> bool:
        """Finish a move. Returns True when the same player rolls again."""
        self.version += 1
        if (
            self.last_dice_roll != 6
            or self.consecutive_sixes >= config.MAX_CONSECUTIVE_SIXES
        ):
            self.advance_turn()
            return False
        self.clear_after_move_or_extra_roll()
        return True

    def close_after_win(self) -> None:
        """Match decided: drop the pending roll without passing the turn."""
        self.version += 1
        self.last_dice_roll = 0
        self.movable_tokens = MovableTokens.NONE
        self.consecutive_sixes = 0
        self.phase = TurnPhase.AWAITING_ROLL

    def clear_after_move_or_extra_roll(self) -> None:
        """Same player keeps the turn; the six counter is preserved."""
        self.last_dice_roll = 0
        self.movable_tokens = MovableTokens.NONE
        self.phase = TurnPhase.AWAITING_ROLL
        self.turn_id += 1

    def advance_turn(self) -> None:
        self.current_player = (self.current_player + 1) % self.player_count
        self.last_dice_roll = 0
        self.movable_tokens = MovableTokens.NONE
        self.consecutive_sixes = 0
        self.phase = TurnPhase.AWAITING_ROLL
        self.turn_id += 1
