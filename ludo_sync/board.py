from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from loguru import logger

from .config import config
from .types import GameError, MovableTokens, Result


def is_valid_position(position: int) -> bool:
    """True for base, main track, home stretch and home."""
    return config.BASE_POSITION <= position <= config.HOME_FINISH


def is_valid_dice_roll(dice_value: int) -> bool:
    return config.DICE_MIN <= dice_value <= config.DICE_MAX


@dataclass(slots=True)
class Board:
    """Owns token placement, position math and the movement/capture/win rules.

    Token ``i`` belongs to player ``i // 4`` with local index ``i % 4``.
    Positions are player-relative: 0 = base, 1..51 main track,
    52..56 home stretch, 57 home. The main track is one shared 52-cell ring;
    captures and safe cells are resolved on that ring.
    """

    player_count: int
    token_positions: List[int] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not config.MIN_PLAYERS <= self.player_count <= config.MAX_PLAYERS:
            raise ValueError(
                f"player_count must be between {config.MIN_PLAYERS} and "
                f"{config.MAX_PLAYERS}, got {self.player_count}"
            )
        size = self.player_count * config.TOKENS_PER_PLAYER
        if not self.token_positions:
            self.token_positions = [config.BASE_POSITION] * size
        elif len(self.token_positions) != size:
            raise ValueError(
                f"Expected {size} token positions, got {len(self.token_positions)}"
            )
        else:
            self.token_positions = [int(p) for p in self.token_positions]
            bad = [p for p in self.token_positions if not is_valid_position(p)]
            if bad:
                raise ValueError(f"Invalid token positions: {bad}")

    @classmethod
    def from_positions(cls, positions: Sequence[int]) -> "Board":
        if len(positions) % config.TOKENS_PER_PLAYER:
            raise ValueError("Token count must be a multiple of 4")
        return cls(
            player_count=len(positions) // config.TOKENS_PER_PLAYER,
            token_positions=list(positions),
        )

    # --- Validation ---
    def _valid_token(self, token_index: int) -> bool:
        return 0 <= token_index < len(self.token_positions)

    def _valid_player(self, player_index: int) -> bool:
        return 0 <= player_index < self.player_count

    # --- Position queries ---
    def get_token_position(self, token_index: int) -> Result[int]:
        if not self._valid_token(token_index):
            return Result.err(GameError.INVALID_TOKEN_INDEX)
        return Result.ok(self.token_positions[token_index])

    def set_token_position(self, token_index: int, position: int) -> Result[int]:
        if not self._valid_token(token_index):
            return Result.err(GameError.INVALID_TOKEN_INDEX)
        if not is_valid_position(position):
            return Result.err(GameError.INVALID_POSITION_VALUE)
        self.token_positions[token_index] = position
        return Result.ok(position)

    def is_at_base(self, token_index: int) -> bool:
        return self.token_positions[token_index] == config.BASE_POSITION

    def is_on_main_track(self, token_index: int) -> bool:
        return (
            config.START_POSITION
            <= self.token_positions[token_index]
            <= config.MAIN_TRACK_END
        )

    def is_on_home_stretch(self, token_index: int) -> bool:
        return (
            config.HOME_COLUMN_START
            <= self.token_positions[token_index]
            < config.HOME_FINISH
        )

    def is_home(self, token_index: int) -> bool:
        return self.token_positions[token_index] == config.HOME_FINISH

    def is_on_safe_tile(self, token_index: int) -> bool:
        if self.is_on_home_stretch(token_index):
            return True
        if not self.is_on_main_track(token_index):
            return False
        return self.absolute_position(token_index) in config.SAFE_SQUARES_ABS

    # --- Ring mapping ---
    def player_track_offset(self, player_index: int) -> int:
        # Two players sit opposite each other
        if self.player_count == 2:
            return player_index * 2 * config.PLAYER_TRACK_OFFSET
        return player_index * config.PLAYER_TRACK_OFFSET

    def absolute_position(self, token_index: int) -> Optional[int]:
        """Ring cell (1..52) of a token on the main track, else None."""
        if not self.is_on_main_track(token_index):
            return None
        player = token_index // config.TOKENS_PER_PLAYER
        rel = self.token_positions[token_index]
        return (rel - 1 + self.player_track_offset(player)) % config.RING_LENGTH + 1

    # --- Rules ---
    def _destination(self, token_index: int, dice_value: int) -> Result[int]:
        current = self.token_positions[token_index]
        if current == config.HOME_FINISH:
            return Result.err(GameError.TOKEN_ALREADY_HOME)
        if current == config.BASE_POSITION:
            if dice_value != config.EXIT_BASE_ROLL:
                return Result.err(GameError.CANNOT_LEAVE_BASE_WITHOUT_SIX)
            return Result.ok(config.START_POSITION)
        target = current + dice_value
        if current <= config.MAIN_TRACK_END and target > config.MAIN_TRACK_END:
            steps_into_home = target - config.MAIN_TRACK_END
            target = config.HOME_COLUMN_START + steps_into_home - 1
        if target > config.HOME_FINISH:
            return Result.err(GameError.WOULD_OVERSHOOT_HOME)
        return Result.ok(target)

    def move_token(self, token_index: int, dice_value: int) -> Result[int]:
        """Advance a token by ``dice_value``. Does not resolve captures."""
        if not self._valid_token(token_index):
            return Result.err(GameError.INVALID_TOKEN_INDEX)
        if not is_valid_dice_roll(dice_value):
            return Result.err(GameError.INVALID_DICE_ROLL)
        dest = self._destination(token_index, dice_value)
        if dest.is_ok:
            self.token_positions[token_index] = dest.value
        return dest

    def get_out_of_base(self, token_index: int, dice_value: int) -> Result[int]:
        if not self._valid_token(token_index):
            return Result.err(GameError.INVALID_TOKEN_INDEX)
        if dice_value != config.EXIT_BASE_ROLL:
            return Result.err(GameError.INVALID_DICE_ROLL)
        if not self.is_at_base(token_index):
            return Result.err(GameError.TOKEN_NOT_AT_BASE)
        self.token_positions[token_index] = config.START_POSITION
        return Result.ok(config.START_POSITION)

    def try_capture_opponent(self, moved_token_index: int) -> Result[Optional[int]]:
        """Send a lone opponent sharing the mover's ring cell back to base.

        Returns the captured token's index, or None when nothing is captured
        (off the ring, safe cell, empty cell, or a blockade of two or more).
        """
        if not self._valid_token(moved_token_index):
            return Result.err(GameError.INVALID_TOKEN_INDEX)
        if not self.is_on_main_track(moved_token_index):
            return Result.ok(None)
        landing = self.absolute_position(moved_token_index)
        if landing in config.SAFE_SQUARES_ABS:
            return Result.ok(None)

        mover = moved_token_index // config.TOKENS_PER_PLAYER
        occupants = [
            i
            for i in range(len(self.token_positions))
            if i // config.TOKENS_PER_PLAYER != mover
            and self.absolute_position(i) == landing
        ]
        if len(occupants) != 1:
            if occupants:
                logger.debug(f"Blockade at ring cell {landing}: {occupants}")
            return Result.ok(None)

        victim = occupants[0]
        self.token_positions[victim] = config.BASE_POSITION
        logger.debug(f"Token {moved_token_index} captured token {victim} at {landing}")
        return Result.ok(victim)

    def get_movable_tokens(self, player_index: int, dice_value: int) -> Result[MovableTokens]:
        if not self._valid_player(player_index):
            return Result.err(GameError.INVALID_PLAYER_INDEX)
        if not is_valid_dice_roll(dice_value):
            return Result.err(GameError.INVALID_DICE_ROLL)
        start = player_index * config.TOKENS_PER_PLAYER
        movable = MovableTokens.NONE
        for local in range(config.TOKENS_PER_PLAYER):
            if self._destination(start + local, dice_value).is_ok:
                movable |= MovableTokens(1 << local)
        return Result.ok(movable)

    def has_player_won(self, player_index: int) -> Result[bool]:
        if not self._valid_player(player_index):
            return Result.err(GameError.INVALID_PLAYER_INDEX)
        start = player_index * config.TOKENS_PER_PLAYER
        return Result.ok(
            all(
                self.is_home(start + local)
                for local in range(config.TOKENS_PER_PLAYER)
            )
        )

    def copy(self) -> "Board":
        return Board(
            player_count=self.player_count, token_positions=list(self.token_positions)
        )

    def __str__(self) -> str:
        parts: List[str] = []
        for player in range(self.player_count):
            cells: List[str] = []
            for local in range(config.TOKENS_PER_PLAYER):
                idx = player * config.TOKENS_PER_PLAYER + local
                pos = self.token_positions[idx]
                if self.is_at_base(idx):
                    cells.append("B")
                elif self.is_home(idx):
                    cells.append("H")
                elif self.is_on_home_stretch(idx):
                    cells.append(f"S{pos - config.HOME_COLUMN_START + 1}")
                else:
                    cell = f"{pos}@{self.absolute_position(idx)}"
                    if self.is_on_safe_tile(idx):
                        cell += "*"
                    cells.append(cell)
            parts.append(f"p{player}:" + ",".join(cells))
        return f"P{self.player_count} | " + " || ".join(parts)
