import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv()


@dataclass(slots=True)
class Config:
    # --- Constants ---
    PATH_LENGTH: int = 58  # 0=base, 1-51=track, 52-56=home stretch, 57=home
    TOKENS_PER_PLAYER: int = 4
    MIN_PLAYERS: int = 2
    MAX_PLAYERS: int = 4

    # Relative positions (player-centric)
    BASE_POSITION: int = 0
    START_POSITION: int = 1
    HOME_COLUMN_ENTRIES: int = 52  # All enter home stretch at position 52
    HOME_COLUMN_SIZE: int = 5

    # Shared ring
    RING_LENGTH: int = 52
    SAFE_SQUARES_ABS: list[int] = field(default_factory=lambda: [1, 14, 27, 40])

    # Dice
    DICE_MIN: int = 1
    DICE_MAX: int = 6
    EXIT_BASE_ROLL: int = 6
    MAX_CONSECUTIVE_SIXES: int = 3

    # Runtime settings
    NUM_PLAYERS: int = int(os.getenv("NUM_PLAYERS", 4))
    MAX_TURNS: int = int(os.getenv("MAX_TURNS", 1000))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Derived (populated in __post_init__ due to slots)
    MAIN_TRACK_END: int = 0
    HOME_COLUMN_START: int = 0
    HOME_FINISH: int = 0
    PLAYER_TRACK_OFFSET: int = 0

    def __post_init__(self):
        # Main ring covers 1..51
        self.MAIN_TRACK_END = self.HOME_COLUMN_ENTRIES - 1
        # Home stretch is 52..56, home is 57
        self.HOME_COLUMN_START = self.HOME_COLUMN_ENTRIES
        self.HOME_FINISH = self.HOME_COLUMN_START + self.HOME_COLUMN_SIZE
        self.PLAYER_TRACK_OFFSET = self.RING_LENGTH // self.MAX_PLAYERS

        if self.HOME_FINISH != self.PATH_LENGTH - 1:
            raise ValueError("HOME_COLUMN_SIZE does not match PATH_LENGTH")
        if self.NUM_PLAYERS < self.MIN_PLAYERS or self.NUM_PLAYERS > self.MAX_PLAYERS:
            raise ValueError("NUM_PLAYERS must be between 2 and 4")


config = Config()
