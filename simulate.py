import argparse
import sys
import time
from typing import Callable, Optional

from loguru import logger

from ludo_sync.config import config
from ludo_sync.game import GameEngine, Snapshot
from ludo_sync.protocol import (
    DiceRolledEvent,
    ErrorEvent,
    MoveTokenCommand,
    RollDiceCommand,
    TokenMovedEvent,
    event_from_json,
    to_json,
)
from ludo_sync.session import MatchRegistry


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Play a seeded Ludo match over the sync protocol")
    parser.add_argument("--players", type=int, default=config.NUM_PLAYERS)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--max-turns", type=int, default=config.MAX_TURNS)
    parser.add_argument(
        "--json", action="store_true", help="Print every event payload as it is broadcast"
    )
    return parser.parse_args()


def play_match(
    players: int,
    seed: Optional[int] = None,
    max_turns: int = config.MAX_TURNS,
    on_event: Optional[Callable[[str], None]] = None,
) -> Snapshot:
    """Drive one match the way a client would: JSON in, JSON out.

    The client always moves its first movable token and keeps a replica engine
    rebuilt from the latest broadcast snapshot. Returns the final snapshot.
    """
    registry = MatchRegistry()
    match = registry.create_match(players, seed=seed)
    replica = GameEngine.from_snapshot(match.snapshot())

    turn = 0
    while not replica.game_won and turn < max_turns:
        turn += 1
        pending = [to_json(RollDiceCommand(expect_turn_id=replica.turn_id))]
        while pending:
            for payload in match.submit_json(pending.pop()):
                if on_event is not None:
                    on_event(payload)
                evt = event_from_json(payload)
                replica = GameEngine.from_snapshot(evt.snapshot)
                if isinstance(evt, ErrorEvent):
                    logger.warning(f"Server rejected command: {evt.error.value}")
                elif isinstance(evt, DiceRolledEvent):
                    if evt.forfeited_for_triple_six:
                        logger.info(f"Turn {turn}: P{evt.player} rolled a third six and forfeits")
                    local = evt.movable.first()
                    if local is not None:
                        pending.append(
                            to_json(MoveTokenCommand(expect_turn_id=evt.turn_id, token_local_index=local))
                        )
                elif isinstance(evt, TokenMovedEvent):
                    if evt.captured_token is not None:
                        logger.info(f"Turn {turn}: P{evt.player} captured token {evt.captured_token}")
                    if evt.won:
                        logger.info(f"Turn {turn}: P{evt.player} wins")

    final = match.snapshot()
    registry.end_match(match.match_id)
    return final


def main() -> None:
    args = parse_args()
    logger.remove()
    logger.add(sys.stderr, level=config.LOG_LEVEL)

    logger.info(f"--- Simulating {args.players}-player match (seed={args.seed}) ---")
    start_time = time.time()
    final = play_match(
        args.players,
        seed=args.seed,
        max_turns=args.max_turns,
        on_event=print if args.json else None,
    )
    elapsed = time.time() - start_time

    if final.game_won:
        logger.info(f"Winner: P{final.winner} after {final.turn_id} turns")
    else:
        logger.info(f"No winner after {args.max_turns} rolls")
    logger.info(f"Final board tokens: {list(final.tokens)}")
    logger.info(f"Simulation Time: {elapsed:.2f} seconds")


if __name__ == "__main__":
    main()
