import json
import unittest
from unittest.mock import Mock

from ludo_sync.board import Board
from ludo_sync.game import GameEngine
from ludo_sync.protocol import (
    DiceRolledEvent,
    ErrorEvent,
    MoveTokenCommand,
    ProtocolError,
    RollDiceCommand,
    TokenMovedEvent,
    TurnAdvancedEvent,
    command_from_json,
    decode_command,
    decode_event,
    encode_command,
    encode_event,
    event_from_json,
    handle,
    snapshot_from_json,
    to_json,
)
from ludo_sync.state import TurnState
from ludo_sync.types import GameError, MovableTokens


def engine_with_dice(player_count: int, rolls: list[int]) -> GameEngine:
    rng = Mock()
    rng.randint.side_effect = rolls
    return GameEngine(board=Board(player_count), state=TurnState(player_count), rng=rng)


class HandleRollTests(unittest.TestCase):
    def test_roll_requiring_move(self):
        game = engine_with_dice(2, [6])
        events = handle(game, RollDiceCommand(expect_turn_id=0))
        self.assertEqual(len(events), 1)
        evt = events[0]
        self.assertIsInstance(evt, DiceRolledEvent)
        self.assertEqual(evt.player, 0)
        self.assertEqual(evt.dice_value, 6)
        self.assertEqual(evt.movable.names(), ["T0", "T1", "T2", "T3"])
        self.assertFalse(evt.forfeited_for_triple_six)
        self.assertEqual(evt.turn_id, game.turn_id)
        self.assertEqual(evt.snapshot, game.get_snapshot())

    def test_roll_without_moves_advances(self):
        game = engine_with_dice(2, [2])
        events = handle(game, RollDiceCommand(expect_turn_id=0))
        self.assertEqual([type(e) for e in events], [DiceRolledEvent, TurnAdvancedEvent])
        self.assertEqual(events[0].movable, MovableTokens.NONE)
        advanced = events[1]
        self.assertEqual(advanced.previous_player, 0)
        self.assertEqual(advanced.next_player, 1)
        self.assertEqual(advanced.turn_id, 1)
        self.assertEqual(game.turn_id, 1)

    def test_duplicate_roll_is_harmless(self):
        game = engine_with_dice(2, [6])
        handle(game, RollDiceCommand(expect_turn_id=0))
        version = game.version
        events = handle(game, RollDiceCommand(expect_turn_id=0))
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].error, GameError.NO_TURN_AVAILABLE)
        self.assertEqual(game.version, version)

    def test_triple_six_forfeit_scenario(self):
        game = engine_with_dice(2, [6, 6, 6])
        for _ in range(2):
            rolled = handle(game, RollDiceCommand(expect_turn_id=game.turn_id))[0]
            moved = handle(
                game,
                MoveTokenCommand(expect_turn_id=rolled.turn_id, token_local_index=0),
            )
            self.assertEqual(len(moved), 1)
            self.assertTrue(moved[0].extra_turn)
        events = handle(game, RollDiceCommand(expect_turn_id=game.turn_id))
        self.assertEqual([type(e) for e in events], [DiceRolledEvent, TurnAdvancedEvent])
        rolled = events[0]
        self.assertEqual(rolled.dice_value, 6)
        self.assertTrue(rolled.forfeited_for_triple_six)
        self.assertEqual(rolled.movable, MovableTokens.NONE)
        self.assertEqual(rolled.snapshot.current_player, 1)
        self.assertEqual(rolled.snapshot.consecutive_sixes, 0)


class HandleMoveTests(unittest.TestCase):
    def test_move_with_extra_turn(self):
        game = engine_with_dice(2, [6])
        handle(game, RollDiceCommand(expect_turn_id=0))
        events = handle(game, MoveTokenCommand(expect_turn_id=0, token_local_index=1))
        self.assertEqual(len(events), 1)
        moved = events[0]
        self.assertIsInstance(moved, TokenMovedEvent)
        self.assertEqual(moved.token_local_index, 1)
        self.assertEqual(moved.new_position, 1)
        self.assertIsNone(moved.captured_token)
        self.assertTrue(moved.extra_turn)
        self.assertFalse(moved.won)
        self.assertIsNone(moved.winner)
        self.assertEqual(moved.turn_id, 1)

    def test_move_passes_turn(self):
        game = engine_with_dice(2, [3])
        game.board.token_positions[0] = 4
        game.board.token_positions[4] = 33
        handle(game, RollDiceCommand(expect_turn_id=0))
        events = handle(game, MoveTokenCommand(expect_turn_id=0, token_local_index=0))
        self.assertEqual([type(e) for e in events], [TokenMovedEvent, TurnAdvancedEvent])
        self.assertEqual(events[0].captured_token, 4)
        self.assertEqual(events[1].next_player, 1)
        self.assertEqual(events[1].snapshot.tokens[4], 0)

    def test_winning_move(self):
        game = engine_with_dice(2, [1])
        game.board.token_positions[:4] = [57, 57, 56, 57]
        handle(game, RollDiceCommand(expect_turn_id=0))
        events = handle(game, MoveTokenCommand(expect_turn_id=0, token_local_index=2))
        self.assertEqual(len(events), 1)
        self.assertTrue(events[0].won)
        self.assertEqual(events[0].winner, 0)
        self.assertTrue(events[0].snapshot.game_won)
        after = handle(game, RollDiceCommand(expect_turn_id=game.turn_id))
        self.assertEqual(after[0].error, GameError.GAME_ALREADY_WON)

    def test_stale_turn_id_rejected(self):
        game = engine_with_dice(2, [2, 6])
        handle(game, RollDiceCommand(expect_turn_id=0))
        handle(game, RollDiceCommand(expect_turn_id=1))
        before = game.get_snapshot()
        events = handle(game, MoveTokenCommand(expect_turn_id=0, token_local_index=0))
        self.assertEqual(len(events), 1)
        self.assertIsInstance(events[0], ErrorEvent)
        self.assertEqual(events[0].error, GameError.INVALID_COMMAND_FOR_TURN)
        self.assertEqual(events[0].snapshot, before)
        self.assertEqual(game.get_snapshot(), before)

    def test_rule_violation_carries_snapshot(self):
        game = GameEngine.create(2, seed=1)
        events = handle(game, MoveTokenCommand(expect_turn_id=0, token_local_index=0))
        self.assertEqual(events[0].error, GameError.NO_TURN_AVAILABLE)
        self.assertEqual(events[0].snapshot, game.get_snapshot())
        self.assertTrue(events[0].message)

    def test_not_movable_token(self):
        game = engine_with_dice(2, [4])
        game.board.token_positions[3] = 20
        handle(game, RollDiceCommand(expect_turn_id=0))
        events = handle(game, MoveTokenCommand(expect_turn_id=0, token_local_index=0))
        self.assertEqual(events[0].error, GameError.TOKEN_NOT_MOVABLE)


class WireFormatTests(unittest.TestCase):
    def test_command_shapes(self):
        self.assertEqual(
            json.loads(to_json(RollDiceCommand(expect_turn_id=3))),
            {"type": "RollDiceCommand", "expectTurnId": 3},
        )
        self.assertEqual(
            json.loads(to_json(MoveTokenCommand(expect_turn_id=3, token_local_index=2))),
            {"type": "MoveTokenCommand", "expectTurnId": 3, "tokenLocalIndex": 2},
        )

    def test_encode_helpers(self):
        cmd = MoveTokenCommand(expect_turn_id=4, token_local_index=3)
        self.assertEqual(decode_command(encode_command(cmd)), cmd)
        game = engine_with_dice(2, [2])
        for evt in handle(game, RollDiceCommand(expect_turn_id=0)):
            self.assertEqual(decode_event(encode_event(evt)), evt)

    def test_command_decoding(self):
        cmd = command_from_json('{"type": "MoveTokenCommand", "expectTurnId": 7, "tokenLocalIndex": 1}')
        self.assertEqual(cmd, MoveTokenCommand(expect_turn_id=7, token_local_index=1))

    def test_bad_commands_rejected(self):
        bad = [
            '{"type": "FlipTableCommand", "expectTurnId": 0}',
            '{"type": [], "expectTurnId": 0}',
            '{"type": {"name": "RollDiceCommand"}, "expectTurnId": 0}',
            '{"expectTurnId": 0}',
            '{"type": "RollDiceCommand"}',
            '{"type": "RollDiceCommand", "expectTurnId": "0"}',
            '{"type": "RollDiceCommand", "expectTurnId": true}',
            '{"type": "MoveTokenCommand", "expectTurnId": 0}',
            "[1, 2]",
            "not json",
        ]
        for payload in bad:
            with self.assertRaises(ProtocolError, msg=payload):
                command_from_json(payload)

    def test_protocol_error_is_value_error(self):
        with self.assertRaises(ValueError):
            decode_command({"type": None})

    def test_events_survive_the_wire(self):
        game = engine_with_dice(2, [6, 3])
        game.board.token_positions[4] = 33
        game.board.token_positions[0] = 4
        events = handle(game, RollDiceCommand(expect_turn_id=0))
        events += handle(game, MoveTokenCommand(expect_turn_id=0, token_local_index=0))
        events += handle(game, RollDiceCommand(expect_turn_id=1))
        events += handle(game, MoveTokenCommand(expect_turn_id=1, token_local_index=0))
        events += handle(game, MoveTokenCommand(expect_turn_id=0, token_local_index=0))
        kinds = {type(e) for e in events}
        self.assertEqual(kinds, {DiceRolledEvent, TokenMovedEvent, TurnAdvancedEvent, ErrorEvent})
        for evt in events:
            self.assertEqual(event_from_json(to_json(evt)), evt)

    def test_event_wire_fields(self):
        game = engine_with_dice(2, [2])
        rolled, advanced = handle(game, RollDiceCommand(expect_turn_id=0))
        data = json.loads(to_json(rolled))
        self.assertEqual(data["type"], "DiceRolledEvent")
        self.assertEqual(data["movableTokensMask"], [])
        self.assertFalse(data["forfeitedForTripleSix"])
        self.assertEqual(data["snapshot"]["winner"], -1)
        data = json.loads(to_json(advanced))
        self.assertEqual(
            set(data), {"type", "previousPlayer", "nextPlayer", "turnId", "snapshot"}
        )
        err = handle(game, RollDiceCommand(expect_turn_id=0))[0]
        data = json.loads(to_json(err))
        self.assertEqual(data["errorKind"], "InvalidCommandForTurn")

    def test_token_moved_wire_sentinels(self):
        game = engine_with_dice(2, [4])
        game.board.token_positions[0] = 10
        handle(game, RollDiceCommand(expect_turn_id=0))
        moved = handle(game, MoveTokenCommand(expect_turn_id=0, token_local_index=0))[0]
        data = json.loads(to_json(moved))
        self.assertEqual(data["capturedTokenIndex"], -1)
        self.assertEqual(data["winner"], -1)
        self.assertEqual(data["newPosition"], 14)

    def test_unknown_error_kind_rejected(self):
        game = GameEngine.create(2)
        data = {
            "type": "ErrorEvent",
            "errorKind": "Cheating",
            "message": "",
            "snapshot": game.get_snapshot().to_dict(),
        }
        with self.assertRaises(ProtocolError):
            event_from_json(json.dumps(data))

    def test_snapshot_json(self):
        game = GameEngine.create(3, seed=5)
        snap = game.get_snapshot()
        self.assertEqual(snapshot_from_json(to_json(snap)), snap)
        with self.assertRaises(ProtocolError):
            snapshot_from_json('{"playerCount": 2}')
        data = snap.to_dict()
        data["gameWon"] = "false"
        with self.assertRaises(ProtocolError):
            snapshot_from_json(json.dumps(data))

    def test_event_with_mistyped_snapshot_rejected(self):
        game = engine_with_dice(2, [2])
        data = handle(game, RollDiceCommand(expect_turn_id=0))[0].to_dict()
        data["snapshot"]["turnId"] = 1.5
        with self.assertRaises(ProtocolError):
            event_from_json(json.dumps(data))


if __name__ == "__main__":
    unittest.main()
