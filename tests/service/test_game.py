"""Tests for the game workflow."""

import pytest
import numpy as np

from backgammon_service.core.board import is_valid_position
from backgammon_service.core.types import Color, MoveErrorKind, MoveStep, RulesOptions
from backgammon_service.service.game import (
    Game,
    GameError,
    GameState,
    GameStatus,
    IllegalMoveError,
    MoveRequest,
    create_game,
)
from backgammon_service.service.history import MoveHistoryLogger, read_history


def _set_position(game, points, dice=None, bar=None, borne_off=None, used=None):
    board = np.zeros(24, dtype=np.int32)
    for point, count in points.items():
        board[point - 1] = count
    game.state.board = board
    game.state.bar = {Color.WHITE: 0, Color.BLACK: 0, **(bar or {})}
    game.state.borne_off = {Color.WHITE: 0, Color.BLACK: 0, **(borne_off or {})}
    if dice is not None:
        game.state.dice = list(dice)
        game.state.dice_used = list(used) if used is not None else [False] * len(dice)


def _move(from_point, to_point, die, indices=(), combined=False):
    return MoveRequest(from_point, to_point, die, tuple(indices), combined)


class TestCreateGame:

    def test_new_game_is_pending(self):
        game = create_game(1, "alice", "bob", rng=np.random.default_rng(0))
        assert game.status == GameStatus.PENDING
        assert game.winner is None
        assert game.move_count == 0
        assert game.current_turn in ("alice", "bob")
        assert game.state.dice is None

    def test_colors_are_split(self):
        for seed in range(10):
            game = create_game(1, "alice", "bob", rng=np.random.default_rng(seed))
            assert {game.color_of("alice"), game.color_of("bob")} == {Color.WHITE, Color.BLACK}

    def test_seeded_games_repeat(self):
        a = create_game(1, "alice", "bob", rng=np.random.default_rng(11))
        b = create_game(1, "alice", "bob", rng=np.random.default_rng(11))
        assert a.colors == b.colors
        assert a.current_turn == b.current_turn

    def test_same_player_rejected(self):
        with pytest.raises(GameError, match="same player"):
            create_game(1, "alice", "alice")

    def test_missing_player_rejected(self):
        with pytest.raises(GameError, match="Both players"):
            create_game(1, "alice", "")

    def test_starting_position_is_conserved(self):
        game = create_game(1, "alice", "bob")
        game.state.check_conservation()


class TestLifecycle:

    def test_start(self):
        game = create_game(1, "alice", "bob")
        game.start("bob")
        assert game.status == GameStatus.IN_PROGRESS
        assert game.started_at is not None

    def test_start_twice(self, game):
        with pytest.raises(GameError, match="already started"):
            game.start("bob")

    def test_outsider_cannot_start(self):
        game = create_game(1, "alice", "bob")
        with pytest.raises(GameError) as exc_info:
            game.start("mallory")
        assert exc_info.value.status_code == 403

    def test_forfeit(self, game):
        game.forfeit("bob")
        assert game.status == GameStatus.ABANDONED
        assert game.winner == "alice"
        assert game.ended_at is not None

        with pytest.raises(GameError, match="already finished"):
            game.forfeit("alice")

    def test_outsider_cannot_forfeit(self, game):
        with pytest.raises(GameError) as exc_info:
            game.forfeit("mallory")
        assert exc_info.value.status_code == 403


class TestRoll:

    def test_roll(self, game):
        outcome = game.roll("alice")
        assert len(outcome.dice) in (2, 4)
        assert all(1 <= d <= 6 for d in outcome.dice)
        assert not outcome.turn_passed
        assert game.state.dice == outcome.dice
        assert game.state.dice_used == [False] * len(outcome.dice)

    def test_not_your_turn(self, game):
        with pytest.raises(GameError, match="Not your turn"):
            game.roll("bob")

    def test_pending_game(self):
        game = create_game(1, "alice", "bob")
        with pytest.raises(GameError, match="not in progress"):
            game.roll(game.current_turn)

    def test_roll_twice(self, game):
        game.roll("alice")
        with pytest.raises(GameError, match="already rolled"):
            game.roll("alice")

    def test_no_legal_moves_passes_turn(self, game):
        # Black has closed its home board and white has a checker on the bar
        _set_position(
            game,
            {6: 14, 18: -3, 19: -2, 20: -2, 21: -2, 22: -2, 23: -2, 24: -2},
            bar={Color.WHITE: 1},
        )
        game.state.check_conservation()

        outcome = game.roll("alice")
        assert outcome.turn_passed
        assert game.current_turn == "bob"
        assert game.state.dice is None
        assert game.state.dice_used is None


class TestSingleMoves:

    def test_move_and_end_turn(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -2, 19: -13}, dice=[6, 5])

        outcome = game.move("alice", _move(24, 18, 6, (0,)))
        assert not outcome.turn_ended
        assert game.state.board[18 - 1] == 1
        assert game.state.dice_used == [True, False]
        assert game.move_count == 1
        assert outcome.steps == [MoveStep(24, 18, 6)]

        outcome = game.move("alice", _move(18, 13, 5))
        assert outcome.turn_ended
        assert game.current_turn == "bob"
        assert game.state.dice is None
        assert game.move_count == 2

    def test_die_index_inferred(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[6, 5])
        outcome = game.move("alice", _move(24, 19, 5))
        assert outcome.record.dice_indices == (1,)
        assert game.state.dice_used == [False, True]

    def test_doubles_consume_one_die_at_a_time(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[3, 3, 3, 3])
        game.move("alice", _move(24, 21, 3))
        game.move("alice", _move(24, 21, 3))
        assert game.state.dice_used == [True, True, False, False]
        assert game.current_turn == "alice"

    def test_illegal_move_leaves_state(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[6, 5])
        before = game.state.board.copy()

        with pytest.raises(IllegalMoveError) as exc_info:
            game.move("alice", _move(24, 20, 6))
        assert exc_info.value.error.kind == MoveErrorKind.DESTINATION_MISMATCH
        assert exc_info.value.status_code == 400

        np.testing.assert_array_equal(game.state.board, before)
        assert game.state.dice_used == [False, False]
        assert game.move_count == 0

    def test_die_not_rolled(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[6, 5])
        with pytest.raises(GameError, match="Die not available"):
            game.move("alice", _move(24, 20, 4))

    def test_die_already_used(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[6, 5], used=[True, False])
        with pytest.raises(GameError, match="Die not available"):
            game.move("alice", _move(24, 18, 6))
        with pytest.raises(GameError, match="Die already used"):
            game.move("alice", _move(24, 18, 6, (0,)))

    def test_die_index_mismatch(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[6, 5])
        with pytest.raises(GameError, match="does not match the chosen die"):
            game.move("alice", _move(24, 18, 6, (1,)))

    def test_single_move_with_several_indices(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[6, 5])
        with pytest.raises(GameError, match="exactly one die"):
            game.move("alice", _move(24, 18, 6, (0, 1)))
        assert game.state.dice_used == [False, False]

    def test_die_out_of_range(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[6, 5])
        with pytest.raises(GameError, match="between 1 and 6"):
            game.move("alice", _move(24, 17, 7))

    def test_move_before_roll(self, game):
        with pytest.raises(GameError, match="not rolled"):
            game.move("alice", _move(24, 18, 6))

    def test_move_out_of_turn(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[6, 5])
        with pytest.raises(GameError, match="Not your turn"):
            game.move("bob", _move(1, 7, 6))

    def test_hit_sends_blot_to_bar(self, game):
        _set_position(game, {24: 2, 6: 13, 18: -1, 19: -14}, dice=[6, 5])
        outcome = game.move("alice", _move(24, 18, 6))
        assert outcome.record.hit_opponent
        assert game.state.bar[Color.BLACK] == 1
        assert game.state.board[18 - 1] == 1
        game.state.check_conservation()


class TestBarAndBearOff:

    def test_must_enter_first(self, game):
        _set_position(game, {6: 14, 1: -15}, dice=[3, 4], bar={Color.WHITE: 1})
        with pytest.raises(IllegalMoveError) as exc_info:
            game.move("alice", _move(6, 3, 3))
        assert exc_info.value.error.kind == MoveErrorKind.MUST_ENTER_FROM_BAR

    def test_enter_from_bar(self, game):
        _set_position(game, {6: 14, 1: -15}, dice=[3, 4], bar={Color.WHITE: 1})
        outcome = game.move("alice", _move(0, 22, 3))
        assert game.state.bar[Color.WHITE] == 0
        assert game.state.board[22 - 1] == 1
        assert not outcome.turn_ended

    def test_entry_hits_blot(self, game):
        _set_position(game, {6: 14, 22: -1, 1: -14}, dice=[3, 4], bar={Color.WHITE: 1})
        outcome = game.move("alice", _move(0, 22, 3))
        assert outcome.record.hit_opponent
        assert game.state.bar == {Color.WHITE: 0, Color.BLACK: 1}
        game.state.check_conservation()

    def test_bear_off(self, game):
        _set_position(game, {6: 2, 5: 3, 1: -15}, dice=[6, 2], borne_off={Color.WHITE: 10})
        game.move("alice", _move(6, 25, 6))
        assert game.state.borne_off[Color.WHITE] == 11
        assert game.state.board[6 - 1] == 1

    def test_last_checker_wins(self, game):
        _set_position(game, {1: 1, 19: -15}, dice=[1, 2], borne_off={Color.WHITE: 14})
        outcome = game.move("alice", _move(1, 25, 1))

        assert outcome.winner == "alice"
        assert outcome.turn_ended
        assert game.status == GameStatus.COMPLETED
        assert game.winner == "alice"
        assert game.ended_at is not None

        with pytest.raises(GameError, match="not in progress"):
            game.roll("alice")

    def test_black_wins(self, game):
        game.current_turn = "bob"
        _set_position(game, {24: -1, 6: 15}, dice=[5, 6], borne_off={Color.BLACK: 14})
        outcome = game.move("bob", _move(24, 25, 6))
        assert outcome.winner == "bob"
        assert game.status == GameStatus.COMPLETED


class TestCombinedMoves:

    def test_combined_move(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[6, 5])
        outcome = game.move("alice", _move(24, 13, 11, (0, 1), True))
        assert outcome.turn_ended
        assert [s.to_point for s in outcome.steps] == [18, 13]
        assert game.state.board[13 - 1] == 1
        assert game.state.board[24 - 1] == 1

    def test_intermediate_hit(self, game):
        _set_position(game, {24: 2, 6: 13, 18: -1, 1: -14}, dice=[6, 5])
        outcome = game.move("alice", _move(24, 13, 11, (0, 1), True))

        assert outcome.record.hit_opponent
        assert outcome.steps[0].hits_opponent
        assert game.state.bar[Color.BLACK] == 1
        assert game.state.board[18 - 1] == 0
        game.state.check_conservation()

    def test_blocked_order_is_reversed(self, game):
        _set_position(game, {24: 2, 6: 13, 18: -2, 1: -13}, dice=[6, 5])
        outcome = game.move("alice", _move(24, 13, 11, (0, 1), True))
        assert outcome.record.dice_indices == (1, 0)
        assert [s.to_point for s in outcome.steps] == [19, 13]

    def test_blocked_order_without_reordering(self, game):
        game.rules = RulesOptions(try_all_orders=False)
        _set_position(game, {24: 2, 6: 13, 18: -2, 1: -13}, dice=[6, 5])
        with pytest.raises(GameError, match="blocked along the way"):
            game.move("alice", _move(24, 13, 11, (0, 1), True))

    def test_wrong_sum(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[6, 5])
        with pytest.raises(GameError, match="sum of dice"):
            game.move("alice", _move(24, 14, 10, (0, 1), True))

    def test_used_index(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[6, 5], used=[True, False])
        with pytest.raises(GameError, match="Die already used"):
            game.move("alice", _move(24, 13, 11, (0, 1), True))

    def test_repeated_index(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[6, 5])
        with pytest.raises(GameError, match="distinct"):
            game.move("alice", _move(24, 14, 10, (1, 1), True))

    def test_index_out_of_range(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[6, 5])
        with pytest.raises(GameError, match="Invalid dice index"):
            game.move("alice", _move(24, 13, 11, (0, 2), True))

    def test_wrong_destination(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[6, 5])
        with pytest.raises(IllegalMoveError) as exc_info:
            game.move("alice", _move(24, 12, 11, (0, 1), True))
        assert exc_info.value.error.kind == MoveErrorKind.DESTINATION_MISMATCH

    def test_enter_and_continue_rejected_by_default(self, game):
        """A single bar checker may not chain dice unless the rules allow it."""
        _set_position(game, {6: 14, 1: -15}, dice=[3, 4], bar={Color.WHITE: 1})
        assert not any(m.is_combined_move for m in game.legal_moves("alice"))

        with pytest.raises(GameError, match="one die at a time") as exc_info:
            game.move("alice", _move(0, 18, 7, (0, 1), True))
        assert exc_info.value.status_code == 400
        assert game.state.bar[Color.WHITE] == 1
        assert game.state.dice_used == [False, False]
        assert game.move_count == 0

    def test_enter_and_continue_when_enabled(self, game):
        game.rules = RulesOptions(chain_bar_entry=True)
        _set_position(game, {6: 14, 1: -15}, dice=[3, 4], bar={Color.WHITE: 1})
        assert any(m.from_point == 0 and m.is_combined_move for m in game.legal_moves("alice"))

        outcome = game.move("alice", _move(0, 18, 7, (0, 1), True))
        assert outcome.steps == [MoveStep(0, 22, 3), MoveStep(22, 18, 4)]
        assert game.state.bar[Color.WHITE] == 0
        assert game.state.board[18 - 1] == 1
        assert outcome.turn_ended

    def test_enter_and_continue_needs_single_bar_checker(self, game):
        game.rules = RulesOptions(chain_bar_entry=True)
        _set_position(game, {6: 13, 1: -15}, dice=[3, 4], bar={Color.WHITE: 2})
        with pytest.raises(GameError, match="one die at a time"):
            game.move("alice", _move(0, 18, 7, (0, 1), True))
        assert game.state.bar[Color.WHITE] == 2

    def test_doubles_combined(self, game):
        _set_position(game, {24: 2, 6: 13, 1: -15}, dice=[2, 2, 2, 2])
        outcome = game.move("alice", _move(24, 18, 6, (0, 1, 2), True))
        assert not outcome.turn_ended
        assert game.state.dice_used == [True, True, True, False]


class TestLegalMovesAndSerialisation:

    def test_legal_moves_only_on_own_roll(self, game):
        assert game.legal_moves("alice") == []
        game.roll("alice")
        assert game.legal_moves("alice")
        assert game.legal_moves("bob") == []

    def test_outsider_cannot_list_moves(self, game):
        with pytest.raises(GameError) as exc_info:
            game.legal_moves("mallory")
        assert exc_info.value.status_code == 403

    def test_state_dict(self, game):
        state = game.state_dict()
        assert state['gameId'] == 1
        assert len(state['board']) == 24
        assert state['barWhite'] == 0 and state['barBlack'] == 0
        assert state['bornedOffWhite'] == 0 and state['bornedOffBlack'] == 0
        assert state['diceRoll'] is None

    def test_to_dict(self, game):
        data = game.to_dict()
        assert data['player1'] == {'username': 'alice', 'color': 'white'}
        assert data['player2'] == {'username': 'bob', 'color': 'black'}
        assert data['currentTurn'] == 'alice'
        assert data['gameStatus'] == 'in_progress'

    def test_corrupt_state_is_detected(self, game):
        _set_position(game, {24: 2, 6: 12, 1: -15}, dice=[6, 5])
        with pytest.raises(GameError) as exc_info:
            game.move("alice", _move(24, 18, 6))
        assert exc_info.value.status_code == 500

        # The rejected move is not committed
        assert game.state.board[24 - 1] == 2
        assert game.state.board[18 - 1] == 0
        assert game.state.dice_used == [False, False]
        assert game.move_count == 0

    def test_check_conservation(self):
        state = GameState()
        state.check_conservation()
        state.borne_off[Color.BLACK] = 1
        with pytest.raises(GameError, match="Corrupt game state"):
            state.check_conservation()


class TestMoveRequest:

    def test_from_dict(self):
        request = MoveRequest.from_dict({
            'fromPoint': 24, 'toPoint': 13, 'dieUsed': 11,
            'diceIndices': [0, 1], 'isCombinedMove': True,
        })
        assert request == MoveRequest(24, 13, 11, (0, 1), True)

    def test_optional_fields(self):
        request = MoveRequest.from_dict({'fromPoint': 24, 'toPoint': 18, 'dieUsed': 6})
        assert request.dice_indices == ()
        assert not request.is_combined_move

    @pytest.mark.parametrize("body", [
        None,
        [],
        {'fromPoint': 24, 'toPoint': 18},
        {'fromPoint': '24', 'toPoint': 18, 'dieUsed': 6},
        {'fromPoint': 24.0, 'toPoint': 18, 'dieUsed': 6},
        {'fromPoint': True, 'toPoint': 18, 'dieUsed': 6},
        {'fromPoint': 24, 'toPoint': 18, 'dieUsed': 6, 'diceIndices': ['x']},
        {'fromPoint': 24, 'toPoint': 18, 'dieUsed': 6, 'isCombinedMove': 'false'},
        {'fromPoint': 24, 'toPoint': 18, 'dieUsed': 6, 'isCombinedMove': 1},
    ])
    def test_rejects_bad_bodies(self, body):
        with pytest.raises(GameError, match="Invalid request body"):
            MoveRequest.from_dict(body)


class TestHistory:

    def test_moves_are_recorded(self, tmp_path):
        with MoveHistoryLogger(tmp_path, console_interval=0) as history:
            game = create_game(5, "alice", "bob", rng=np.random.default_rng(1), history=history)
            game.colors = {"alice": Color.WHITE, "bob": Color.BLACK}
            game.current_turn = "alice"
            game.start("alice")
            _set_position(game, {24: 2, 6: 13, 18: -1, 1: -14}, dice=[6, 5])
            game.move("alice", _move(24, 18, 6))

        records = read_history(history.path)
        assert len(records) == 1
        assert records[0]['game_id'] == 5
        assert records[0]['from_point'] == 24
        assert records[0]['hit_opponent'] is True


class TestSelfPlay:
    """Random legal play keeps all 30 checkers accounted for."""

    @pytest.mark.parametrize("seed", [0, 1, 2])
    def test_random_games(self, seed):
        chooser = np.random.default_rng(seed + 100)
        game = create_game(1, "alice", "bob", rng=np.random.default_rng(seed))
        game.start("alice")

        for _ in range(3000):
            if game.status != GameStatus.IN_PROGRESS:
                break
            player = game.current_turn
            if game.state.dice is None:
                game.roll(player)
                continue

            moves = game.legal_moves(player)
            assert moves
            move = moves[int(chooser.integers(len(moves)))]
            game.move(player, MoveRequest(
                move.from_point, move.to_point, move.die_used,
                move.dice_indices, move.is_combined_move,
            ))

            is_valid, message = is_valid_position(
                game.state.board, game.state.bar, game.state.borne_off)
            assert is_valid, message
            assert all(count >= 0 for count in game.state.bar.values())

        if game.status == GameStatus.COMPLETED:
            assert game.state.borne_off[game.color_of(game.winner)] == 15
