"""Game workflow on top of the rules engine.

A Game owns the authoritative state between turns (board, bar and
borne-off counts, dice) and runs every player action through the pure
engine in ``backgammon_service.core.rules``. The engine never touches
bar counts; the bookkeeping for entries, hits and bear-offs happens here.

Each game serialises its own mutations with a lock, so two requests for
the same game can never both validate against a board that one of them
is about to change.
"""

import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Tuple

import numpy as np

from backgammon_service.core.board import (
    initial_board,
    can_bear_off,
    is_valid_position,
)
from backgammon_service.core.dice import new_turn_dice, all_dice_used, unused_dice
from backgammon_service.core.rules import (
    validate_move,
    execute_move,
    plan_sequential_move,
    distinct_orderings,
    get_legal_moves,
    has_legal_moves,
    check_win_condition,
)
from backgammon_service.core.types import (
    Board,
    Color,
    IndexedDie,
    LegalMove,
    MoveError,
    MoveStep,
    RulesOptions,
    DEFAULT_RULES,
    BAR_POINT,
    OFF_POINT,
)
from backgammon_service.service.history import MoveHistoryLogger, MoveRecord


class GameStatus(Enum):
    """Lifecycle of a game."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


# ==============================================================================
# ERRORS
# ==============================================================================

class GameError(Exception):
    """A request the game cannot honour, with the HTTP status to report."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class IllegalMoveError(GameError):
    """The engine rejected the proposed move."""

    def __init__(self, error: MoveError):
        super().__init__(error.message, 400)
        self.error = error


# ==============================================================================
# STATE
# ==============================================================================

def _per_color(value: int = 0) -> Dict[Color, int]:
    return {Color.WHITE: value, Color.BLACK: value}


@dataclass
class GameState:
    """Everything that changes as the game is played.

    Attributes:
        board: 24 signed point counts
        bar: Checkers on the bar per color
        borne_off: Checkers borne off per color
        dice: Dice sequence of the current turn, None between turns
        dice_used: Parallel used flags, None between turns
        last_updated: Unix timestamp of the last change
    """
    board: Board = field(default_factory=initial_board)
    bar: Dict[Color, int] = field(default_factory=_per_color)
    borne_off: Dict[Color, int] = field(default_factory=_per_color)
    dice: Optional[List[int]] = None
    dice_used: Optional[List[bool]] = None
    last_updated: float = field(default_factory=time.time)

    def check_conservation(self) -> None:
        """Raise if any color no longer accounts for all 15 checkers."""
        is_valid, message = is_valid_position(self.board, self.bar, self.borne_off)
        if not is_valid:
            raise GameError(f"Corrupt game state: {message}", 500)

    def clear_dice(self) -> None:
        self.dice = None
        self.dice_used = None

    def to_dict(self, game_id: int) -> Dict:
        return {
            'gameId': game_id,
            'board': [int(c) for c in self.board],
            'barWhite': self.bar[Color.WHITE],
            'barBlack': self.bar[Color.BLACK],
            'bornedOffWhite': self.borne_off[Color.WHITE],
            'bornedOffBlack': self.borne_off[Color.BLACK],
            'diceRoll': list(self.dice) if self.dice is not None else None,
            'diceUsed': list(self.dice_used) if self.dice_used is not None else None,
            'lastUpdated': self.last_updated,
        }


@dataclass(frozen=True)
class MoveRequest:
    """A move as proposed by a client. Nothing in it is trusted."""
    from_point: int
    to_point: int
    die_used: int
    dice_indices: Tuple[int, ...] = ()
    is_combined_move: bool = False

    @classmethod
    def from_dict(cls, data) -> "MoveRequest":
        """Parse the camelCase JSON body of a move request."""
        if not isinstance(data, dict):
            raise GameError("Invalid request body")
        try:
            indices = data.get('diceIndices') or []
            return cls(
                from_point=_strict_int(data['fromPoint']),
                to_point=_strict_int(data['toPoint']),
                die_used=_strict_int(data['dieUsed']),
                dice_indices=tuple(_strict_int(i) for i in indices),
                is_combined_move=_strict_bool(data.get('isCombinedMove', False)),
            )
        except (KeyError, TypeError, ValueError):
            raise GameError("Invalid request body")


def _strict_int(value) -> int:
    # bool is an int subclass; reject it along with floats and strings
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"Expected integer, got {value!r}")
    return value


def _strict_bool(value) -> bool:
    if not isinstance(value, bool):
        raise TypeError(f"Expected boolean, got {value!r}")
    return value


@dataclass
class MoveOutcome:
    """What a committed move did.

    Attributes:
        record: The move as written to the history
        steps: Per-die checker movements that were applied
        turn_ended: Whether the turn passed to the opponent
        winner: Winning player name if the move won the game
    """
    record: MoveRecord
    steps: List[MoveStep]
    turn_ended: bool
    winner: Optional[str] = None


@dataclass
class RollOutcome:
    """Dice of a roll, and whether the roll had to be passed."""
    dice: List[int]
    turn_passed: bool


# ==============================================================================
# GAME
# ==============================================================================

@dataclass
class Game:
    """A two-player game and its authoritative state."""

    game_id: int
    player1: str
    player2: str
    colors: Dict[str, Color]
    current_turn: str
    status: GameStatus = GameStatus.PENDING
    winner: Optional[str] = None
    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    ended_at: Optional[float] = None
    state: GameState = field(default_factory=GameState)
    move_count: int = 0
    rules: RulesOptions = DEFAULT_RULES
    rng: np.random.Generator = field(default_factory=np.random.default_rng, repr=False)
    history: Optional[MoveHistoryLogger] = field(default=None, repr=False)

    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    # --------------------------------------------------------------------------
    # Players
    # --------------------------------------------------------------------------

    @property
    def players(self) -> Tuple[str, str]:
        return (self.player1, self.player2)

    def has_player(self, player: str) -> bool:
        return player in self.players

    def opponent_of(self, player: str) -> str:
        return self.player2 if player == self.player1 else self.player1

    def color_of(self, player: str) -> Color:
        return self.colors[player]

    @property
    def is_finished(self) -> bool:
        return self.status in (GameStatus.COMPLETED, GameStatus.ABANDONED)

    def _require_player(self, player: str) -> None:
        if not self.has_player(player):
            raise GameError("You are not a player in this game", 403)

    def _require_turn(self, player: str) -> None:
        self._require_player(player)
        if self.current_turn != player:
            raise GameError("Not your turn")
        if self.status != GameStatus.IN_PROGRESS:
            raise GameError("Game is not in progress")

    # --------------------------------------------------------------------------
    # Lifecycle
    # --------------------------------------------------------------------------

    def start(self, player: str) -> None:
        """Move a pending game into play."""
        with self._lock:
            self._require_player(player)
            if self.status != GameStatus.PENDING:
                raise GameError("Game has already started or is finished")
            self.status = GameStatus.IN_PROGRESS
            self.started_at = time.time()
            self._log_event("started", first_turn=self.current_turn)

    def forfeit(self, player: str) -> None:
        """Abandon the game; the opponent wins."""
        with self._lock:
            self._require_player(player)
            if self.is_finished:
                raise GameError("Game already finished")
            self.status = GameStatus.ABANDONED
            self.winner = self.opponent_of(player)
            self.ended_at = time.time()
            self._log_event("forfeited", player=player, winner=self.winner)

    # --------------------------------------------------------------------------
    # Turn actions
    # --------------------------------------------------------------------------

    def roll(self, player: str) -> RollOutcome:
        """Roll the dice for the player to move.

        If nothing is playable with the roll, the turn passes at once.
        """
        with self._lock:
            self._require_turn(player)
            if self.state.dice is not None:
                raise GameError("Dice already rolled for this turn")

            color = self.color_of(player)
            dice, dice_used = new_turn_dice(self.rng)
            self.state.dice = dice
            self.state.dice_used = dice_used
            self.state.last_updated = time.time()

            if not has_legal_moves(self.state.board, color, dice, dice_used,
                                   self.state.bar[color], self.rules):
                self._end_turn()
                self._log_event("passed", player=player, dice=dice)
                return RollOutcome(dice=dice, turn_passed=True)

            return RollOutcome(dice=dice, turn_passed=False)

    def legal_moves(self, player: str) -> List[LegalMove]:
        """Legal moves for the player; empty unless it is their roll."""
        with self._lock:
            self._require_player(player)
            if (self.state.dice is None or self.current_turn != player
                    or self.status != GameStatus.IN_PROGRESS):
                return []
            color = self.color_of(player)
            return get_legal_moves(
                self.state.board,
                color,
                self.state.dice,
                self.state.dice_used,
                self.state.bar[color],
                self.state.borne_off[color],
                self.rules,
            )

    def move(self, player: str, request: MoveRequest) -> MoveOutcome:
        """Validate and commit one move.

        Client-supplied combined moves are re-planned here die by die, so
        the route, every intermediate landing and every hit along the way
        come from the engine rather than from the request.
        """
        with self._lock:
            self._require_turn(player)
            if self.state.dice is None:
                raise GameError("Dice not rolled yet")

            color = self.color_of(player)
            if request.is_combined_move and request.dice_indices:
                steps, indices = self._plan_combined(color, request)
            else:
                steps, indices = self._plan_single(color, request)

            # Nothing is committed unless the resulting position balances
            candidate, hit_any = self._apply_steps(color, steps)
            for index in indices:
                candidate.dice_used[index] = True
            candidate.check_conservation()
            self.state = candidate

            self.move_count += 1
            record = MoveRecord(
                game_id=self.game_id,
                move_number=self.move_count,
                player=player,
                color=color.value,
                from_point=request.from_point,
                to_point=request.to_point,
                die_used=request.die_used,
                dice_indices=tuple(indices),
                hit_opponent=hit_any,
            )
            if self.history is not None:
                self.history.log_move(record)

            if check_win_condition(self.state.borne_off[color]):
                self.status = GameStatus.COMPLETED
                self.winner = player
                self.ended_at = time.time()
                self._log_event("completed", winner=player)
                return MoveOutcome(record=record, steps=steps, turn_ended=True, winner=player)

            turn_ended = False
            if all_dice_used(self.state.dice_used) or not has_legal_moves(
                self.state.board, color, self.state.dice, self.state.dice_used,
                self.state.bar[color], self.rules,
            ):
                self._end_turn()
                turn_ended = True

            return MoveOutcome(record=record, steps=steps, turn_ended=turn_ended)

    # --------------------------------------------------------------------------
    # Internals (caller holds the lock)
    # --------------------------------------------------------------------------

    def _plan_single(self, color: Color, request: MoveRequest) -> Tuple[List[MoveStep], List[int]]:
        if not 1 <= request.die_used <= 6:
            raise GameError("Die value must be between 1 and 6")

        bar_count = self.state.bar[color]
        error = validate_move(self.state.board, request.from_point, request.to_point,
                              request.die_used, color, bar_count)
        if error is not None:
            raise IllegalMoveError(error)

        if len(request.dice_indices) > 1:
            raise GameError("A single move uses exactly one die")
        if request.dice_indices:
            index = request.dice_indices[0]
            self._check_die_index(index)
            if self.state.dice[index] != request.die_used:
                raise GameError("Die value does not match the chosen die")
        else:
            available = [d for d in unused_dice(self.state.dice, self.state.dice_used)
                         if d.value == request.die_used]
            if not available:
                raise GameError("Die not available or already used")
            index = available[0].index

        step = MoveStep(request.from_point, request.to_point, request.die_used)
        return [step], [index]

    def _plan_combined(self, color: Color, request: MoveRequest) -> Tuple[List[MoveStep], List[int]]:
        # Same condition under which get_legal_moves offers enter-and-continue
        if request.from_point == BAR_POINT and not (
                self.rules.chain_bar_entry and self.state.bar[color] == 1):
            raise GameError("Checkers on the bar must enter one die at a time")

        indices = list(request.dice_indices)
        for index in indices:
            self._check_die_index(index)
        if len(set(indices)) != len(indices):
            raise GameError("Dice indices must be distinct")
        if not (0 <= request.from_point <= 25 and 0 <= request.to_point <= 25):
            raise GameError("Invalid point values")

        expected_sum = sum(self.state.dice[i] for i in indices)
        if request.die_used != expected_sum:
            raise GameError("Die value does not match sum of dice")

        board = self.state.board
        bar_count = self.state.bar[color]
        can_bear = can_bear_off(board, color, bar_count)
        dice = tuple(IndexedDie(self.state.dice[i], i) for i in indices)

        # The requested order is always tried first
        orders = distinct_orderings(dice) if self.rules.try_all_orders else [dice]

        for order in orders:
            steps = plan_sequential_move(board, request.from_point, order, color, bar_count, can_bear)
            if steps is not None and steps[-1].to_point == request.to_point:
                return steps, [d.index for d in order]

        error = validate_move(board, request.from_point, request.to_point,
                              request.die_used, color, bar_count)
        if error is not None:
            raise IllegalMoveError(error)
        raise GameError("Combined move is blocked along the way")

    def _check_die_index(self, index: int) -> None:
        if not 0 <= index < len(self.state.dice_used):
            raise GameError("Invalid dice index")
        if self.state.dice_used[index]:
            raise GameError("Die already used")

    def _apply_steps(self, color: Color, steps: List[MoveStep]) -> Tuple[GameState, bool]:
        """Play the steps on a copy of the state; self.state is untouched."""
        candidate = replace(
            self.state,
            bar=dict(self.state.bar),
            borne_off=dict(self.state.borne_off),
            dice_used=list(self.state.dice_used),
            last_updated=time.time(),
        )
        hit_any = False
        for step in steps:
            result = execute_move(candidate.board, step.from_point, step.to_point, color)
            candidate.board = result.new_board
            if step.from_point == BAR_POINT:
                candidate.bar[color] -= 1
            if step.to_point == OFF_POINT:
                candidate.borne_off[color] += 1
            if result.hit_opponent:
                # Executor reports the hit; the opponent's bar is ours to update
                candidate.bar[color.opponent()] += 1
                hit_any = True
        return candidate, hit_any

    def _end_turn(self) -> None:
        self.current_turn = self.opponent_of(self.current_turn)
        self.state.clear_dice()
        self.state.last_updated = time.time()

    def _log_event(self, event: str, **details) -> None:
        if self.history is not None:
            self.history.log_event(self.game_id, event, **details)

    # --------------------------------------------------------------------------
    # Serialisation
    # --------------------------------------------------------------------------

    def to_dict(self) -> Dict:
        """Game details in the API's JSON shape."""
        return {
            'gameId': self.game_id,
            'player1': {'username': self.player1, 'color': self.colors[self.player1].value},
            'player2': {'username': self.player2, 'color': self.colors[self.player2].value},
            'currentTurn': self.current_turn,
            'gameStatus': self.status.value,
            'winner': self.winner,
            'moveCount': self.move_count,
            'createdAt': self.created_at,
            'startedAt': self.started_at,
            'endedAt': self.ended_at,
        }

    def state_dict(self) -> Dict:
        with self._lock:
            return self.state.to_dict(self.game_id)


def create_game(
    game_id: int,
    player1: str,
    player2: str,
    rng: Optional[np.random.Generator] = None,
    rules: RulesOptions = DEFAULT_RULES,
    history: Optional[MoveHistoryLogger] = None,
) -> Game:
    """Set up a pending game with random colors and a random first turn.

    Args:
        game_id: Identifier of the new game
        player1: First player's name
        player2: Second player's name
        rng: Generator for colors, first turn and dice
        rules: Engine switches for this game
        history: Optional move history sink

    Returns:
        Game in the standard starting position
    """
    if not player1 or not player2:
        raise GameError("Both players are required")
    if player1 == player2:
        raise GameError("Cannot create game with same player")

    if rng is None:
        rng = np.random.default_rng()

    if int(rng.integers(0, 2)) == 0:
        colors = {player1: Color.WHITE, player2: Color.BLACK}
    else:
        colors = {player1: Color.BLACK, player2: Color.WHITE}
    current_turn = player1 if int(rng.integers(0, 2)) == 0 else player2

    return Game(
        game_id=game_id,
        player1=player1,
        player2=player2,
        colors=colors,
        current_turn=current_turn,
        rules=rules,
        rng=rng,
        history=history,
    )
