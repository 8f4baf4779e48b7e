"""Move rules: validation, execution and legal move generation.

Every function here is pure. Boards come in as any length-24 sequence,
are copied before anything is changed, and new boards are returned to
the caller. Bar and borne-off counts are parameters, never state.

Point conventions:
    0   = the bar (as a source point)
    1-24 = board points
    25  = borne off (as a destination point)
"""

from itertools import combinations, permutations
from typing import List, Optional, Sequence, Tuple, Union
from backgammon_service.core.types import (
    Board,
    Color,
    Point,
    IndexedDie,
    LegalMove,
    MoveError,
    MoveErrorKind,
    MoveResult,
    MoveStep,
    RulesOptions,
    ValidationResult,
    DEFAULT_RULES,
    BAR_POINT,
    OFF_POINT,
    CHECKERS_PER_SIDE,
    as_board,
)
from backgammon_service.core.board import (
    is_on_board,
    is_point_open,
    can_bear_off,
    count_checkers_on_point,
    points_with_checkers,
)
from backgammon_service.core.dice import unused_dice


# ==============================================================================
# MOVE ARITHMETIC
# ==============================================================================

def calculate_to_point(from_point: Point, die_value: int, color: Color) -> Point:
    """Destination of a checker moved by one die.

    White moves from high numbers to low (24 → 1), black from low to high
    (1 → 24). The result can fall outside 1-24; <= 0 for white or >= 25
    for black is bear-off territory.
    """
    if color == Color.WHITE:
        return from_point - die_value
    return from_point + die_value


def entry_point(color: Color, die_value: int) -> Point:
    """Point a checker enters on from the bar.

    White enters in black's home board (19-24), black in white's (1-6).
    """
    if color == Color.WHITE:
        return 25 - die_value
    return die_value


def _is_exact_bear_off(expected_to: Point, color: Color) -> bool:
    # The edge just past the home board: 0 for white, 25 for black
    if color == Color.WHITE:
        return expected_to == 0
    return expected_to == 25


def _overshoots(expected_to: Point, color: Color) -> bool:
    if color == Color.WHITE:
        return expected_to < 0
    return expected_to > 25


# ==============================================================================
# MOVE VALIDATION
# ==============================================================================

def is_highest_occupied_point(board: Board, point: Point, color: Color) -> bool:
    """Check if no checker of the color sits further from home than point.

    This decides whether a die larger than needed may bear a checker off
    from ``point``. The source point itself is not inspected; the far edge
    of the home board (6 for white, 19 for black) is.
    """
    if color == Color.WHITE:
        farther = range(point + 1, 7)
    else:
        farther = range(19, point)
    return all(count_checkers_on_point(board, p, color) == 0 for p in farther)


def validate_move(
    board: Board,
    from_point: Point,
    to_point: Point,
    die_value: int,
    color: Color,
    bar_count: int,
) -> ValidationResult:
    """Check if a single move is legal.

    Checks run in a fixed order and the first failure is reported.

    Args:
        board: Current board
        from_point: Source point (0 = bar)
        to_point: Destination point (25 = bear off)
        die_value: Die (or dice sum) being played
        color: Color making the move
        bar_count: That color's checkers on the bar

    Returns:
        None if the move is legal, otherwise a MoveError describing why not
    """
    def fail(kind: MoveErrorKind) -> MoveError:
        return MoveError(kind=kind, from_point=from_point, to_point=to_point, die_value=die_value)

    # Must enter from bar first
    if bar_count > 0 and from_point != BAR_POINT:
        return fail(MoveErrorKind.MUST_ENTER_FROM_BAR)

    # Entering from the bar
    if from_point == BAR_POINT:
        if bar_count == 0:
            return fail(MoveErrorKind.NO_CHECKER_ON_BAR)
        expected = entry_point(color, die_value)
        if to_point != expected:
            return fail(MoveErrorKind.INVALID_ENTRY_POINT)
        if not is_point_open(board, expected, color):
            return fail(MoveErrorKind.ENTRY_BLOCKED)
        return None

    # Bearing off
    if to_point == OFF_POINT:
        if not can_bear_off(board, color, bar_count):
            return fail(MoveErrorKind.CANNOT_BEAR_OFF_YET)
        if count_checkers_on_point(board, from_point, color) == 0:
            return fail(MoveErrorKind.NO_CHECKER_ON_SOURCE)
        expected_to = calculate_to_point(from_point, die_value, color)
        if _is_exact_bear_off(expected_to, color):
            return None
        if _overshoots(expected_to, color):
            if not is_highest_occupied_point(board, from_point, color):
                return fail(MoveErrorKind.MUST_BEAR_OFF_FROM_HIGHEST)
            return None
        return fail(MoveErrorKind.CANNOT_BEAR_OFF_FROM_POINT)

    # Regular move
    if not (is_on_board(from_point) and is_on_board(to_point)):
        return fail(MoveErrorKind.INVALID_POINT_NUMBERS)
    if count_checkers_on_point(board, from_point, color) == 0:
        return fail(MoveErrorKind.NO_CHECKER_ON_SOURCE)
    if calculate_to_point(from_point, die_value, color) != to_point:
        return fail(MoveErrorKind.DESTINATION_MISMATCH)
    if not is_point_open(board, to_point, color):
        return fail(MoveErrorKind.DESTINATION_BLOCKED)

    return None


# ==============================================================================
# MOVE EXECUTION
# ==============================================================================

def execute_move(board: Board, from_point: Point, to_point: Point, color: Color) -> MoveResult:
    """Apply a validated move to a copy of the board.

    The input board is never modified. Hitting a blot is reported through
    ``hit_opponent`` only: the caller owns the bar counts and must put
    the opponent's checker on the bar.

    Args:
        board: Current board
        from_point: Source point (0 = bar)
        to_point: Destination point (25 = bear off)
        color: Color making the move

    Returns:
        MoveResult(new_board, hit_opponent)
    """
    if not (from_point == BAR_POINT or is_on_board(from_point)):
        raise ValueError(f"Invalid from_point: {from_point}")
    if not (to_point == OFF_POINT or is_on_board(to_point)):
        raise ValueError(f"Invalid to_point: {to_point}")
    if from_point == BAR_POINT and to_point == OFF_POINT:
        raise ValueError("Cannot bear off directly from the bar")

    new_board = as_board(board)
    sign = color.sign

    # Bearing off: only the source changes
    if to_point == OFF_POINT:
        new_board[from_point - 1] -= sign
        return MoveResult(new_board=new_board, hit_opponent=False)

    if from_point != BAR_POINT:
        new_board[from_point - 1] -= sign

    hit_opponent = False
    if new_board[to_point - 1] == -sign:
        hit_opponent = True
        new_board[to_point - 1] = 0
    new_board[to_point - 1] += sign

    return MoveResult(new_board=new_board, hit_opponent=hit_opponent)


# ==============================================================================
# COMBINED MOVES
# ==============================================================================

DieLike = Union[IndexedDie, int]


def _die_value(die: DieLike) -> int:
    return die.value if isinstance(die, IndexedDie) else int(die)


def generate_combinations(dice: Sequence[IndexedDie], n: int) -> List[Tuple[IndexedDie, ...]]:
    """All order-preserving n-combinations of the given dice.

    Examples:
        >>> [tuple(d.index for d in c) for c in generate_combinations(
        ...     [IndexedDie(3, 0), IndexedDie(5, 1), IndexedDie(2, 2)], 2)]
        [(0, 1), (0, 2), (1, 2)]
    """
    if n <= 0 or n > len(dice):
        return []
    return list(combinations(dice, n))


def distinct_orderings(combo: Tuple[IndexedDie, ...]) -> List[Tuple[IndexedDie, ...]]:
    # Permutations that differ only by swapping equal values are redundant
    seen = set()
    orderings = []
    for order in permutations(combo):
        key = tuple(d.value for d in order)
        if key not in seen:
            seen.add(key)
            orderings.append(order)
    return orderings


def plan_sequential_move(
    board: Board,
    from_point: Point,
    dice: Sequence[DieLike],
    color: Color,
    bar_count: int,
    can_bear: bool,
) -> Optional[List[MoveStep]]:
    """Play one checker through several dice in the given order.

    Each die except the last must land on a board point and pass
    validation against the board as it stands after the previous steps.
    The last die may bear off when ``can_bear`` holds. A ``from_point`` of
    0 enters from the bar with the first die.

    Returns:
        The steps taken, or None if any step is illegal
    """
    current_board = as_board(board)
    current_point = from_point
    bar = bar_count
    steps: List[MoveStep] = []
    last = len(dice) - 1

    for i, die in enumerate(dice):
        value = _die_value(die)
        if current_point == BAR_POINT:
            to_point = entry_point(color, value)
        else:
            to_point = calculate_to_point(current_point, value, color)

        # Last die can bear off
        if i == last and can_bear and not is_on_board(to_point):
            if validate_move(current_board, current_point, OFF_POINT, value, color, bar) is not None:
                return None
            steps.append(MoveStep(current_point, OFF_POINT, value))
            return steps

        if not is_on_board(to_point):
            return None
        if validate_move(current_board, current_point, to_point, value, color, bar) is not None:
            return None

        current_board, hit = execute_move(current_board, current_point, to_point, color)
        steps.append(MoveStep(current_point, to_point, value, hit))
        if current_point == BAR_POINT:
            bar -= 1
        current_point = to_point

    return steps


def try_sequential_move(
    board: Board,
    from_point: Point,
    dice: Sequence[DieLike],
    color: Color,
    bar_count: int,
    can_bear: bool,
) -> bool:
    """Check if a combined move is playable with the dice in this order."""
    return plan_sequential_move(board, from_point, dice, color, bar_count, can_bear) is not None


# ==============================================================================
# LEGAL MOVE GENERATION
# ==============================================================================

def _combined_moves_from(
    board: Board,
    from_point: Point,
    available: List[IndexedDie],
    color: Color,
    bar_count: int,
    can_bear: bool,
    options: RulesOptions,
) -> List[LegalMove]:
    moves = []
    for num_dice in range(2, len(available) + 1):
        for combo in generate_combinations(available, num_dice):
            orders = distinct_orderings(combo) if options.try_all_orders else [combo]
            for order in orders:
                steps = plan_sequential_move(board, from_point, order, color, bar_count, can_bear)
                if steps is None:
                    continue
                moves.append(LegalMove(
                    from_point=from_point,
                    to_point=steps[-1].to_point,
                    die_used=sum(d.value for d in order),
                    dice_indices=tuple(d.index for d in order),
                    is_combined_move=True,
                ))
                break
    return moves


def get_legal_moves(
    board: Board,
    color: Color,
    dice: Sequence[int],
    dice_used: Sequence[bool],
    bar_count: int,
    borne_off: int = 0,
    options: RulesOptions = DEFAULT_RULES,
) -> List[LegalMove]:
    """Return all legal moves for the current position.

    The same from/to pair can appear more than once with different dice
    indices; callers must pick a move by its indices.

    Args:
        board: Current board
        color: Color to move
        dice: Dice sequence for the turn (2 values, or 4 for doubles)
        dice_used: Parallel used flags
        bar_count: Color's checkers on the bar
        borne_off: Color's checkers already borne off
        options: Generator switches

    Returns:
        List of legal moves (empty if no dice remain or nothing is playable)
    """
    board = as_board(board)
    available = unused_dice(dice, dice_used)
    legal_moves: List[LegalMove] = []

    if not available:
        return legal_moves

    # Checkers on the bar must enter before anything else moves
    if bar_count > 0:
        for die in available:
            point = entry_point(color, die.value)
            if is_point_open(board, point, color):
                legal_moves.append(LegalMove(
                    from_point=BAR_POINT,
                    to_point=point,
                    die_used=die.value,
                    dice_indices=(die.index,),
                    is_combined_move=False,
                ))
        if options.chain_bar_entry and bar_count == 1:
            legal_moves.extend(_combined_moves_from(
                board, BAR_POINT, available, color, bar_count, False, options,
            ))
        return legal_moves

    can_bear = can_bear_off(board, color, bar_count)

    for point in points_with_checkers(board, color):
        for die in available:
            to_point = calculate_to_point(point, die.value, color)
            if can_bear and not is_on_board(to_point):
                target = OFF_POINT
            elif is_on_board(to_point):
                target = to_point
            else:
                continue
            if validate_move(board, point, target, die.value, color, bar_count) is None:
                legal_moves.append(LegalMove(
                    from_point=point,
                    to_point=target,
                    die_used=die.value,
                    dice_indices=(die.index,),
                    is_combined_move=False,
                ))

        legal_moves.extend(_combined_moves_from(
            board, point, available, color, bar_count, can_bear, options,
        ))

    return legal_moves


def has_legal_moves(
    board: Board,
    color: Color,
    dice: Sequence[int],
    dice_used: Sequence[bool],
    bar_count: int,
    options: RulesOptions = DEFAULT_RULES,
) -> bool:
    """Check if any legal move is available."""
    return len(get_legal_moves(board, color, dice, dice_used, bar_count, 0, options)) > 0


def check_win_condition(borne_off: int) -> bool:
    """A color has won once all 15 checkers are borne off."""
    return borne_off >= CHECKERS_PER_SIDE
