"""Board representation and board queries.

This module implements the read-only side of the backgammon rules:
- Board construction
- Point ownership and openness
- Home board membership and bear-off eligibility
- Checker conservation checks and debugging output

Board Layout:
    White moves from 24→1→off (home board: 1-6)
    Black moves from 1→24→off (home board: 19-24)

    Point numbering:
    13 14 15 16 17 18    19 20 21 22 23 24
    +------------------+------------------+
    |                  |                  |  Black home
    |                  |                  |
    |                  |                  |
    |                  |                  |
    |                  |                  |
    |                  |                  |  White home
    +------------------+------------------+
    12 11 10  9  8  7     6  5  4  3  2  1

The board is a flat array of 24 signed counts: board[i] holds point i+1,
positive for white checkers and negative for black. Bar and borne-off
counts live outside the array and are passed in by the caller.
"""

from typing import Tuple
import numpy as np
from backgammon_service.core.types import (
    Board,
    Color,
    Point,
    CheckerCount,
    NUM_POINTS,
    CHECKERS_PER_SIDE,
    as_board,
)


# ==============================================================================
# BOARD CONSTRUCTION
# ==============================================================================

def initial_board() -> Board:
    """Create the standard backgammon starting position.

    Standard setup:
    - White: 2 on 24, 5 on 13, 3 on 8, 5 on 6
    - Black: 2 on 1, 5 on 12, 3 on 17, 5 on 19

    Returns:
        Board in starting position
    """
    board = empty_board()

    # White checkers (moves 24→1)
    board[24 - 1] = 2    # Two on the 24-point
    board[13 - 1] = 5    # Five on the 13-point (mid-point)
    board[8 - 1] = 3     # Three on the 8-point
    board[6 - 1] = 5     # Five on the 6-point

    # Black checkers (moves 1→24)
    board[1 - 1] = -2    # Two on the 1-point
    board[12 - 1] = -5   # Five on the 12-point (mid-point)
    board[17 - 1] = -3   # Three on the 17-point
    board[19 - 1] = -5   # Five on the 19-point

    return board


def empty_board() -> Board:
    """Create an empty board with no checkers."""
    return np.zeros(NUM_POINTS, dtype=np.int32)


def copy_board(board: Board) -> Board:
    """Clone a board.

    Args:
        board: Board to copy (any length-24 sequence)

    Returns:
        Independent numpy copy
    """
    return as_board(board)


# ==============================================================================
# BOARD QUERIES
# ==============================================================================

def is_on_board(point: Point) -> bool:
    """True for points 1-24."""
    return 1 <= point <= NUM_POINTS


def is_point_open(board: Board, point: Point, color: Color) -> bool:
    """Check if a color can land on a point.

    You can land on a point if:
    - It's empty
    - You own it
    - Opponent has exactly 1 checker (blot - you can hit it)

    Args:
        board: Current board
        point: Point to land on
        color: Which color is moving

    Returns:
        True if the color can land on the point
    """
    if not is_on_board(point):
        return False

    checkers = int(board[point - 1])
    if color == Color.WHITE:
        return checkers >= -1
    return checkers <= 1


def is_in_home_board(point: Point, color: Color) -> bool:
    """Check if a point is in the color's home board."""
    return point in home_board_range(color)


def home_board_range(color: Color) -> range:
    """Points of a color's home board."""
    if color == Color.WHITE:
        return range(1, 7)  # 1-6
    return range(19, 25)  # 19-24


def can_bear_off(board: Board, color: Color, bar_count: int) -> bool:
    """Check if a color can bear off checkers.

    A color can bear off when it has nothing on the bar and all its
    checkers on the board are in its home board.

    Args:
        board: Current board
        color: Which color
        bar_count: That color's checkers on the bar

    Returns:
        True if the color can bear off
    """
    if bar_count > 0:
        return False

    cells = np.asarray(board)
    if color == Color.WHITE:
        # Points 7-24
        return not bool(np.any(cells[6:24] > 0))
    # Points 1-18
    return not bool(np.any(cells[0:18] < 0))


def count_checkers_on_point(board: Board, point: Point, color: Color) -> CheckerCount:
    """Number of the color's checkers on a point.

    Returns 0 for empty points, points held by the opponent and points
    outside 1-24.
    """
    if not is_on_board(point):
        return 0

    checkers = int(board[point - 1]) * color.sign
    return checkers if checkers > 0 else 0


def points_with_checkers(board: Board, color: Color) -> list:
    """All points (ascending) holding at least one checker of the color."""
    return [
        point for point in range(1, NUM_POINTS + 1)
        if count_checkers_on_point(board, point, color) > 0
    ]


def checkers_on_board(board: Board, color: Color) -> int:
    """Total checkers of a color on points 1-24."""
    cells = np.asarray(board) * color.sign
    return int(cells[cells > 0].sum())


def pip_count(board: Board, color: Color, bar_count: int = 0) -> int:
    """Calculate pip count for a color.

    Pip count = sum of (distance to bear off × num_checkers). Checkers on
    the bar count 25 pips each.

    Args:
        board: Current board
        color: Which color
        bar_count: That color's checkers on the bar

    Returns:
        Total pip count
    """
    total = 25 * bar_count
    for point in range(1, NUM_POINTS + 1):
        count = count_checkers_on_point(board, point, color)
        if count:
            # White bears off below point 1, black above point 24
            distance = point if color == Color.WHITE else 25 - point
            total += distance * count
    return total


def is_valid_position(
    board: Board,
    bar: dict,
    borne_off: dict,
) -> Tuple[bool, str]:
    """Validate checker conservation for both colors.

    For each color, checkers on the board + on the bar + borne off must
    equal 15.

    Args:
        board: Board to validate
        bar: Color -> checkers on the bar
        borne_off: Color -> checkers borne off

    Returns:
        (is_valid, error_message) tuple
    """
    if len(board) != NUM_POINTS:
        return False, f"Board has {len(board)} points, should have {NUM_POINTS}"

    for color in Color:
        on_board = checkers_on_board(board, color)
        total = on_board + bar.get(color, 0) + borne_off.get(color, 0)
        if total != CHECKERS_PER_SIDE:
            return False, (
                f"{color.value.capitalize()} has {total} checkers "
                f"({on_board} on board, {bar.get(color, 0)} on bar, "
                f"{borne_off.get(color, 0)} off), should have {CHECKERS_PER_SIDE}"
            )

    return True, ""


# ==============================================================================
# BOARD DISPLAY (for debugging)
# ==============================================================================

def board_to_string(board: Board, bar: dict = None, borne_off: dict = None) -> str:
    """Convert board to string representation.

    Args:
        board: Board to display
        bar: Optional Color -> bar count
        borne_off: Optional Color -> borne-off count

    Returns:
        ASCII table of the position
    """
    bar = bar or {}
    borne_off = borne_off or {}

    lines = []
    lines.append("=" * 50)
    lines.append(f"White pip count: {pip_count(board, Color.WHITE, bar.get(Color.WHITE, 0))}")
    lines.append(f"Black pip count: {pip_count(board, Color.BLACK, bar.get(Color.BLACK, 0))}")
    lines.append("")

    lines.append("Point | White | Black")
    lines.append("------+-------+------")

    lines.append(f"BAR   |  {bar.get(Color.WHITE, 0):2d}   |  {bar.get(Color.BLACK, 0):2d}")
    for point in range(1, NUM_POINTS + 1):
        w = count_checkers_on_point(board, point, Color.WHITE)
        b = count_checkers_on_point(board, point, Color.BLACK)
        lines.append(f"{point:2d}    |  {w:2d}   |  {b:2d}")
    lines.append(f"OFF   |  {borne_off.get(Color.WHITE, 0):2d}   |  {borne_off.get(Color.BLACK, 0):2d}")

    lines.append("=" * 50)
    return "\n".join(lines)
