"""Core type definitions for the backgammon service.

This module defines the value types shared by the rules engine and the
service layer. None of them own mutable game state: boards are handed in,
copied and handed back.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, NamedTuple, Optional, Tuple
import numpy as np
from numpy.typing import NDArray


# ==============================================================================
# BOARD REPRESENTATION
# ==============================================================================

# Type aliases
Point = int  # 0=bar, 1-24=points, 25=off
CheckerCount = int  # 0-15

# 24 signed counts, index i is point i+1. Positive = white, negative = black.
Board = NDArray[np.int32]

NUM_POINTS = 24
CHECKERS_PER_SIDE = 15
BAR_POINT: Point = 0
OFF_POINT: Point = 25


class Color(Enum):
    """Player colors."""
    WHITE = "white"
    BLACK = "black"

    def opponent(self) -> "Color":
        """Return the opponent color."""
        return Color.BLACK if self == Color.WHITE else Color.WHITE

    @property
    def sign(self) -> int:
        """+1 for white cells, -1 for black cells."""
        return 1 if self == Color.WHITE else -1

    @staticmethod
    def parse(value) -> "Color":
        """Coerce a string (or Color) into a Color."""
        if isinstance(value, Color):
            return value
        try:
            return Color(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown color: {value!r}")

    def __str__(self) -> str:
        return self.value


def as_board(cells) -> Board:
    """Copy any length-24 integer sequence into a fresh board array."""
    board = np.array(cells, dtype=np.int32)
    if board.shape != (NUM_POINTS,):
        raise ValueError(f"Board must have {NUM_POINTS} points, got shape {board.shape}")
    return board


# ==============================================================================
# MOVES
# ==============================================================================

class IndexedDie(NamedTuple):
    """A die value tagged with its position in the dice sequence."""
    value: int
    index: int


@dataclass(frozen=True)
class MoveStep:
    """A single checker movement using one die.

    Attributes:
        from_point: Starting position (0=bar, 1-24=points)
        to_point: Ending position (1-24=points, 25=off)
        die_used: Which die value was used (1-6)
        hits_opponent: Whether this step hits an opponent blot
    """
    from_point: Point
    to_point: Point
    die_used: int
    hits_opponent: bool = False

    def __post_init__(self):
        """Validate move step."""
        assert 0 <= self.from_point <= 24, f"Invalid from_point: {self.from_point}"
        assert 1 <= self.to_point <= 25, f"Invalid to_point: {self.to_point}"
        assert 1 <= self.die_used <= 6, f"Invalid die: {self.die_used}"


@dataclass(frozen=True)
class LegalMove:
    """A move the player may choose for the current position.

    Attributes:
        from_point: 0=bar, 1-24=board points
        to_point: 1-24=board points, 25=borne off
        die_used: Die value, or the sum of the dice for a combined move
        dice_indices: Positions in the dice sequence consumed by the move,
            in the order they are applied
        is_combined_move: True if the move uses more than one die
    """
    from_point: Point
    to_point: Point
    die_used: int
    dice_indices: Tuple[int, ...]
    is_combined_move: bool = False

    def to_dict(self) -> Dict:
        """JSON shape used by the HTTP layer."""
        return {
            'fromPoint': self.from_point,
            'toPoint': self.to_point,
            'dieUsed': self.die_used,
            'diceIndices': list(self.dice_indices),
            'isCombinedMove': self.is_combined_move,
        }


class MoveResult(NamedTuple):
    """Outcome of executing one move on a board copy."""
    new_board: Board
    hit_opponent: bool


# ==============================================================================
# RULE VIOLATIONS
# ==============================================================================

class MoveErrorKind(Enum):
    """Why a proposed move is illegal. Values are user-facing messages."""
    MUST_ENTER_FROM_BAR = "must enter from bar first"
    NO_CHECKER_ON_BAR = "no checkers on bar"
    INVALID_ENTRY_POINT = "invalid entry point from bar"
    ENTRY_BLOCKED = "entry point is blocked"
    CANNOT_BEAR_OFF_YET = "cannot bear off yet"
    NO_CHECKER_ON_SOURCE = "no checker on source point"
    MUST_BEAR_OFF_FROM_HIGHEST = "must bear off from highest occupied point"
    CANNOT_BEAR_OFF_FROM_POINT = "cannot bear off from this point"
    INVALID_POINT_NUMBERS = "invalid point numbers"
    DESTINATION_MISMATCH = "destination doesn't match die value"
    DESTINATION_BLOCKED = "destination point is blocked"


@dataclass(frozen=True)
class MoveError:
    """A rule violation returned (not raised) by the validator."""
    kind: MoveErrorKind
    from_point: Point
    to_point: Point
    die_value: int

    @property
    def message(self) -> str:
        return self.kind.value

    def __str__(self) -> str:
        return self.kind.value


# ==============================================================================
# ENGINE OPTIONS
# ==============================================================================

@dataclass(frozen=True)
class RulesOptions:
    """Switches for the legal move generator.

    Attributes:
        try_all_orders: For combined moves, try every distinct ordering of
            the chosen dice rather than only their roll order.
        chain_bar_entry: With a single checker on the bar, also offer
            moves that enter and continue with the remaining dice.
    """
    try_all_orders: bool = True
    chain_bar_entry: bool = False


DEFAULT_RULES = RulesOptions()


# Result of validation: None means the move is legal
ValidationResult = Optional[MoveError]
