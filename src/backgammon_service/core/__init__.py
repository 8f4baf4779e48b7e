"""Core game logic and data structures."""

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
)
from backgammon_service.core.rules import (
    calculate_to_point,
    validate_move,
    execute_move,
    get_legal_moves,
    has_legal_moves,
    check_win_condition,
)

__all__ = [
    "Board",
    "Color",
    "Point",
    "IndexedDie",
    "LegalMove",
    "MoveError",
    "MoveErrorKind",
    "MoveResult",
    "MoveStep",
    "RulesOptions",
    "calculate_to_point",
    "validate_move",
    "execute_move",
    "get_legal_moves",
    "has_legal_moves",
    "check_win_condition",
]
